"""Upload storage for the transcription endpoint.

Files are stored flat in: {upload_dir}/{field}-{epoch ms}-{random}{ext}
Nothing is indexed or kept; the caller removes the file when it is done.
"""
import logging
import random
import shutil
import time
from pathlib import Path
from typing import Optional, Union

from fastapi import UploadFile

from .schemas import StoredUpload

logger = logging.getLogger(__name__)

_COPY_CHUNK_BYTES = 1024 * 1024


class UploadStore:
    """Writes multipart uploads to disk and removes them afterwards."""

    def __init__(self, upload_dir: Union[str, Path], field_name: str = "audio") -> None:
        self._upload_dir = Path(upload_dir)
        self._field_name = field_name
        self._ensure_upload_dir()

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    def _ensure_upload_dir(self) -> None:
        """Ensure the upload directory exists."""
        if not self._upload_dir.exists():
            self._upload_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Created uploads directory: %s", self._upload_dir)

    def generate_filename(self, original_filename: Optional[str]) -> str:
        """Build a collision-resistant name that keeps the original extension."""
        ext = Path(original_filename or "").suffix
        unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
        return f"{self._field_name}-{unique_suffix}{ext}"

    async def save(self, upload: UploadFile) -> StoredUpload:
        """Copy an uploaded file to the uploads directory.

        Args:
            upload: The multipart file received by FastAPI.

        Returns:
            StoredUpload describing the file on disk.
        """
        self._ensure_upload_dir()
        file_path = self._upload_dir / self.generate_filename(upload.filename)

        await upload.seek(0)
        try:
            with file_path.open("wb") as out:
                shutil.copyfileobj(upload.file, out, _COPY_CHUNK_BYTES)
            size_bytes = file_path.stat().st_size
        except OSError:
            logger.error("Failed to store upload, removing partial file: %s", file_path)
            file_path.unlink(missing_ok=True)
            raise

        stored = StoredUpload(
            path=file_path,
            original_filename=upload.filename or "unnamed",
            mime_type=upload.content_type or "application/octet-stream",
            size_bytes=size_bytes,
        )
        logger.info(
            "Audio file received: filename=%s size=%s mimetype=%s -> %s",
            stored.original_filename,
            stored.size_kb,
            stored.mime_type,
            stored.stored_filename,
        )
        return stored

    def remove(self, stored: Optional[StoredUpload]) -> bool:
        """Delete a stored upload. Returns True if a file was removed."""
        if stored is None or not stored.path.exists():
            return False
        stored.path.unlink()
        logger.info("Cleaned up temporary file: %s", stored.stored_filename)
        return True
