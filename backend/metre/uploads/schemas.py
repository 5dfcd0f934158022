"""Pydantic schemas for transient audio uploads.

An upload lives for exactly one request: it is written under the uploads
directory with a generated name and removed before the response is sent.
"""
import time
from pathlib import Path

from pydantic import BaseModel, Field


class StoredUpload(BaseModel):
    """An uploaded file written to local disk for the duration of a request.

    The stored filename is ``<field>-<epoch ms>-<random><ext>`` so that
    concurrent requests never collide in the shared uploads directory.
    """
    path: Path = Field(..., description="Location of the stored file")
    original_filename: str = Field(..., description="Filename sent by the client")
    mime_type: str = Field(..., description="MIME type declared by the client")
    size_bytes: int = Field(..., description="File size in bytes")
    stored_at: float = Field(default_factory=time.time, description="Upload timestamp")

    @property
    def stored_filename(self) -> str:
        return self.path.name

    @property
    def size_kb(self) -> str:
        return f"{self.size_bytes / 1024:.2f} KB"
