"""Transient upload storage.

Audio files are written under the uploads directory for the length of one
request and deleted before the response is returned.
"""
from .schemas import StoredUpload
from .service import UploadStore

__all__ = ["StoredUpload", "UploadStore"]
