from __future__ import annotations

from enum import Enum


class AttachmentErrorCode(str, Enum):
    OWNER_NOT_FOUND = "OWNER_NOT_FOUND"
    ATTACHMENT_NOT_FOUND = "ATTACHMENT_NOT_FOUND"
    DISK_WRITE_FAILED = "DISK_WRITE_FAILED"
    RECORD_PERSIST_FAILED = "RECORD_PERSIST_FAILED"
    FILENAME_COLLISION = "FILENAME_COLLISION"


class AttachmentError(Exception):
    """Raised by the attachment store. Upload collisions are reported, not raised."""

    def __init__(self, code: AttachmentErrorCode, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)
