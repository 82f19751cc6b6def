"""
Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status the API answers with, so services raise
them directly and main.py renders them as ``{"error": message}``.
"""
from typing import Optional


class RecordingError(Exception):
    """Base class for request-scoped failures"""

    status_code: int = 500

    def __init__(self, message: str, headers: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.headers = headers or {}


class ValidationError(RecordingError):
    """Missing or malformed request input"""

    status_code = 400


class ChunkTooLargeError(ValidationError):
    status_code = 413


class NotFoundError(RecordingError):
    status_code = 404


class NoChunksFoundError(NotFoundError):
    """Finalize found no stored chunk for the session"""


class MissingChunksError(RecordingError):
    """Finalize refused because of gaps in the chunk sequence"""

    status_code = 409

    def __init__(self, session_id: str, missing: list[int]):
        preview = ", ".join(str(i) for i in missing[:20])
        if len(missing) > 20:
            preview += ", ..."
        super().__init__(f"Session {session_id} is missing chunks: {preview}")
        self.missing = missing


class StorageError(RecordingError):
    """Disk read, write or rename failure"""

    status_code = 500


class RangeNotSatisfiableError(RecordingError):
    status_code = 416

    def __init__(self, message: str, file_size: int):
        super().__init__(message, headers={"Content-Range": f"bytes */{file_size}"})
        self.file_size = file_size
