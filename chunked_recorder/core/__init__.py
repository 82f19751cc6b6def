"""Core module exports"""
from .config import Settings, settings
from .exceptions import (
    ChunkTooLargeError,
    MissingChunksError,
    NoChunksFoundError,
    NotFoundError,
    RangeNotSatisfiableError,
    RecordingError,
    StorageError,
    ValidationError,
)
from .validation import validate_chunk_index, validate_session_id

__all__ = [
    "Settings",
    "settings",
    "RecordingError",
    "ValidationError",
    "ChunkTooLargeError",
    "NotFoundError",
    "NoChunksFoundError",
    "MissingChunksError",
    "StorageError",
    "RangeNotSatisfiableError",
    "validate_session_id",
    "validate_chunk_index",
]
