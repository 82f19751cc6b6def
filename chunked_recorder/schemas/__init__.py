"""Schemas module exports"""
from .recording import (
    ErrorResponse,
    FinalizeRequest,
    FinalizeResponse,
    HealthResponse,
    RecordingItem,
    SessionStatusResponse,
    UploadChunkResponse,
)

__all__ = [
    "FinalizeRequest",
    "FinalizeResponse",
    "UploadChunkResponse",
    "RecordingItem",
    "SessionStatusResponse",
    "HealthResponse",
    "ErrorResponse",
]
