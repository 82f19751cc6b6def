"""
Pydantic schemas for API request/response validation
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """Accepts and emits the camelCase keys the browser client uses"""
    model_config = ConfigDict(populate_by_name=True)


class FinalizeRequest(CamelModel):
    """Request to reassemble a session's chunks"""
    session_id: Optional[str] = Field(None, alias="sessionId", description="Recording session id")
    total_chunks: Optional[int] = Field(
        None, alias="totalChunks", description="Number of chunks the client sent (indices 0..totalChunks-1)"
    )


class UploadChunkResponse(CamelModel):
    success: bool = True
    message: str
    total_chunks: int = Field(..., alias="totalChunks", description="Distinct chunks received so far")


class FinalizeResponse(CamelModel):
    success: bool = True
    message: str
    video_id: str = Field(..., alias="videoId")
    session_id: str = Field(..., alias="sessionId")
    video_path: str = Field(..., alias="videoPath")
    chunk_count: int = Field(..., alias="chunkCount")
    size: int
    missing_chunks: list[int] = Field(default_factory=list, alias="missingChunks")
    already_finalized: bool = Field(False, alias="alreadyFinalized")


class RecordingItem(CamelModel):
    """One finalized recording"""
    session_id: str = Field(..., alias="sessionId")
    filename: str
    size: int
    created: datetime
    url: str


class SessionStatusResponse(CamelModel):
    session_id: str = Field(..., alias="sessionId")
    tracked: bool
    received_chunks: list[int] = Field(..., alias="receivedChunks")
    stored_chunks: list[int] = Field(..., alias="storedChunks")
    created_at: Optional[str] = Field(None, alias="createdAt")


class HealthResponse(CamelModel):
    status: str
    active_sessions: int = Field(..., alias="activeSessions")
    timestamp: datetime
    environment: str
    mount_path: str = Field(..., alias="mountPath")
    storage: str


class ErrorResponse(BaseModel):
    error: str
