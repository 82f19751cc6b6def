"""Services module exports"""
from .chunk_store import ChunkInfo, ChunkListing, ChunkStore, StagedChunk
from .media import ArtifactHandle, ArtifactInfo, MediaLibrary, parse_range
from .reassembly import FinalizeResult, ReassemblyEngine
from .recording import RecordingService, UploadResult
from .session_tracker import InMemorySessionStore, SessionLock, SessionState, SessionStore

__all__ = [
    "ChunkStore",
    "ChunkInfo",
    "ChunkListing",
    "StagedChunk",
    "SessionStore",
    "InMemorySessionStore",
    "SessionLock",
    "SessionState",
    "ReassemblyEngine",
    "FinalizeResult",
    "MediaLibrary",
    "ArtifactHandle",
    "ArtifactInfo",
    "parse_range",
    "RecordingService",
    "UploadResult",
]
