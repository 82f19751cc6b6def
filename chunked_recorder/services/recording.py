"""
Recording session lifecycle: chunk ingestion and finalize
"""
import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional

from ..core.config import Settings
from ..core.exceptions import NotFoundError
from ..core.validation import validate_chunk_index, validate_session_id
from .chunk_store import ChunkStore
from .media import MediaLibrary
from .reassembly import FinalizeResult, ReassemblyEngine
from .session_tracker import InMemorySessionStore, SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadResult:
    session_id: str
    chunk_index: int
    size_bytes: int
    received_count: int


class RecordingService:
    """
    Sequences chunk uploads and finalize calls across the chunk store, the
    session store and the reassembly engine.

    A chunk is copied into the temp area without any lock, then committed and
    counted under the session lock. Finalize holds the same lock, so a chunk
    is either part of the reassembled artifact or lands after the purge.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        sessions: SessionStore,
        engine: ReassemblyEngine,
        media: MediaLibrary,
    ):
        self.chunk_store = chunk_store
        self.sessions = sessions
        self.engine = engine
        self.media = media

    @classmethod
    def from_settings(cls, settings: Settings, sessions: Optional[SessionStore] = None) -> "RecordingService":
        sessions = sessions if sessions is not None else InMemorySessionStore()
        chunk_store = ChunkStore(
            chunks_dir=settings.CHUNKS_DIR,
            temp_dir=settings.TEMP_DIR,
            max_chunk_size=settings.MAX_CHUNK_SIZE,
            index_width=settings.CHUNK_INDEX_WIDTH,
            extension=settings.MEDIA_EXTENSION,
        )
        engine = ReassemblyEngine(
            chunk_store=chunk_store,
            sessions=sessions,
            final_dir=settings.FINAL_DIR,
            extension=settings.MEDIA_EXTENSION,
            allow_missing_chunks=settings.ALLOW_MISSING_CHUNKS,
        )
        media = MediaLibrary(
            final_dir=settings.FINAL_DIR,
            extension=settings.MEDIA_EXTENSION,
            media_type=settings.MEDIA_TYPE,
        )
        return cls(chunk_store, sessions, engine, media)

    def prepare_storage(self) -> list[str]:
        """
        Create the storage directories and drop stale partial uploads.

        Returns the sessions whose chunks were left on disk by an earlier
        process; nothing collects them automatically.
        """
        self.chunk_store.ensure_directories()
        self.engine.final_dir.mkdir(parents=True, exist_ok=True)

        removed = self.chunk_store.clear_temp()
        if removed:
            logger.info(f"Removed {removed} partial uploads from {self.chunk_store.temp_dir}")

        orphans = self.chunk_store.session_ids()
        if orphans:
            logger.warning(
                f"{len(orphans)} unfinalized sessions have chunks on disk: {orphans[:10]}"
            )
        return orphans

    def upload_chunk(self, session_id: str, chunk_index, source: BinaryIO) -> UploadResult:
        validate_session_id(session_id)
        chunk_index = validate_chunk_index(chunk_index, self.chunk_store.index_width)

        staged = self.chunk_store.stage(session_id, chunk_index, source)
        try:
            with self.sessions.session_lock(session_id):
                self.chunk_store.commit(staged)
                received = self.sessions.record_chunk(session_id, chunk_index)
        finally:
            self.chunk_store.discard(staged)

        logger.info(
            f"Received chunk {chunk_index} for session {session_id}, size: {staged.size_bytes} bytes"
        )
        return UploadResult(session_id, chunk_index, staged.size_bytes, received)

    def finalize_recording(self, session_id: str, total_chunks: int) -> FinalizeResult:
        logger.info(f"Finalizing recording for session {session_id}, expected {total_chunks} chunks")
        return self.engine.finalize(session_id, total_chunks)

    def session_progress(self, session_id: str) -> dict:
        """Tracker view of a session, falling back to the chunks on disk after a restart"""
        validate_session_id(session_id)
        state = self.sessions.get(session_id)
        stored = self.chunk_store.stored_indices(session_id)
        if state is None and not stored:
            raise NotFoundError(f"Session {session_id} not found")
        return {
            "sessionId": session_id,
            "tracked": state is not None,
            "receivedChunks": sorted(state.received) if state else stored,
            "storedChunks": stored,
            "createdAt": state.created_at.isoformat() if state else None,
        }

    def active_sessions(self) -> int:
        return self.sessions.snapshot()
