"""
Reassembly of a session's stored chunks into one media artifact
"""
import logging
import os
import shutil
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from ..core.exceptions import (
    MissingChunksError,
    NoChunksFoundError,
    StorageError,
    ValidationError,
)
from ..core.validation import validate_session_id
from .chunk_store import ChunkStore
from .session_tracker import SessionStore

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 1024  # 1MB


@dataclass(frozen=True)
class FinalizeResult:
    """Outcome of a finalize call"""
    session_id: str
    artifact_path: Path
    chunk_count: int
    size_bytes: int
    missing: list[int] = field(default_factory=list)
    already_finalized: bool = False


class ReassemblyEngine:
    """
    Concatenates a session's chunks, byte for byte, in ascending index order.

    Concatenation is not container-aware: chunks must be consecutive segments
    of one stream (e.g. MediaRecorder WebM timeslices).

    The artifact is written to a hidden temp file in the final directory and
    published with ``os.replace``, so readers only ever see a complete file.
    A failed write removes the temp file and keeps the chunks for a retry.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        sessions: SessionStore,
        final_dir: Path,
        extension: str = ".webm",
        allow_missing_chunks: bool = True,
    ):
        self.chunk_store = chunk_store
        self.sessions = sessions
        self.final_dir = Path(final_dir)
        self.extension = extension
        self.allow_missing_chunks = allow_missing_chunks

    def artifact_path(self, session_id: str) -> Path:
        return self.final_dir / f"{validate_session_id(session_id)}{self.extension}"

    def finalize(self, session_id: str, expected_chunk_count: int) -> FinalizeResult:
        validate_session_id(session_id)
        if isinstance(expected_chunk_count, bool) or not isinstance(expected_chunk_count, int) \
                or expected_chunk_count < 0:
            raise ValidationError("totalChunks must be a non-negative integer")
        # Indices at or above 10**width are never stored
        max_chunks = 10 ** self.chunk_store.index_width
        if expected_chunk_count > max_chunks:
            raise ValidationError(f"totalChunks must not exceed {max_chunks}")

        # One finalize per session at a time; a duplicate waits here
        with self.sessions.session_lock(session_id):
            return self._finalize_locked(session_id, expected_chunk_count)

    def _finalize_locked(self, session_id: str, expected_chunk_count: int) -> FinalizeResult:
        artifact = self.artifact_path(session_id)
        listing = self.chunk_store.list_ordered(session_id, expected_chunk_count)

        if not listing.chunks:
            if artifact.is_file() and not self.chunk_store.has_session(session_id):
                logger.info(f"Session {session_id} already finalized, nothing to reassemble")
                return FinalizeResult(
                    session_id=session_id,
                    artifact_path=artifact,
                    chunk_count=0,
                    size_bytes=artifact.stat().st_size,
                    already_finalized=True,
                )
            raise NoChunksFoundError(f"No chunks found for session {session_id}")

        if listing.missing:
            if not self.allow_missing_chunks:
                logger.warning(
                    f"Refusing to finalize session {session_id}: "
                    f"{len(listing.missing)} of {expected_chunk_count} chunks missing"
                )
                raise MissingChunksError(session_id, listing.missing)
            logger.warning(
                f"Finalizing session {session_id} with {len(listing.missing)} missing chunks: "
                f"{listing.missing[:20]}"
            )

        size = self._concatenate(session_id, listing.chunks, artifact)
        logger.info(
            f"Reassembled {len(listing.chunks)} chunks for session {session_id} "
            f"into {artifact.name} ({size} bytes)"
        )

        self.chunk_store.purge(session_id)
        self.sessions.forget(session_id)

        return FinalizeResult(
            session_id=session_id,
            artifact_path=artifact,
            chunk_count=len(listing.chunks),
            size_bytes=size,
            missing=list(listing.missing),
        )

    def _concatenate(self, session_id: str, chunks, artifact: Path) -> int:
        tmp_path = self.final_dir / f".{session_id}.{uuid.uuid4().hex}.partial"
        size = 0
        try:
            self.final_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as out:
                for chunk in chunks:
                    with open(chunk.path, "rb") as src:
                        shutil.copyfileobj(src, out, COPY_BUFFER_SIZE)
                    out.flush()
                    size = out.tell()
                os.fsync(out.fileno())
            os.replace(tmp_path, artifact)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            logger.error(f"Failed to reassemble session {session_id}: {e}")
            raise StorageError(f"Failed to finalize recording for session {session_id}") from e
        return size
