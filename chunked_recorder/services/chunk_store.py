"""
On-disk chunk storage, one directory per recording session
"""
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from ..core.exceptions import ChunkTooLargeError, StorageError, ValidationError
from ..core.validation import validate_chunk_index, validate_session_id

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 1024  # 1MB


@dataclass(frozen=True)
class ChunkInfo:
    """A chunk committed to the store"""
    session_id: str
    index: int
    path: Path
    size_bytes: int


@dataclass(frozen=True)
class StagedChunk:
    """A fully received chunk waiting in the temp area to be committed"""
    session_id: str
    index: int
    temp_path: Path
    final_path: Path
    size_bytes: int


@dataclass
class ChunkListing:
    """Chunks found for a session in index order, plus the indices that were absent"""
    chunks: list[ChunkInfo] = field(default_factory=list)
    missing: list[int] = field(default_factory=list)


class ChunkStore:
    """
    Durable per-session, per-index chunk storage.

    Layout:
        <chunks_dir>/.temp/            partial uploads, never read back
        <chunks_dir>/<session_id>/     chunk_000000.webm, chunk_000001.webm, ...

    Chunk names are zero-padded to a fixed width so name order equals index
    order. A chunk is first written to ``.temp/`` and then moved into place with
    ``os.replace``, which makes every visible chunk complete and lets a
    re-upload of the same index replace the previous bytes.
    """

    def __init__(
        self,
        chunks_dir: Path,
        temp_dir: Path,
        max_chunk_size: int,
        index_width: int = 6,
        extension: str = ".webm",
    ):
        self.chunks_dir = Path(chunks_dir)
        self.temp_dir = Path(temp_dir)
        self.max_chunk_size = max_chunk_size
        self.index_width = index_width
        self.extension = extension

    def ensure_directories(self) -> None:
        self.chunks_dir.mkdir(parents=True, exist_ok=True)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    def session_dir(self, session_id: str) -> Path:
        return self.chunks_dir / validate_session_id(session_id)

    def chunk_path(self, session_id: str, chunk_index: int) -> Path:
        return self.session_dir(session_id) / f"chunk_{chunk_index:0{self.index_width}d}{self.extension}"

    def put(self, session_id: str, chunk_index: int, source: BinaryIO) -> ChunkInfo:
        """Stream ``source`` into the store as chunk ``chunk_index`` of ``session_id``"""
        return self.commit(self.stage(session_id, chunk_index, source))

    def stage(self, session_id: str, chunk_index: int, source: BinaryIO) -> StagedChunk:
        """
        Copy ``source`` into a temp file without making it visible.

        The size limit is enforced while copying, so an oversized body is
        rejected before it reaches the session directory.
        """
        chunk_index = validate_chunk_index(chunk_index, self.index_width)
        final_path = self.chunk_path(session_id, chunk_index)

        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f"{session_id}_{chunk_index}_", suffix=".part", dir=self.temp_dir
            )
        except OSError as e:
            logger.error(f"Failed to create temp file for session {session_id}: {e}")
            raise StorageError("Failed to process chunk") from e

        tmp_path = Path(tmp_name)
        try:
            size = 0
            with os.fdopen(fd, "wb") as out:
                while True:
                    block = source.read(COPY_BUFFER_SIZE)
                    if not block:
                        break
                    size += len(block)
                    if size > self.max_chunk_size:
                        raise ChunkTooLargeError(
                            f"Chunk exceeds maximum size of {self.max_chunk_size} bytes"
                        )
                    out.write(block)
            if size == 0:
                raise ValidationError("Uploaded chunk is empty")
        except ValidationError:
            tmp_path.unlink(missing_ok=True)
            raise
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            logger.error(f"Failed to stage chunk {chunk_index} for session {session_id}: {e}")
            raise StorageError("Failed to process chunk") from e

        return StagedChunk(session_id, chunk_index, tmp_path, final_path, size)

    def commit(self, staged: StagedChunk) -> ChunkInfo:
        """Move a staged chunk into place, replacing any earlier upload of the same index"""
        try:
            staged.final_path.parent.mkdir(parents=True, exist_ok=True)
            os.replace(staged.temp_path, staged.final_path)
        except OSError as e:
            self.discard(staged)
            logger.error(
                f"Failed to store chunk {staged.index} for session {staged.session_id}: {e}"
            )
            raise StorageError("Failed to process chunk") from e
        return ChunkInfo(staged.session_id, staged.index, staged.final_path, staged.size_bytes)

    def discard(self, staged: StagedChunk) -> None:
        staged.temp_path.unlink(missing_ok=True)

    def list_ordered(self, session_id: str, expected_count: int) -> ChunkListing:
        """Chunks for indices [0, expected_count) in ascending order; gaps are reported, not raised"""
        listing = ChunkListing()
        expected_count = max(expected_count, 0)
        present = set()
        for index in self.stored_indices(session_id):
            if index >= expected_count:
                break
            if index in present:
                continue
            path = self.chunk_path(session_id, index)
            try:
                size = path.stat().st_size
            except FileNotFoundError:
                continue
            listing.chunks.append(ChunkInfo(session_id, index, path, size))
            present.add(index)
        listing.missing = [i for i in range(expected_count) if i not in present]
        return listing

    def stored_indices(self, session_id: str) -> list[int]:
        directory = self.session_dir(session_id)
        if not directory.is_dir():
            return []
        indices = []
        for entry in directory.iterdir():
            stem = entry.name.removesuffix(self.extension)
            if entry.name.endswith(self.extension) and stem.startswith("chunk_"):
                digits = stem[len("chunk_"):]
                if len(digits) == self.index_width and digits.isascii() and digits.isdigit():
                    indices.append(int(digits))
        return sorted(indices)

    def has_session(self, session_id: str) -> bool:
        return self.session_dir(session_id).is_dir()

    def purge(self, session_id: str) -> None:
        """Remove every stored chunk of the session"""
        directory = self.session_dir(session_id)
        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error(f"Failed to purge chunks for session {session_id}: {e}")
            raise StorageError(f"Failed to remove chunks for session {session_id}") from e
        logger.info(f"Purged chunk directory for session {session_id}")

    def session_ids(self) -> list[str]:
        """Sessions that currently have a chunk directory on disk"""
        if not self.chunks_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.chunks_dir.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    def clear_temp(self) -> int:
        """Delete partial uploads left behind by a previous process"""
        if not self.temp_dir.is_dir():
            return 0
        removed = 0
        for entry in self.temp_dir.iterdir():
            if entry.is_file():
                entry.unlink(missing_ok=True)
                removed += 1
        return removed
