"""
Lookup and byte-range streaming of finalized recordings
"""
import asyncio
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, BinaryIO

from ..core.exceptions import NotFoundError, RangeNotSatisfiableError, StorageError
from ..core.validation import validate_session_id

logger = logging.getLogger(__name__)

STREAM_BLOCK_SIZE = 64 * 1024  # 64KB
# 19 digits covers any 64-bit file offset
RANGE_PATTERN = re.compile(r"^bytes=([0-9]{0,19})-([0-9]{0,19})$")


def parse_range(range_header: str, file_size: int) -> tuple[int, int]:
    """
    Parse a single-range ``Range`` header into inclusive (start, end) offsets.

    Supports ``bytes=start-end``, ``bytes=start-`` and the suffix form
    ``bytes=-N``. Anything malformed or outside the file is rejected rather
    than clamped.
    """
    match = RANGE_PATTERN.match(range_header.strip())
    if not match:
        raise RangeNotSatisfiableError(f"Invalid range header: {range_header}", file_size)

    first, last = match.groups()
    if not first and not last:
        raise RangeNotSatisfiableError("Range must specify a start or a suffix length", file_size)
    if file_size == 0:
        raise RangeNotSatisfiableError("Range requested on an empty file", file_size)

    if not first:
        # Suffix range: the final N bytes
        suffix_length = int(last)
        if suffix_length == 0:
            raise RangeNotSatisfiableError("Suffix range length must be positive", file_size)
        return max(file_size - suffix_length, 0), file_size - 1

    start = int(first)
    end = int(last) if last else file_size - 1
    if start >= file_size:
        raise RangeNotSatisfiableError(f"Range start {start} beyond file size {file_size}", file_size)
    if end < start:
        raise RangeNotSatisfiableError(f"Range end {end} before start {start}", file_size)
    if end >= file_size:
        raise RangeNotSatisfiableError(f"Range end {end} beyond file size {file_size}", file_size)
    return start, end


@dataclass(frozen=True)
class ArtifactInfo:
    session_id: str
    filename: str
    size: int
    created: datetime
    url: str


class ArtifactHandle:
    """
    An opened artifact.

    Size comes from ``fstat`` on the open descriptor and reads go through the
    same descriptor, so replacing the artifact on disk does not affect a
    stream that is already running.
    """

    def __init__(self, session_id: str, path: Path, file: BinaryIO, size: int):
        self.session_id = session_id
        self.path = path
        self.file = file
        self.size = size

    def close(self) -> None:
        if not self.file.closed:
            self.file.close()

    async def stream(self, start: int, end: int) -> AsyncIterator[bytes]:
        """Yield bytes [start, end] with each blocking read in the executor"""
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.file.seek, start)
            remaining = end - start + 1
            while remaining > 0:
                block = await loop.run_in_executor(
                    None, self.file.read, min(STREAM_BLOCK_SIZE, remaining)
                )
                if not block:
                    break
                remaining -= len(block)
                yield block
        except OSError as e:
            logger.error(f"Streaming error for session {self.session_id}: {e}")
            raise
        finally:
            self.close()


class MediaLibrary:
    """Finalized artifacts in the final directory, one file per session"""

    def __init__(self, final_dir: Path, extension: str = ".webm", media_type: str = "video/webm"):
        self.final_dir = Path(final_dir)
        self.extension = extension
        self.media_type = media_type

    def resolve(self, artifact_id: str) -> tuple[str, Path]:
        """Map ``<id>`` or ``<id><ext>`` to a validated session id and its path"""
        session_id = validate_session_id(artifact_id.removesuffix(self.extension))
        return session_id, self.final_dir / f"{session_id}{self.extension}"

    def open_artifact(self, artifact_id: str) -> ArtifactHandle:
        session_id, path = self.resolve(artifact_id)
        try:
            file = open(path, "rb")
        except FileNotFoundError as e:
            raise NotFoundError("Video not found") from e
        except OSError as e:
            logger.error(f"Failed to open artifact {path}: {e}")
            raise StorageError("Failed to read video") from e

        try:
            size = os.fstat(file.fileno()).st_size
        except OSError as e:
            file.close()
            raise StorageError("Failed to read video") from e
        return ArtifactHandle(session_id, path, file, size)

    def list_artifacts(self) -> list[ArtifactInfo]:
        if not self.final_dir.is_dir():
            return []

        artifacts = []
        for entry in sorted(self.final_dir.iterdir()):
            if entry.name.startswith(".") or not entry.name.endswith(self.extension):
                continue
            try:
                stats = entry.stat()
            except FileNotFoundError:
                # Replaced or removed while listing
                continue
            session_id = entry.name.removesuffix(self.extension)
            created = getattr(stats, "st_birthtime", stats.st_ctime)
            artifacts.append(ArtifactInfo(
                session_id=session_id,
                filename=entry.name,
                size=stats.st_size,
                created=datetime.fromtimestamp(created, tz=timezone.utc),
                url=f"/video/{session_id}",
            ))
        return artifacts
