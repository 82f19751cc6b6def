"""
In-process bookkeeping of which chunks each recording session has received
"""
import logging
import threading
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    """Read-only view of one session's progress"""
    session_id: str
    received: frozenset[int]
    created_at: datetime

    @property
    def received_count(self) -> int:
        return len(self.received)


class SessionLock:
    """Context-manager lock for one session id"""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._lock.release()


@dataclass
class _SessionEntry:
    received: set[int] = field(default_factory=set)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionStore(ABC):
    """
    Session state store used by the recording service.

    Implementations must make ``record_chunk`` atomic: concurrent calls for the
    same session never lose an index.
    """

    @abstractmethod
    def record_chunk(self, session_id: str, chunk_index: int) -> int:
        """Mark a chunk as received and return the session's distinct chunk count"""

    @abstractmethod
    def get(self, session_id: str) -> Optional[SessionState]:
        ...

    @abstractmethod
    def forget(self, session_id: str) -> None:
        ...

    @abstractmethod
    def snapshot(self) -> int:
        """Number of active sessions"""

    @abstractmethod
    def session_lock(self, session_id: str) -> SessionLock:
        """Lock serializing finalize (and chunk commits) for one session"""


class InMemorySessionStore(SessionStore):
    """
    Process-lifetime session store.

    State is lost on restart; chunks already on disk survive and are found
    again by the chunk store at finalize time.
    """

    def __init__(self):
        self._sessions: dict[str, _SessionEntry] = {}
        self._mutex = threading.Lock()
        # Locks stay alive only while some caller holds them
        self._locks: "weakref.WeakValueDictionary[str, SessionLock]" = weakref.WeakValueDictionary()

    def record_chunk(self, session_id: str, chunk_index: int) -> int:
        with self._mutex:
            entry = self._sessions.get(session_id)
            if entry is None:
                entry = self._sessions[session_id] = _SessionEntry()
                logger.info(f"Tracking new session {session_id}")
            entry.received.add(chunk_index)
            return len(entry.received)

    def get(self, session_id: str) -> Optional[SessionState]:
        with self._mutex:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            return SessionState(session_id, frozenset(entry.received), entry.created_at)

    def forget(self, session_id: str) -> None:
        with self._mutex:
            self._sessions.pop(session_id, None)

    def snapshot(self) -> int:
        with self._mutex:
            return len(self._sessions)

    def session_lock(self, session_id: str) -> SessionLock:
        with self._mutex:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = SessionLock(session_id)
                self._locks[session_id] = lock
            return lock
