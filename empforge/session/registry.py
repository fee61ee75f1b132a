import asyncio
from typing import Iterator

from empforge.exceptions import SessionNotFoundError
from .session import CreationSession


class SessionRegistry:
    """In-memory sessions keyed by id, each with its own writer lock.

    Sessions do not share locks; work on one session never waits for
    another.
    """

    def __init__(self):
        self._sessions: dict[str, CreationSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def add(self, session: CreationSession) -> CreationSession:
        if session.id in self._sessions:
            raise ValueError(f"Session '{session.id}' is already registered")
        self._sessions[session.id] = session
        self._locks[session.id] = asyncio.Lock()
        return session

    def get(self, session_id: str) -> CreationSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def holds(self, session: CreationSession) -> bool:
        """Whether *session* itself is still the registered one for its id."""
        return self._sessions.get(session.id) is session

    def lock(self, session_id: str) -> asyncio.Lock:
        try:
            return self._locks[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def remove(self, session_id: str) -> CreationSession | None:
        self._locks.pop(session_id, None)
        return self._sessions.pop(session_id, None)

    def clear(self) -> None:
        self._sessions.clear()
        self._locks.clear()

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[CreationSession]:
        return iter(list(self._sessions.values()))

    def __len__(self) -> int:
        return len(self._sessions)
