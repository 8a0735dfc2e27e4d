"""Thread-safe in-memory store for calculation sessions."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from carbonflow_lca.core.exceptions import SessionNotFoundError
from carbonflow_lca.core.models import CalculationSession, SessionStatus, utcnow


class EvictionPolicy(Protocol):
    def should_evict(self, session: CalculationSession, now: datetime) -> bool: ...


@dataclass(slots=True, frozen=True)
class CompletedOlderThan:
    """Evicts completed sessions whose end time lies more than ``hours`` in the past."""

    hours: float

    def should_evict(self, session: CalculationSession, now: datetime) -> bool:
        if session.status is not SessionStatus.COMPLETED or session.end_time is None:
            return False
        return now - session.end_time > timedelta(hours=self.hours)


@dataclass(slots=True, frozen=True)
class FinishedOlderThan:
    """Evicts completed or failed sessions older than ``hours``."""

    hours: float

    def should_evict(self, session: CalculationSession, now: datetime) -> bool:
        if not session.is_finished or session.end_time is None:
            return False
        return now - session.end_time > timedelta(hours=self.hours)


class SessionStore:
    """Maps session ids to sessions; every access holds one lock."""

    def __init__(self) -> None:
        self._sessions: dict[str, CalculationSession] = {}
        self._lock = threading.Lock()

    def add(self, session: CalculationSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def get(self, session_id: str) -> CalculationSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def require(self, session_id: str) -> CalculationSession:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def values(self) -> list[CalculationSession]:
        with self._lock:
            return list(self._sessions.values())

    def evict(self, policy: EvictionPolicy, now: datetime | None = None) -> list[str]:
        """Remove sessions selected by ``policy`` and return their ids."""
        moment = now or utcnow()
        with self._lock:
            doomed = [session_id for session_id, session in self._sessions.items() if policy.should_evict(session, moment)]
            for session_id in doomed:
                del self._sessions[session_id]
        return doomed

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
