"""
Session bookkeeping: session id → StoryEngine, kept in memory for the
lifetime of the process (or until an optional idle TTL runs out).
"""
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from storygame.engine import SessionNotFound, StoryEngine
from storygame.scenes import Scene, SceneGenerator

logger = logging.getLogger(__name__)


@dataclass
class Session:
    session_id: str
    engine: StoryEngine
    created_at: float
    last_access: float


class SessionRegistry:
    def __init__(
        self,
        generator: SceneGenerator,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.generator = generator
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def _new_id(self, max_attempts: int = 10) -> str:
        for _ in range(max_attempts):
            session_id = secrets.token_urlsafe(16)
            if session_id not in self._sessions:
                return session_id
        # Fallback if all attempts collide
        return secrets.token_hex(24)

    def _expired(self, session: Session, now: float) -> bool:
        return self.ttl_seconds is not None and now - session.last_access > self.ttl_seconds

    def purge_expired(self) -> int:
        """Drop idle sessions; returns how many were removed."""
        if self.ttl_seconds is None:
            return 0
        now = self._clock()
        stale = [sid for sid, s in self._sessions.items() if self._expired(s, now)]
        for sid in stale:
            del self._sessions[sid]
        if stale:
            logger.info("Purged %d expired session(s)", len(stale))
        return len(stale)

    async def create(self) -> Tuple[str, Scene]:
        self.purge_expired()
        engine = StoryEngine(self.generator)
        scene = await engine.start()

        session_id = self._new_id()
        now = self._clock()
        self._sessions[session_id] = Session(session_id, engine, created_at=now, last_access=now)
        logger.info("Created game session %s (%d active)", session_id, len(self._sessions))
        return session_id, scene

    def get(self, session_id: Optional[str]) -> StoryEngine:
        session = self._sessions.get(session_id) if session_id else None
        if session is None:
            raise SessionNotFound(session_id)

        now = self._clock()
        if self._expired(session, now):
            del self._sessions[session_id]
            logger.info("Session %s expired", session_id)
            raise SessionNotFound(session_id)

        session.last_access = now
        return session.engine
