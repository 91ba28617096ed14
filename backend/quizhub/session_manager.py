# Registry of live quiz sessions addressed by handle.
import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from quizhub.data_access import QuizDataAccess
from quizhub.domain import Question
from quizhub.errors import UnknownSession
from quizhub.security import generate_session_handle, generate_visitor_id
from quizhub.session import QuizSession, SessionState, start_session

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TTL_SECONDS = 3600.0


@dataclass
class _Entry:
    session: QuizSession
    lock: asyncio.Lock
    last_used: float = field(default=0.0)


class SessionManager:
    """Owns every live session and serializes operations on each one.

    Sessions untouched for ``idle_ttl`` seconds are dropped the next time a
    session is started, so abandoned attempts do not pile up in memory.
    """

    def __init__(
        self,
        data_access: QuizDataAccess,
        rng_factory: Optional[Callable[[], random.Random]] = None,
        idle_ttl: float = DEFAULT_IDLE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.data_access = data_access
        self.rng_factory = rng_factory or random.Random
        self.idle_ttl = idle_ttl
        self.clock = clock
        self._sessions: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def start_session(self, quiz_id: str, session_id: Optional[str] = None) -> str:
        self.expire_idle()
        session = await start_session(
            self.data_access,
            quiz_id,
            session_id or generate_visitor_id(),
            rng=self.rng_factory(),
        )
        handle = generate_session_handle()
        self._sessions[handle] = _Entry(
            session=session, lock=asyncio.Lock(), last_used=self.clock()
        )
        return handle

    def get_session(self, handle: str) -> QuizSession:
        return self._entry(handle).session

    def get_current_question(self, handle: str) -> Optional[Question]:
        return self.get_session(handle).current_question()

    async def submit_answer(self, handle: str, character_id: str) -> SessionState:
        entry = self._entry(handle)
        async with entry.lock:
            return entry.session.submit_answer(character_id)

    async def finish(self, handle: str) -> str:
        entry = self._entry(handle)
        async with entry.lock:
            return await entry.session.finish()

    # Forget a session, e.g. once its result has been persisted.
    def discard(self, handle: str) -> None:
        if self._sessions.pop(handle, None) is not None:
            logger.debug("Discarded session %s", handle)

    # Drop sessions idle for longer than the TTL; returns how many were dropped.
    def expire_idle(self) -> int:
        cutoff = self.clock() - self.idle_ttl
        stale = [
            handle
            for handle, entry in self._sessions.items()
            if entry.last_used < cutoff and not entry.lock.locked()
        ]
        for handle in stale:
            del self._sessions[handle]
        if stale:
            logger.info("Expired %d idle quiz sessions", len(stale))
        return len(stale)

    def _entry(self, handle: str) -> _Entry:
        entry = self._sessions.get(handle)
        if entry is None:
            raise UnknownSession(handle)
        entry.last_used = self.clock()
        return entry
