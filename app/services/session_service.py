"""
app/services/session_service.py

Purpose: Conversation session management

- Holds one live session per Telegram user id (in-process only)
- Tracks last interaction time and drops idle sessions
- Serializes each user's inputs with a per-user lock
- Enforces valid step transitions
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import AsyncIterator, Dict, Optional

from app.flow.states import FlowStep, is_valid_transition
from app.models.product import ProductDraft
from app.core.logging import get_logger, LogContext
from utils.time_utils import is_session_expired

logger = get_logger(__name__)


@dataclass
class Session:
    """
    State of one user's in-progress conversation.
    """
    user_id: int
    step: FlowStep
    draft: ProductDraft = field(default_factory=ProductDraft)
    department: Optional[str] = None  # /verify flow only
    started_at: datetime = field(default_factory=datetime.utcnow)
    last_interaction: datetime = field(default_factory=datetime.utcnow)

    def copy(self) -> "Session":
        """Independent copy; changes are committed with SessionStore.save()."""
        return replace(self, draft=self.draft.model_copy(deep=True))

    def advance(self, new_step: FlowStep) -> "Session":
        """
        Returns a copy moved to new_step.

        Raises:
            ValueError: If the transition skips or reverses a step
        """
        if not is_valid_transition(self.step, new_step):
            raise ValueError(f"Invalid step transition: {self.step} -> {new_step}")
        moved = self.copy()
        moved.step = new_step
        return moved


class SessionStore:
    """
    Keyed map of live sessions.

    Reads return copies so a handler can build the next state and commit it
    only once every side effect of the step succeeded.
    """

    def __init__(self, timeout_minutes: int = 0):
        self._sessions: Dict[int, Session] = {}
        self._locks: Dict[int, asyncio.Lock] = {}
        self._lock_users: Dict[int, int] = {}
        self.timeout_minutes = timeout_minutes

    @asynccontextmanager
    async def serialize(self, user_id: int) -> AsyncIterator[None]:
        """
        Holds the user's lock; inputs of one user are handled in arrival order.
        The lock is dropped once no update of that user is running or waiting.
        """
        user_lock = self._locks.get(user_id)
        if user_lock is None:
            user_lock = asyncio.Lock()
            self._locks[user_id] = user_lock
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1

        try:
            async with user_lock:
                yield
        finally:
            remaining = self._lock_users[user_id] - 1
            if remaining:
                self._lock_users[user_id] = remaining
            else:
                del self._lock_users[user_id]
                del self._locks[user_id]

    @property
    def active_locks(self) -> int:
        return len(self._locks)

    def get(self, user_id: int) -> Optional[Session]:
        session = self._sessions.get(user_id)
        if session is None:
            return None

        if self.timeout_minutes and is_session_expired(session.last_interaction, self.timeout_minutes):
            with LogContext(user_id=user_id, step=session.step.value):
                logger.info("Session expired")
            self._sessions.pop(user_id, None)
            return None

        return session.copy()

    def start(self, user_id: int, step: FlowStep) -> Session:
        """
        Creates a fresh session, replacing any live one (last start wins).
        The new session is not stored until save() is called.
        """
        previous = self._sessions.get(user_id)
        if previous is not None:
            logger.info(
                f"Replacing live session at {previous.step.value}",
                extra={"user_id": user_id}
            )
        return Session(user_id=user_id, step=step)

    def save(self, session: Session) -> None:
        session.last_interaction = datetime.utcnow()
        self._sessions[session.user_id] = session.copy()
        logger.debug(
            "Session saved",
            extra={"user_id": session.user_id, "step": session.step.value}
        )

    def clear(self, user_id: int) -> bool:
        """
        Deletes the user's session.

        Returns:
            True if a session existed
        """
        existed = self._sessions.pop(user_id, None) is not None
        if existed:
            logger.debug("Session cleared", extra={"user_id": user_id})
        return existed

    def purge_expired(self) -> int:
        """Drops every idle session; returns how many were removed."""
        if not self.timeout_minutes:
            return 0
        expired = [
            uid for uid, s in self._sessions.items()
            if is_session_expired(s.last_interaction, self.timeout_minutes)
        ]
        for uid in expired:
            self._sessions.pop(uid, None)
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)


async def run_session_sweeper(store: SessionStore, interval_seconds: float = 300) -> None:
    """Background task: drops expired sessions every interval until cancelled."""
    logger.info(f"🧹 Session sweeper started (every {interval_seconds:.0f}s)")
    while True:
        await asyncio.sleep(interval_seconds)
        store.purge_expired()
