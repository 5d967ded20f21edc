"""
In-memory conversation sessions.

A session remembers the user's previous message so the next turn can
resolve follow-ups ("show me cheaper ones"). Failed turns are recorded
too: the user's text is never lost just because the pipeline was.

Nothing here survives a process restart.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field

from zoogent.config import get_logger
from zoogent.core.models import TurnResult
from zoogent.services.pipeline import PipelineOrchestrator, ProgressCallback

logger = get_logger(__name__)

DEFAULT_MAX_SESSIONS = 1000
DEFAULT_MAX_TURNS = 20


@dataclass
class Turn:
    """One submitted message and what came of it."""

    text: str
    result: TurnResult | None = None
    error: BaseException | None = None
    created_at: float = field(default_factory=time.time)

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass
class ConversationSession:
    """Turn history for one user conversation."""

    orchestrator: PipelineOrchestrator
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    max_turns: int = DEFAULT_MAX_TURNS
    turns: list[Turn] = field(default_factory=list)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    @property
    def prior_text(self) -> str | None:
        """The last submitted message, successful or not."""
        return self.turns[-1].text if self.turns else None

    def _record(self, turn: Turn) -> None:
        self.turns.append(turn)
        if len(self.turns) > self.max_turns:
            del self.turns[: len(self.turns) - self.max_turns]

    async def submit(
        self,
        text: str,
        on_progress: ProgressCallback | None = None,
        prior_text: str | None = None,
    ) -> TurnResult:
        """
        Run a turn with the previous message as context and record it.

        Turns in one session run one at a time so the prior-text link is
        well defined. ``prior_text`` overrides the session's own history
        for this turn only; the turn is still recorded here.

        Raises:
            ZooGentError: Propagated from the pipeline after the failed
                turn has been recorded. Cancellation and unexpected errors
                are recorded the same way before they propagate.
        """
        async with self._lock:
            prior = self.prior_text if prior_text is None else prior_text
            try:
                result = await self.orchestrator.run(text, prior, on_progress)
            except BaseException as exc:
                self._record(Turn(text=text, error=exc))
                logger.info(
                    "Turn failed in session %s at stage %s (%s)",
                    self.session_id[:8],
                    getattr(exc, "stage", None),
                    type(exc).__name__,
                )
                raise
            self._record(Turn(text=text, result=result))
            return result


class SessionStore:
    """
    Bounded LRU map of session id -> ConversationSession.

    The least recently used session is evicted once ``max_sessions`` is
    exceeded.
    """

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
    ):
        self.orchestrator = orchestrator
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, ConversationSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str | None = None) -> ConversationSession:
        """Return the session for ``session_id``, creating it when unknown."""
        if session_id and session_id in self._sessions:
            self._sessions.move_to_end(session_id)
            return self._sessions[session_id]

        session = ConversationSession(orchestrator=self.orchestrator)
        if session_id:
            session.session_id = session_id
        self._sessions[session.session_id] = session
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.debug("Evicted session %s", evicted[:8])
        return session

    def clear(self) -> None:
        self._sessions.clear()
