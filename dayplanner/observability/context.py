"""
AI-turn context: the request being answered and when it started.

The active turn lives in a context variable so log records emitted while an
AI round-trip is in flight, or while its decision is applied, carry its id.
"""

import contextvars
import time
import uuid
from datetime import datetime
from typing import Optional

_current_turn: contextvars.ContextVar[Optional["TurnContext"]] = contextvars.ContextVar(
    "current_turn", default=None
)


def generate_turn_id() -> str:
    return f"turn-{uuid.uuid4().hex[:16]}"


def current_turn() -> Optional["TurnContext"]:
    """The innermost active turn, or None outside any turn."""
    return _current_turn.get()


def get_turn_id() -> Optional[str]:
    turn = _current_turn.get()
    return turn.turn_id if turn else None


class TurnContext:
    """
    Scope of one AI round-trip and the decision taken on it.

    Usage:
        with TurnContext(message="walk at 3pm") as turn:
            decision = resolver.resolve(response, turn.message, timeline)
        logger.info(f"{turn.turn_id} took {turn.elapsed:.2f}s")

    Nested turns shadow the outer one until they exit.
    """

    def __init__(self, turn_id: Optional[str] = None, message: str = ""):
        self.turn_id = turn_id or generate_turn_id()
        self.message = message
        self.started_at: Optional[datetime] = None
        self._started: Optional[float] = None
        self._finished: Optional[float] = None
        self._token: Optional[contextvars.Token] = None

    @property
    def elapsed(self) -> float:
        """Seconds since the turn started; frozen once it exits."""
        if self._started is None:
            return 0.0
        end = self._finished if self._finished is not None else time.monotonic()
        return end - self._started

    def __enter__(self) -> "TurnContext":
        self.started_at = datetime.now()
        self._started = time.monotonic()
        self._finished = None
        self._token = _current_turn.set(self)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._finished = time.monotonic()
        if self._token is not None:
            _current_turn.reset(self._token)
            self._token = None
