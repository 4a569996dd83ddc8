"""
Cooperative cancellation for turns.

A token is created per turn and handed down to every blocking call (LLM,
classifier, tool, retry sleep). Calls check it before starting and use its
remaining time as their network timeout. An explicit cancel() is seen at
the next check or retry wait; a request already in flight is not aborted.
"""

import threading
import time
from typing import Optional

from .errors import TurnCancelled


class CancellationToken:
    """Explicit cancel flag plus an optional deadline."""

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = (
            time.monotonic() + timeout if timeout is not None else None
        )
        self._reason = ""

    @classmethod
    def none(cls) -> "CancellationToken":
        """A token that never fires on its own."""
        return cls()

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Request cancellation of everything using this token."""
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """True once cancelled or past the deadline."""
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._reason = self._reason or "deadline exceeded"
            return True
        return False

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        """Raise TurnCancelled if the token has fired."""
        if self.cancelled:
            raise TurnCancelled(self._reason or "cancelled")

    def wait(self, seconds: float) -> None:
        """Sleep up to ``seconds``, waking early and raising on cancellation."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        if seconds > 0:
            self._event.wait(seconds)
        self.raise_if_cancelled()
