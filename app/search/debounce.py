"""Debounced buffer for the free-text search box.

``raw`` follows every keystroke so the UI can echo it; ``committed`` only
changes once ``raw`` has been stable for the quiet interval.  Only the
committed value reaches the Query Spec, which keeps typing from issuing one
search request per keystroke.
"""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

#: Quiet interval (seconds) before a typed value is committed.
DEFAULT_QUIET_INTERVAL = 0.5


class DebouncedInput:
    """Commit the latest typed value after a quiet period.

    Args:
        on_commit: Called with the new committed value, once per commit.
        delay: Quiet interval in seconds.
        loop: Event loop used for scheduling; defaults to the running loop.
        initial: Starting value for both ``raw`` and ``committed``.
    """

    def __init__(
        self,
        on_commit: Callable[[str], None],
        delay: float = DEFAULT_QUIET_INTERVAL,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        initial: str = "",
    ):
        self._on_commit = on_commit
        self._delay = delay
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self.raw = initial
        self.committed = initial

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def type(self, text: str) -> None:
        """Record a keystroke and restart the quiet-interval timer."""
        self.raw = text
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        """Drop the pending commit, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        """Commit ``raw`` immediately (e.g. on form submit)."""
        self.cancel()
        self._commit()

    def reset(self, value: str) -> None:
        """Adopt *value* without notifying, used when navigation changes the text."""
        self.cancel()
        self.raw = value
        self.committed = value

    def _fire(self) -> None:
        self._handle = None
        self._commit()

    def _commit(self) -> None:
        if self.raw == self.committed:
            return
        self.committed = self.raw
        logger.debug(f"Committed search text {self.committed!r}")
        self._on_commit(self.committed)
