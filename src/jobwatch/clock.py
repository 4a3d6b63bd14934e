"""Clock and timer abstraction used by the scheduler and the vault.

Production code runs on the asyncio event loop; tests inject a fake clock that
advances time by hand so timer behavior is deterministic.
"""

import asyncio
import time
from typing import Any, Callable, Protocol


class TimerHandle(Protocol):
    """Cancellable handle for a pending callback."""

    def cancel(self) -> None: ...


class Clock(Protocol):
    """Source of time and delayed callbacks."""

    def time(self) -> float:
        """Current time in seconds."""
        ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        """Run callback(*args) after delay seconds."""
        ...


class LoopClock:
    """Clock backed by the running asyncio event loop.

    time() reports wall-clock seconds so next-poll estimates are meaningful to
    callers; scheduling itself uses the loop's monotonic timer.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def time(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> asyncio.TimerHandle:
        return self._get_loop().call_later(max(0.0, delay), callback, *args)
