"""Blocking wait between submitting a probe and searching for it."""

import time
from abc import ABC, abstractmethod
from collections.abc import Callable

import structlog

from mchk.defaults import WAIT_TICK_SECONDS

logger = structlog.get_logger()


class WaitObserver(ABC):
    """Notified while a wait is in progress (e.g. to animate a spinner)."""

    @abstractmethod
    def on_tick(self, elapsed: float, total: int) -> None:
        """Called after each tick with seconds elapsed so far."""
        ...


class IntervalWaiter:
    """Sleeps for the mail-transit allowance of a test.

    The wait always runs to completion on the calling thread; an observer
    only gets to watch.
    """

    def __init__(
        self,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        tick: float = WAIT_TICK_SECONDS,
    ) -> None:
        self._sleep = sleep
        self._clock = clock
        self._tick = tick

    def wait(self, seconds: int, observer: WaitObserver | None = None) -> None:
        """Block for ``seconds``. Zero returns immediately."""
        if seconds < 0:
            raise ValueError("Wait duration must not be negative")
        if seconds == 0:
            return

        logger.debug("Waiting for mail transit", seconds=seconds)
        if observer is None:
            self._sleep(seconds)
            return

        start = self._clock()
        deadline = start + seconds
        while (remaining := deadline - self._clock()) > 0:
            self._sleep(min(self._tick, remaining))
            try:
                observer.on_tick(min(self._clock() - start, seconds), seconds)
            except Exception as e:
                # Progress display must never cut the wait short
                logger.debug("Wait observer failed", error=str(e))
