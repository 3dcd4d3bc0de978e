"""Fixed-interval poll scheduling."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

from pytriplesolar.const import DEFAULT_POLL_INTERVAL


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_LOGGER = logging.getLogger(__name__)


class PollScheduler:
    """Run a poll cycle immediately and then on a fixed interval.

    The scheduler owns a single background task. Cycles are strictly
    sequential: each one runs under a lock and is bounded by ``cycle_timeout``
    (the interval by default), so a stalled cycle is abandoned when the next
    one is due instead of being doubled up. Ticks that were missed entirely
    are skipped and the original interval grid is kept.

    Exceptions escaping a cycle are logged and never stop the timer.

    Example:
        ```python
        scheduler = PollScheduler(device.poll, interval=3600)
        await scheduler.start()  # first cycle runs right away
        ...
        await scheduler.stop()
        ```
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[Any]],
        interval: float = DEFAULT_POLL_INTERVAL,
        *,
        cycle_timeout: float | None = None,
        name: str = "poll",
    ) -> None:
        """Initialize the scheduler.

        Args:
            cycle: Coroutine function performing one cycle.
            interval: Seconds between cycle starts.
            cycle_timeout: Maximum seconds a cycle may run. Defaults to the interval.
            name: Label used in log messages.
        """
        if interval <= 0:
            msg = f"Interval must be positive, got {interval}"
            raise ValueError(msg)

        self._cycle = cycle
        self._interval = interval
        self._cycle_timeout = cycle_timeout if cycle_timeout is not None else interval
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._cycle_lock = asyncio.Lock()

    @property
    def interval(self) -> float:
        """Get the interval between cycles in seconds."""
        return self._interval

    @property
    def running(self) -> bool:
        """Check if the background timer is active."""
        return self._task is not None and not self._task.done()

    @property
    def cycle_in_flight(self) -> bool:
        """Check if a cycle is currently executing."""
        return self._cycle_lock.locked()

    async def start(self) -> None:
        """Start the timer. Does nothing if it is already running."""
        if self.running:
            _LOGGER.debug("%s scheduler already running", self._name)
            return

        self._task = asyncio.create_task(self._run(), name=f"{self._name}-scheduler")
        _LOGGER.info("Started %s scheduler (interval: %ss)", self._name, self._interval)

    async def stop(self) -> None:
        """Stop the timer, abandoning any in-flight cycle. Idempotent."""
        task, self._task = self._task, None
        if task is None:
            return

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _LOGGER.info("Stopped %s scheduler", self._name)

    async def run_once(self) -> bool:
        """Run one cycle now, unless one is already in flight.

        Returns:
            True if a cycle was run, False if it was skipped.
        """
        if self._cycle_lock.locked():
            _LOGGER.debug("%s cycle already in flight, skipping", self._name)
            return False

        async with self._cycle_lock:
            try:
                async with asyncio.timeout(self._cycle_timeout):
                    await self._cycle()
            except TimeoutError:
                _LOGGER.warning("%s cycle abandoned after %ss", self._name, self._cycle_timeout)
            except Exception:
                _LOGGER.exception("Unexpected error in %s cycle", self._name)
        return True

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_run = loop.time()
        try:
            while True:
                delay = next_run - loop.time()
                if delay > 0:
                    await asyncio.sleep(delay)

                await self.run_once()

                next_run += self._interval
                behind = loop.time() - next_run
                if behind >= self._interval:
                    missed = int(behind // self._interval)
                    next_run += missed * self._interval
                    _LOGGER.warning("Skipped %d missed %s cycle(s)", missed, self._name)
        except asyncio.CancelledError:
            _LOGGER.debug("%s scheduler loop cancelled", self._name)
            raise
