"""
Repeating background task.

Runs a coroutine over and over with a delay between runs. The delay is
re-read after every run, so a component can lengthen or shorten its own
cadence (the price feed does this for backoff). Sleep and clock are
injectable so tests can drive many cycles without wall-clock waits.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable


logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
ClockFn = Callable[[], float]


class RepeatingTask:
    """
    Self-rescheduling periodic task.

    Two modes:
    - self-rescheduling (default): the next run starts ``delay`` seconds
      after the previous run finished, so a slow run pushes the schedule back.
    - fixed-rate: the time spent running is subtracted from the delay, so
      runs start on a steady cadence.

    Runs are strictly sequential; an exception in one run is logged and the
    schedule continues.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], Awaitable[object]],
        delay: float | Callable[[], float],
        initial_delay: float = 0.0,
        fixed_rate: bool = False,
        sleep: SleepFn = asyncio.sleep,
        clock: ClockFn = time.monotonic,
    ) -> None:
        """
        Initialize the task.

        Args:
            name: Name used in log lines.
            callback: Coroutine function invoked once per run.
            delay: Seconds between runs, or a callable returning it.
            initial_delay: Seconds to wait before the first run.
            fixed_rate: Subtract run duration from the delay.
            sleep: Awaitable sleep function.
            clock: Monotonic clock in seconds.
        """
        self._name = name
        self._callback = callback
        self._delay = delay if callable(delay) else (lambda: float(delay))
        self._initial_delay = initial_delay
        self._fixed_rate = fixed_rate
        self._sleep = sleep
        self._clock = clock

        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._runs = 0
        self._errors = 0

    def next_delay(self, started_at: float) -> float:
        """Delay before the next run given when the last one started."""
        delay = max(0.0, self._delay())
        if self._fixed_rate:
            elapsed = self._clock() - started_at
            delay = max(0.0, delay - elapsed)
        return delay

    async def run(self, max_runs: int | None = None) -> None:
        """
        Run the loop in the current task.

        Args:
            max_runs: Stop after this many runs (None = until stopped).
        """
        self._running = True
        try:
            if self._initial_delay > 0:
                await self._sleep(self._initial_delay)

            while self._running:
                started_at = self._clock()
                try:
                    await self._callback()
                except Exception as e:
                    self._errors += 1
                    logger.error(f"{self._name} run failed: {e}", exc_info=True)
                finally:
                    self._runs += 1

                if max_runs is not None and self._runs >= max_runs:
                    break

                await self._sleep(self.next_delay(started_at))
        finally:
            self._running = False

    def start(self) -> asyncio.Task[None]:
        """Start the loop as a background task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name=self._name)
            logger.info(f"{self._name} started")
        return self._task

    async def stop(self) -> None:
        """Stop the loop and wait for the background task to finish."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info(f"{self._name} stopped")

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def runs(self) -> int:
        """Number of completed runs."""
        return self._runs

    @property
    def errors(self) -> int:
        """Number of runs that raised."""
        return self._errors
