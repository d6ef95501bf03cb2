"""Timer service used by every component that waits.

Components never call ``asyncio.sleep`` directly; they schedule callbacks
through a ``Timers`` instance so that tests can swap in a simulated clock.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class TimerHandle(ABC):
    """A scheduled one-shot or repeating callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop the callback from firing again. Safe to call twice."""
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool: ...


class Timers(ABC):
    """Clock and scheduler abstraction."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as a timezone-aware datetime."""
        ...

    @abstractmethod
    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""
        ...

    @abstractmethod
    def call_every(self, period: float, callback: TimerCallback) -> TimerHandle:
        """Run ``callback`` every ``period`` seconds until cancelled.

        A firing does not wait for the previous one to finish; callers that
        need serialization must guard for it.
        """
        ...


class _TaskHandle(TimerHandle):
    def __init__(self, task: asyncio.Task):
        self._task = task
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioTimers(Timers):
    """Timers backed by the running asyncio event loop."""

    def __init__(self) -> None:
        self._callbacks: set[asyncio.Task] = set()

    def now(self) -> datetime:
        return datetime.now(UTC)

    def _spawn(self, callback: TimerCallback) -> None:
        task = asyncio.create_task(self._run_callback(callback))
        self._callbacks.add(task)
        task.add_done_callback(self._callbacks.discard)

    async def _run_callback(self, callback: TimerCallback) -> None:
        try:
            await callback()
        except Exception as e:
            logger.exception(f"Timer callback failed: {e}")

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        async def fire_once() -> None:
            await asyncio.sleep(delay)
            await self._run_callback(callback)

        return _TaskHandle(asyncio.create_task(fire_once()))

    def call_every(self, period: float, callback: TimerCallback) -> TimerHandle:
        async def fire_repeatedly() -> None:
            while True:
                await asyncio.sleep(period)
                self._spawn(callback)

        return _TaskHandle(asyncio.create_task(fire_repeatedly()))
