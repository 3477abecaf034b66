"""Scheduled-task abstraction and per-key debouncing for file events."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, Generic, TypeVar

from ..indexer_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.WATCHER)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ScheduledTask(ABC):
    """Handle for a callback scheduled to run later."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running; no-op once it has run."""

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class Scheduler(ABC):
    """Source of delayed and repeating callbacks."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], Any]) -> ScheduledTask:
        pass

    def call_repeating(
        self, interval: float, callback: Callable[[], Any]
    ) -> ScheduledTask:
        """Run ``callback`` every ``interval`` seconds until cancelled."""
        return _RepeatingTask(self, interval, callback)


class _RepeatingTask(ScheduledTask):
    def __init__(
        self, scheduler: Scheduler, interval: float, callback: Callable[[], Any]
    ):
        self._scheduler = scheduler
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._current = scheduler.call_later(interval, self._fire)

    def _fire(self) -> Any:
        if self._cancelled:
            return None
        self._current = self._scheduler.call_later(self._interval, self._fire)
        return self._callback()

    def cancel(self) -> None:
        self._cancelled = True
        self._current.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class _AsyncioTask(ScheduledTask):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running event loop's timers.

    Coroutine callbacks are wrapped in tasks; the scheduler keeps a
    reference to them until they finish.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ScheduledTask:
        return _AsyncioTask(self.loop.call_later(delay, self._run, callback))

    def _run(self, callback: Callable[[], Any]) -> None:
        result = callback()
        if asyncio.iscoroutine(result):
            task = self.loop.create_task(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for coroutine callbacks that are still running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class Debouncer(Generic[K, V]):
    """One timer slot per key, reset on every event.

    When a slot fires, ``action`` runs once with the most recent value
    submitted for that key.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        delay: float,
        action: Callable[[K, V], Awaitable[None]],
    ):
        self.scheduler = scheduler
        self.delay = delay
        self.action = action
        self._slots: dict[K, ScheduledTask] = {}
        self._latest: dict[K, V] = {}

    def submit(self, key: K, value: V) -> None:
        existing = self._slots.pop(key, None)
        if existing is not None:
            existing.cancel()
        self._latest[key] = value
        self._slots[key] = self.scheduler.call_later(
            self.delay, lambda: self._on_timer(key)
        )

    def _on_timer(self, key: K) -> Awaitable[None] | None:
        self._slots.pop(key, None)
        if key not in self._latest:
            return None
        return self._run_action(key, self._latest.pop(key))

    async def _run_action(self, key: K, value: V) -> None:
        try:
            await self.action(key, value)
        except Exception as e:
            logger.error(f"❌ Debounced action failed for {key}: {e}")

    def pending(self) -> list[K]:
        return list(self._slots)

    def cancel_all(self) -> None:
        for slot in self._slots.values():
            slot.cancel()
        self._slots.clear()
        self._latest.clear()
