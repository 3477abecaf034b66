"""File watching and debouncing."""

from .debounce import AsyncioScheduler, Debouncer, ScheduledTask, Scheduler
from .handler import (
    FileEventKind,
    FileWatcher,
    IndexingEventHandler,
    WatchdogFileWatcher,
    WatchSubscription,
)
from .patterns import should_include

__all__ = [
    "AsyncioScheduler",
    "Debouncer",
    "FileEventKind",
    "FileWatcher",
    "IndexingEventHandler",
    "ScheduledTask",
    "Scheduler",
    "WatchdogFileWatcher",
    "WatchSubscription",
    "should_include",
]
