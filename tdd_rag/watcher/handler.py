"""File system watching that delivers change events on the event loop."""

import asyncio
import os
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any

from ..indexer_logging import LogCategory, get_category_logger
from .patterns import should_include

logger = get_category_logger(LogCategory.WATCHER)

try:
    from watchdog.events import FileSystemEventHandler
    from watchdog.observers import Observer

    WATCHDOG_AVAILABLE = True
except ImportError:
    WATCHDOG_AVAILABLE = False
    FileSystemEventHandler = object  # type: ignore[misc,assignment]


class FileEventKind(str, Enum):
    CREATED = "created"
    CHANGED = "changed"
    DELETED = "deleted"


FileEventCallback = Callable[[str, FileEventKind], None]


class WatchSubscription(ABC):
    """An active watch; closing it stops event delivery."""

    @abstractmethod
    def close(self) -> None:
        pass


class FileWatcher(ABC):
    """Watcher port: deliver events for paths matching the given globs."""

    @abstractmethod
    def watch(
        self,
        include_patterns: list[str],
        exclude_patterns: list[str],
        callback: FileEventCallback,
    ) -> WatchSubscription:
        pass


class IndexingEventHandler(FileSystemEventHandler):
    """Filters watchdog events and hands them to the loop thread-safely."""

    def __init__(
        self,
        root: Path,
        include_patterns: list[str],
        exclude_patterns: list[str],
        callback: FileEventCallback,
        loop: asyncio.AbstractEventLoop,
    ):
        super().__init__()
        self.root = root
        self.include_patterns = include_patterns
        self.exclude_patterns = exclude_patterns
        self.callback = callback
        self.loop = loop

        self.events_received = 0
        self.events_ignored = 0

    def on_modified(self, event: Any) -> None:
        if not event.is_directory:
            self._dispatch(event.src_path, FileEventKind.CHANGED)

    def on_created(self, event: Any) -> None:
        if not event.is_directory:
            self._dispatch(event.src_path, FileEventKind.CREATED)

    def on_deleted(self, event: Any) -> None:
        if not event.is_directory:
            self._dispatch(event.src_path, FileEventKind.DELETED)

    def on_moved(self, event: Any) -> None:
        if not event.is_directory:
            self._dispatch(event.src_path, FileEventKind.DELETED)
            self._dispatch(event.dest_path, FileEventKind.CREATED)

    def _dispatch(self, file_path: Any, kind: FileEventKind) -> None:
        self.events_received += 1
        path = os.path.abspath(str(file_path))
        if not should_include(
            path, self.include_patterns, self.exclude_patterns, self.root
        ):
            self.events_ignored += 1
            return
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.callback, path, kind)

    def get_stats(self) -> dict[str, int]:
        return {
            "events_received": self.events_received,
            "events_ignored": self.events_ignored,
        }


class _ObserverSubscription(WatchSubscription):
    def __init__(self, observer: Any, root: Path):
        self._observer = observer
        self._root = root

    def close(self) -> None:
        if self._observer.is_alive():
            self._observer.stop()
            self._observer.join(timeout=2.0)
        logger.info(f"🛑 Stopped watching {self._root}")


class WatchdogFileWatcher(FileWatcher):
    """Recursive watchdog observer rooted at the project directory."""

    def __init__(self, root: Path, loop: asyncio.AbstractEventLoop | None = None):
        if not WATCHDOG_AVAILABLE:
            raise ImportError(
                "Watchdog not available. Install with: pip install watchdog"
            )
        self.root = Path(os.path.abspath(root))
        self._loop = loop

    def watch(
        self,
        include_patterns: list[str],
        exclude_patterns: list[str],
        callback: FileEventCallback,
    ) -> WatchSubscription:
        loop = self._loop or asyncio.get_running_loop()
        handler = IndexingEventHandler(
            self.root, include_patterns, exclude_patterns, callback, loop
        )
        observer = Observer()
        observer.schedule(handler, str(self.root), recursive=True)
        observer.start()
        logger.info(f"👁️ Watching: {self.root}")
        return _ObserverSubscription(observer, self.root)
