"""Key-value persistence for index state."""

import asyncio
import contextlib
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from ..errors import PersistenceError


class StateStore(ABC):
    """Persistence port: JSON-compatible values by string key."""

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    async def put(self, key: str, value: Any) -> None:
        pass


class MemoryStateStore(StateStore):
    """Process-local store, used when persistence is not wanted."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self.data: dict[str, Any] = dict(initial or {})

    async def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    async def put(self, key: str, value: Any) -> None:
        self.data[key] = value


class JsonStateStore(StateStore):
    """All keys in one JSON document, rewritten atomically on every put."""

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path)
        self._data: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, Any]:
        if self._data is None:
            if not self.file_path.exists():
                self._data = {}
            else:
                try:
                    with open(self.file_path, encoding="utf-8") as f:
                        loaded = json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    raise PersistenceError(
                        f"Failed to read index state {self.file_path}: {e}"
                    ) from e
                self._data = loaded if isinstance(loaded, dict) else {}
        return self._data

    async def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    async def put(self, key: str, value: Any) -> None:
        async with self._lock:
            data = dict(self._load())
            data[key] = value
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._atomic_json_write, data)
            self._data = data

    def _atomic_json_write(self, data: dict[str, Any]) -> None:
        """Write to a temp file and rename over the target."""
        temp_file = self.file_path.with_suffix(".tmp")
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            temp_file.replace(self.file_path)
        except (OSError, TypeError, ValueError) as e:
            if temp_file.exists():
                with contextlib.suppress(OSError):
                    temp_file.unlink()
            raise PersistenceError(
                f"Failed to atomically write {self.file_path}: {e}"
            ) from e
