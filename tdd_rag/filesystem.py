"""File system port used by the chunker and the index manager."""

import asyncio
import hashlib
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import partial


@dataclass(frozen=True)
class FileStat:
    mtime: float
    size: int


class FileSystem(ABC):
    """Asynchronous access to file contents and metadata."""

    @abstractmethod
    async def read_file(self, path: str) -> bytes:
        """Return the raw file contents."""

    @abstractmethod
    async def stat(self, path: str) -> FileStat:
        """Return modification time (epoch seconds) and size in bytes."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether ``path`` is an existing regular file."""

    async def read_text(self, path: str) -> str:
        data = await self.read_file(path)
        return data.decode("utf-8", errors="replace")


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _stat(path: str) -> FileStat:
    result = os.stat(path)
    return FileStat(mtime=result.st_mtime, size=result.st_size)


class LocalFileSystem(FileSystem):
    """Local disk access with blocking calls moved off the event loop."""

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    async def read_file(self, path: str) -> bytes:
        return await self._run(_read_bytes, path)

    async def stat(self, path: str) -> FileStat:
        return await self._run(_stat, path)

    async def exists(self, path: str) -> bool:
        return await self._run(os.path.isfile, path)


def sha256_checksum(data: bytes) -> str:
    """Default content checksum."""
    return hashlib.sha256(data).hexdigest()
