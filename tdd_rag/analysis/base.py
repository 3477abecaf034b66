"""Chunk model and the strategy interface used by the chunker."""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any


class ChunkKind(str, Enum):
    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    OTHER = "other"


@dataclass(frozen=True)
class CodeChunk:
    """A named, typed, line-bounded fragment of a source file.

    Identity is ``(file_path, name, start_line)``; line numbers are 1-based
    and inclusive.
    """

    id: str
    content: str
    file_path: str
    start_line: int
    end_line: int
    kind: ChunkKind
    name: str

    @classmethod
    def create(
        cls,
        file_path: str,
        name: str,
        kind: ChunkKind,
        start_line: int,
        end_line: int,
        content: str,
    ) -> "CodeChunk":
        return cls(
            id=make_chunk_id(file_path, name, start_line),
            content=content,
            file_path=file_path,
            start_line=start_line,
            end_line=end_line,
            kind=kind,
            name=name,
        )

    @property
    def owner_name(self) -> str:
        """Class name for methods, the chunk name otherwise."""
        if self.kind is ChunkKind.METHOD and "." in self.name:
            return self.name.split(".", 1)[0]
        return self.name

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


def make_chunk_id(file_path: str, name: str, start_line: int) -> str:
    return f"{file_path}:{name}:{start_line}"


class ChunkStrategy(ABC):
    """Splits the content of one language family into chunks."""

    SUPPORTED_EXTENSIONS: tuple[str, ...] = ()

    def can_parse(self, file_path: str) -> bool:
        return Path(file_path).suffix.lower() in self.SUPPORTED_EXTENSIONS

    @abstractmethod
    def chunk(self, file_path: str, content: str) -> list[CodeChunk]:
        """Return the chunks found in ``content``, possibly none."""
