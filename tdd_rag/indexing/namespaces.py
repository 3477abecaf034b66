"""Test vs. source classification by path convention."""

import fnmatch
from pathlib import Path

from ..storage.base import Namespace
from ..watcher.patterns import relative_posix

TEST_DIRECTORIES = frozenset({"test", "tests", "__tests__", "spec"})

TEST_FILE_PATTERNS = (
    "*.test.*",
    "*.spec.*",
    "test_*.py",
    "*_test.py",
    "*_test.go",
    "*Test.java",
    "*Tests.java",
    "*Tests.cs",
    "*_spec.rb",
)


def is_test_file(file_path: str, root: Path | None = None) -> bool:
    rel_path = relative_posix(file_path, root)
    *directories, name = rel_path.split("/")
    if any(part in TEST_DIRECTORIES for part in directories):
        return True
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in TEST_FILE_PATTERNS)


def classify_namespace(file_path: str, root: Path | None = None) -> Namespace:
    return Namespace.TEST if is_test_file(file_path, root) else Namespace.SOURCE
