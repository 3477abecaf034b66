"""Glob matching for include/exclude file patterns."""

import fnmatch
import os
from pathlib import Path


def relative_posix(file_path: str, root: Path | None) -> str:
    """Path relative to ``root`` in posix form, or the path itself when outside it."""
    path = Path(file_path)
    if root is not None:
        try:
            path = Path(os.path.abspath(path)).relative_to(os.path.abspath(root))
        except ValueError:
            pass
    return path.as_posix()


def matches_pattern(rel_path: str, pattern: str) -> bool:
    """``**/`` also matches at the top level; a trailing ``/`` names a directory."""
    if pattern.endswith("/"):
        directory = pattern.rstrip("/")
        return directory in rel_path.split("/")[:-1]
    if fnmatch.fnmatch(rel_path, pattern):
        return True
    if pattern.startswith("**/"):
        return matches_pattern(rel_path, pattern[3:])
    if "/" not in pattern:
        return fnmatch.fnmatch(rel_path.rsplit("/", 1)[-1], pattern)
    return False


def should_include(
    file_path: str,
    include_patterns: list[str],
    exclude_patterns: list[str],
    root: Path | None = None,
) -> bool:
    rel_path = relative_posix(file_path, root)
    if any(matches_pattern(rel_path, p) for p in exclude_patterns):
        return False
    if not include_patterns:
        return True
    return any(matches_pattern(rel_path, p) for p in include_patterns)
