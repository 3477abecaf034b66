"""Heuristic extraction of the symbols exercised by test files.

The result is a best-effort signal, not ground truth: any identifier that
is called, asserted on or constructed inside a test counts as tested.
"""

import re

from ..filesystem import FileSystem, LocalFileSystem
from ..indexer_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.ANALYSIS)

CALL_PATTERN = re.compile(
    r"(?:assert\.(?:ok|strictEqual|equal|deepStrictEqual)\(\s*([a-zA-Z0-9_.]+)"
    r"|([a-zA-Z0-9_.]+)\s*\()"
    r"|new\s+([a-zA-Z0-9_]+)\s*\("
)

FRAMEWORK_DENYLIST = frozenset(
    {
        # test frameworks
        "test",
        "it",
        "describe",
        "suite",
        "beforeEach",
        "afterEach",
        "beforeAll",
        "afterAll",
        "setup",
        "teardown",
        "sandbox",
        "assert",
        "sinon",
        "expect",
        "jest",
        "pytest",
        "mock",
        "patch",
        "fs",
        "vscode",
        "self",
        "super",
        # keywords followed by parentheses
        "if",
        "elif",
        "for",
        "while",
        "switch",
        "catch",
        "return",
        "function",
        "typeof",
        "await",
        "async",
        "yield",
        "and",
        "or",
        "not",
        "in",
        "with",
        "lambda",
    }
)


def extract_tested_symbols(content: str) -> set[str]:
    """Return base identifiers called, asserted on or constructed in ``content``."""
    symbols = set()
    for match in CALL_PATTERN.finditer(content):
        name = match.group(1) or match.group(2) or match.group(3)
        if not name:
            continue
        base = name.split(".", 1)[0]
        if base and base not in FRAMEWORK_DENYLIST and not base[0].isdigit():
            symbols.add(base)
    return symbols


class CoverageAnalyzer:
    """Unions tested-symbol sets across test files."""

    def __init__(self, file_system: FileSystem | None = None):
        self.file_system = file_system or LocalFileSystem()

    def analyze_text(self, content: str) -> set[str]:
        return extract_tested_symbols(content)

    async def analyze(self, test_file_paths: list[str]) -> set[str]:
        tested: set[str] = set()
        for path in test_file_paths:
            try:
                content = await self.file_system.read_text(path)
            except OSError as e:
                logger.warning(
                    f"⚠️ Skipping unreadable test file {path}: {e}",
                    extra={"file_path": path},
                )
                continue
            tested |= extract_tested_symbols(content)
        logger.debug(
            f"Found {len(tested)} tested symbols in {len(test_file_paths)} test files"
        )
        return tested
