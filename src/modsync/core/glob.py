"""Glob-style exclusion patterns.

This module provides:
- compile_glob: Translate a pattern into an anchored, case-insensitive regex
- matches / matches_any: Test a relative path against patterns
- ExclusionPatterns: A reusable set of compiled patterns

Translation rules:
- ``**/`` matches zero or more leading path segments
- ``**`` matches one or more path segments
- ``*`` matches within a single segment (never crosses ``/``)
- everything else is literal
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

_TOKEN = re.compile(r"\*\*/|\*\*|\*")

_REPLACEMENTS = {
    "**/": "(.+/)?",
    "**": "(.+/)?([^/]+)",
    "*": "([^/]+)",
}


def _normalize(path: str) -> str:
    return path.replace("\\", "/")


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into an anchored regex.

    Args:
        pattern: Glob pattern using ``/`` separators.

    Returns:
        Case-insensitive compiled regex matching whole paths.
    """
    pattern = _normalize(pattern)
    parts: list[str] = []
    pos = 0
    for token in _TOKEN.finditer(pattern):
        parts.append(re.escape(pattern[pos : token.start()]))
        parts.append(_REPLACEMENTS[token.group()])
        pos = token.end()
    parts.append(re.escape(pattern[pos:]))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE)


def matches(path: str, pattern: str) -> bool:
    """Check whether a relative path matches a glob pattern."""
    return compile_glob(pattern).match(_normalize(path)) is not None


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    """Check whether a relative path matches any of the patterns."""
    return any(matches(path, pattern) for pattern in patterns)


class ExclusionPatterns:
    """A set of exclusion patterns applied to relative paths."""

    def __init__(self, patterns: Iterable[str] | None = None) -> None:
        self._patterns: list[str] = list(patterns or [])

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """Add an exclusion pattern."""
        self._patterns.append(pattern)

    def is_excluded(self, relative_path: str) -> bool:
        """Check if a relative path is excluded.

        Args:
            relative_path: Path relative to the installation root.

        Returns:
            True if any pattern matches.
        """
        return matches_any(relative_path, self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)
