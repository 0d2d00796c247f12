"""Wildcard matching for JDK version strings.

``*`` matches any run of characters (including none) and ``?`` matches a
single character. Everything else is literal, so a pattern like ``11.0.2+9``
does not need escaping. Matching ignores case and covers the whole candidate.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Pattern


class VersionMatcher:
    def __init__(self, pattern: str) -> None:
        self.pattern = pattern or ""
        self._regex = _compile(self.pattern)

    def match(self, candidate: str) -> bool:
        return self._regex.fullmatch(candidate or "") is not None

    def __repr__(self) -> str:
        return f"VersionMatcher({self.pattern!r})"


@lru_cache(maxsize=128)
def _compile(pattern: str) -> Pattern[str]:
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def match_version(pattern: str, candidate: str) -> bool:
    return VersionMatcher(pattern).match(candidate)
