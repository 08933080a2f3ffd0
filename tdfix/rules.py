"""
Filter evaluation logic.

Given a file path and a transformation, this module decides whether
the file is in scope for that transformation.

A filter is one string of ``|``-separated glob patterns. Patterns
starting with ``!`` exclude, all others include. Patterns are matched
against the base name of the path. Exclusion wins over inclusion, and a
filter with no include pattern includes everything.

Rules DO NOT read files. They only return decisions.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Tuple

from .config import EXCLUDE_PREFIX, PATTERN_SEPARATOR
from .errors import FilterSyntaxError
from .manifest import Transformation


@dataclass(frozen=True)
class FilterRule:
    include: Tuple[str, ...]
    exclude: Tuple[str, ...]

    def matches(self, path: str | Path) -> bool:
        name = Path(path).name

        if self.include and not any(fnmatch.fnmatchcase(name, pat) for pat in self.include):
            return False

        return not any(fnmatch.fnmatchcase(name, pat) for pat in self.exclude)

    def excluded_by(self, path: str | Path) -> Tuple[str, ...]:
        name = Path(path).name
        return tuple(pat for pat in self.exclude if fnmatch.fnmatchcase(name, pat))


@lru_cache(maxsize=256)
def split_patterns(text: str) -> Tuple[str, ...]:
    """
    Split a ``|``-separated pattern string.

    Raises:
        FilterSyntaxError: on empty segments
    """

    if not text or not text.strip():
        return ()

    patterns = tuple(p.strip() for p in text.split(PATTERN_SEPARATOR))
    if any(not p for p in patterns):
        raise FilterSyntaxError(f"empty pattern in filter {text!r}")
    return patterns


@lru_cache(maxsize=256)
def parse_filter(text: str) -> FilterRule:
    """
    Parse a filter string into include and exclude pattern sets.

    Raises:
        FilterSyntaxError: if the filter is malformed
    """

    include = []
    exclude = []

    for pat in split_patterns(text):
        if pat.startswith(EXCLUDE_PREFIX):
            pat = pat[len(EXCLUDE_PREFIX):].strip()
            if not pat:
                raise FilterSyntaxError(f"bare '{EXCLUDE_PREFIX}' in filter {text!r}")
            exclude.append(pat)
        else:
            include.append(pat)

    return FilterRule(include=tuple(include), exclude=tuple(exclude))


def matches(path: str | Path, transformation: Transformation) -> bool:
    return parse_filter(transformation.filter).matches(path)


def is_excluded(path: str | Path, exclude: str) -> bool:
    """Return True if the base name matches the walk-level exclude pattern."""

    name = Path(path).name
    return any(fnmatch.fnmatchcase(name, pat) for pat in split_patterns(exclude))
