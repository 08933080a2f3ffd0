"""
Content transformation.

This module runs one file through the ordered transformations of a
description. It is intentionally dumb about concurrency and
filesystem traversal, and it never writes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Tuple

from . import preconditions, procedures, rules
from .manifest import Transformation

logger = logging.getLogger(__name__)


class Transformer:
    def __init__(self, transformations: Iterable[Transformation]):
        self.transformations = tuple(transformations)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(self, path: Path) -> Tuple[Optional[bytes], Optional[bytes]]:
        """
        Apply every matching transformation to a file's content.

        The file is read at most once, when the first transformation
        matches. Preconditions see the content as rewritten by the
        earlier transformations.

        Returns:
            (original, final), both None when no transformation matched
        """

        original: Optional[bytes] = None
        current: Optional[bytes] = None

        for idx, transformation in enumerate(self.transformations):
            if not rules.matches(path, transformation):
                continue

            if original is None:
                original = Path(path).read_bytes()
                current = original

            if not preconditions.satisfies(path, current, transformation):
                continue

            logger.debug("%s: applying transformation #%d", path, idx)
            current = procedures.apply_all(current, transformation.procedures)

        return original, current


def process_file(
    path: Path, transformations: Iterable[Transformation]
) -> Tuple[Optional[bytes], Optional[bytes]]:
    return Transformer(transformations).process(path)
