"""
Filesystem scanning.

This module is responsible for:
- walking the directory tree
- skipping entries matched by the walk-level exclude pattern
- skipping the transformation description file itself

This module does NOT:
- read or rewrite file content
- evaluate transformation filters
- load the description file
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import RootDirectoryError
from .rules import is_excluded, split_patterns

logger = logging.getLogger(__name__)


class FileScanner:
    def __init__(
        self,
        root: str | Path,
        exclude: str = "",
        description_path: Optional[str | Path] = None,
    ):
        self.root = Path(root)
        self.exclude = exclude
        self.description_path = _normalize(description_path) if description_path else None
        self.errors: List[Tuple[Path, str]] = []

        # Fail early on a malformed pattern rather than once per entry
        split_patterns(exclude)

    def scan(self) -> List[Path]:
        """
        Walk the tree and return every file path, sorted.

        Unreadable subdirectories are logged and recorded in ``errors``;
        the walk carries on with the rest of the tree.

        Raises:
            RootDirectoryError: if the root is missing or unreadable
        """

        if not self.root.is_dir():
            raise RootDirectoryError(f"Directory not found: {self.root}")
        try:
            os.scandir(self.root).close()
        except OSError as e:
            raise RootDirectoryError(f"Unable to read directory {self.root}: {e}")

        self.errors = []
        found: List[Path] = []

        for dirpath, dirnames, filenames in os.walk(self.root, onerror=self._on_error):
            # Pruning in place stops os.walk from descending
            dirnames[:] = [d for d in dirnames if not is_excluded(d, self.exclude)]

            for name in filenames:
                if is_excluded(name, self.exclude):
                    continue

                path = Path(dirpath) / name
                if self.description_path is not None and _normalize(path) == self.description_path:
                    logger.debug("Skipping description file %s", path)
                    continue

                found.append(path)

        found.sort()
        logger.debug("Scanned %s: %d file(s), %d error(s)", self.root, len(found), len(self.errors))
        return found

    def _on_error(self, err: OSError) -> None:
        path = Path(err.filename) if err.filename else self.root
        logger.error("Unable to read directory %s: %s", path, err.strerror or err)
        self.errors.append((path, str(err.strerror or err)))


def _normalize(path: str | Path) -> Path:
    return Path(os.path.realpath(os.path.abspath(path)))


def walk(
    root: str | Path,
    exclude: str = "",
    description_path: Optional[str | Path] = None,
) -> List[Path]:
    return FileScanner(root, exclude, description_path).scan()
