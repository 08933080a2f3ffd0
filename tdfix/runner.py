"""
Run orchestration: fan files out to a bounded worker pool, write the
ones whose content changed, and summarize.

Workers share the transformation list read-only and own their file's
content buffer exclusively. Every submitted file produces a result,
errors included, so the final join always completes.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from . import preconditions, procedures, rules
from .config import EngineConfig
from .errors import ConfigurationError, TdfixError
from .file_scanner import FileScanner
from .manifest import Transformation, TransformationSet
from .transformer import Transformer
from .utils import format_duration, write_preserving_mode

logger = logging.getLogger(__name__)

Reporter = Callable[[str], None]

CHANGE_HEADER = "Apply transformations:"


@dataclass(frozen=True)
class FileResult:
    path: Path
    changed: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class RunSummary:
    root: Path
    total: int
    changed: Tuple[Path, ...]
    failed: Tuple[Tuple[Path, str], ...]
    config_errors: Tuple[ConfigurationError, ...]
    elapsed: float
    dry_run: bool = False

    @property
    def changed_count(self) -> int:
        return len(self.changed)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.config_errors

    def summary_line(self) -> str:
        name = self.root.name or str(self.root)
        return (
            f"{name} fixed {self.changed_count}/{self.total} files "
            f"in {format_duration(self.elapsed)}"
        )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def check_transformation(transformation: Transformation, index: int) -> List[ConfigurationError]:
    """Return every configuration error found in one transformation."""

    errors: List[ConfigurationError] = []

    try:
        rules.parse_filter(transformation.filter)
    except ConfigurationError as e:
        errors.append(e.with_index(index))

    for entry in transformation.preconditions:
        try:
            preconditions.check_precondition(entry)
        except ConfigurationError as e:
            errors.append(e.with_index(index))

    for procedure in transformation.procedures:
        try:
            procedures.resolve(procedure)
        except ConfigurationError as e:
            errors.append(e.with_index(index))

    return errors


def split_valid(
    transformations: Sequence[Transformation],
) -> Tuple[Tuple[Transformation, ...], Tuple[ConfigurationError, ...]]:
    """Separate usable transformations from the errors of the broken ones."""

    valid: List[Transformation] = []
    errors: List[ConfigurationError] = []

    for idx, transformation in enumerate(transformations):
        found = check_transformation(transformation, idx)
        if found:
            errors.extend(found)
        else:
            valid.append(transformation)

    return tuple(valid), tuple(errors)


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


class Runner:
    def __init__(
        self,
        transformations: Sequence[Transformation],
        config: EngineConfig,
        report: Reporter = print,
    ):
        self.config = config
        self.report = report
        self.transformations, self.config_errors = split_valid(transformations)

        self._lock = threading.Lock()
        self._first_change = True

    def run(self, paths: Iterable[Path]) -> RunSummary:
        """
        Process every path and block until all of them are done.

        Raises:
            ConfigurationError: in strict mode, if any transformation is invalid
        """

        start = time.perf_counter()
        paths = list(paths)
        self._first_change = True

        for err in self.config_errors:
            logger.error("%s, transformation disabled", err)
        if self.config.strict and self.config_errors:
            raise self.config_errors[0]

        transformer = Transformer(self.transformations)
        changed: List[Path] = []
        failed: List[Tuple[Path, str]] = []

        if paths and self.transformations:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                futures = [executor.submit(self._process_one, transformer, p) for p in paths]

                for future in as_completed(futures):
                    result = future.result()
                    if result.error is not None:
                        failed.append((result.path, result.error))
                    elif result.changed:
                        changed.append(result.path)

        return RunSummary(
            root=self.config.root,
            total=len(paths),
            changed=tuple(sorted(changed)),
            failed=tuple(sorted(failed)),
            config_errors=self.config_errors,
            elapsed=time.perf_counter() - start,
            dry_run=self.config.dry_run,
        )

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def _process_one(self, transformer: Transformer, path: Path) -> FileResult:
        try:
            original, final = transformer.process(path)
        except OSError as e:
            logger.error("Error reading file %s: %s", path, e.strerror or e)
            return FileResult(path, error=f"read failed: {e.strerror or e}")
        except TdfixError as e:
            logger.error("Error transforming file %s: %s", path, e)
            return FileResult(path, error=str(e))

        if original is None or final == original:
            return FileResult(path)

        if not self.config.dry_run:
            try:
                write_preserving_mode(path, final)
            except OSError as e:
                logger.error("Error writing file %s: %s", path, e.strerror or e)
                return FileResult(path, error=f"write failed: {e.strerror or e}")

        self._report_change(path)
        return FileResult(path, changed=True)

    def _report_change(self, path: Path) -> None:
        with self._lock:
            if self._first_change:
                self.report(CHANGE_HEADER)
                self._first_change = False
            self.report(str(path))


def run(
    paths: Iterable[Path],
    transformations: Sequence[Transformation],
    config: EngineConfig,
    report: Reporter = print,
) -> RunSummary:
    return Runner(transformations, config, report).run(paths)


def fix(
    transformation_set: TransformationSet,
    config: EngineConfig,
    report: Reporter = print,
) -> RunSummary:
    """
    Walk ``config.root`` and apply the transformation set to every file.

    ``config.exclude`` overrides the set's own walk-level exclude when
    given. Directories that cannot be read are reported as failures
    alongside the files that could not be processed.
    """

    start = time.perf_counter()
    exclude = config.exclude or transformation_set.exclude
    scanner = FileScanner(config.root, exclude, config.description_path)
    paths = scanner.scan()

    summary = run(paths, transformation_set.transformations, config, report)
    return replace(
        summary,
        failed=tuple(sorted(scanner.errors + list(summary.failed))),
        elapsed=time.perf_counter() - start,
    )
