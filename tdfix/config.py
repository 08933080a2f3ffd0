"""
Global configuration and environment handling.

This module is responsible for:
- Defining global constants and defaults
- Reading run parameters from the environment
- Providing the immutable run configuration handed to the engine

Nothing in this file should depend on:
- the filesystem
- the description file structure
- rule evaluation
- CLI arguments
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Optional

# ---------------------------------------------------------------------------
# Tool versioning
# ---------------------------------------------------------------------------

TOOL_VERSION: Final[str] = "0.1.0"

# ---------------------------------------------------------------------------
# Default behavior
# ---------------------------------------------------------------------------

DEFAULT_DESCRIPTION_PATH: Final[str] = "./tdf.yml"
DEFAULT_ROOT: Final[str] = "./"

PATTERN_SEPARATOR: Final[str] = "|"
EXCLUDE_PREFIX: Final[str] = "!"
ARGUMENT_SEPARATOR: Final[str] = ":"

# Bytes sampled when deciding whether content is binary
BINARY_SAMPLE_SIZE: Final[int] = 1024

FETCH_TIMEOUT: Final[float] = 30.0

# Same default as concurrent.futures.ThreadPoolExecutor
DEFAULT_MAX_WORKERS: Final[int] = min(32, (os.cpu_count() or 1) + 4)

# ---------------------------------------------------------------------------
# Environment variable names
# ---------------------------------------------------------------------------

ENV_WORKERS: Final[str] = "TDFIX_WORKERS"
ENV_LOG_LEVEL: Final[str] = "TDFIX_LOG_LEVEL"

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    """Run parameters passed explicitly into the engine."""

    root: Path
    description_path: Optional[Path] = None
    exclude: str = ""
    max_workers: int = DEFAULT_MAX_WORKERS
    dry_run: bool = False
    strict: bool = False

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")


def load_worker_count(override: Optional[int] = None) -> int:
    """
    Return the worker pool size.

    An explicit override wins, then the environment, then the default.

    Raises:
        RuntimeError: if the environment holds a non-positive or
            non-numeric value
    """

    if override is not None:
        return override

    raw = os.getenv(ENV_WORKERS)
    if not raw:
        return DEFAULT_MAX_WORKERS

    try:
        count = int(raw)
    except ValueError:
        raise RuntimeError(f"{ENV_WORKERS} must be an integer, got {raw!r}")
    if count < 1:
        raise RuntimeError(f"{ENV_WORKERS} must be positive, got {count}")
    return count


def get_log_level(verbosity: int = 0) -> int:
    """
    Map CLI verbosity to a logging level.

    The environment takes precedence when set.
    """

    raw = os.getenv(ENV_LOG_LEVEL)
    if raw:
        level = logging.getLevelName(raw.upper())
        if isinstance(level, int):
            return level

    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def configure_logging(verbosity: int = 0) -> None:
    logging.basicConfig(
        level=get_log_level(verbosity),
        format="%(levelname)s %(name)s: %(message)s",
    )
