"""
Shared utility helpers.

This module contains small, reusable helpers that do not belong
to filter evaluation, content rewriting, or run orchestration.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from .config import BINARY_SAMPLE_SIZE


# ---------------------------------------------------------------------------
# Byte helpers
# ---------------------------------------------------------------------------


def encode_param(value: str) -> bytes:
    """Encode a procedure or precondition argument for byte matching."""
    return value.encode("utf-8")


def is_binary_content(data: bytes, sample_size: int = BINARY_SAMPLE_SIZE) -> bool:
    """Heuristically determine whether content is binary."""
    return b"\x00" in data[:sample_size]


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def write_preserving_mode(path: Path, data: bytes) -> None:
    """
    Replace a file's content in one step, keeping its permission bits.

    The new content goes to a temporary file next to the target which is
    then renamed over it, so the original bytes stay intact until the
    full buffer is on disk.
    """

    # Write through symlinks instead of replacing them
    path = Path(os.path.realpath(path))
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tdfix", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Render an elapsed time the way a human reads it (``1.5s``, ``320ms``)."""
    if seconds >= 60:
        minutes, rest = divmod(seconds, 60)
        return f"{int(minutes)}m{rest:.1f}s"
    if seconds >= 1:
        return f"{seconds:.2f}s"
    if seconds >= 0.001:
        return f"{seconds * 1000:.1f}ms"
    return f"{seconds * 1_000_000:.0f}µs"
