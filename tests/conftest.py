"""Shared fixtures for the tdfix test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict

import pytest


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[..., Path]:
    """Create files from a ``{relative_path: text}`` mapping under tmp_path/root."""

    def _make(files: Dict[str, str], root_name: str = "root") -> Path:
        root = tmp_path / root_name
        root.mkdir(exist_ok=True)
        for rel, text in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return root

    return _make
