"""
Error taxonomy.

Configuration errors describe a transformation that cannot be applied
as written. They are reported per transformation and the offending
transformation is disabled.

Fatal errors mean no transformation can be validly defined or no tree
can be walked. They abort the run before any file is processed.

Per-file I/O problems are plain ``OSError`` and are never wrapped.
"""

from __future__ import annotations

from typing import Optional


class TdfixError(RuntimeError):
    """Base class for all errors raised by tdfix."""


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigurationError(TdfixError):
    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.index = index

    def with_index(self, index: int) -> "ConfigurationError":
        self.index = index
        return self

    def __str__(self) -> str:
        if self.index is None:
            return self.message
        return f"transformation #{self.index}: {self.message}"


class FilterSyntaxError(ConfigurationError):
    pass


class UnknownPreconditionError(ConfigurationError):
    pass


class UnknownProcedureError(ConfigurationError):
    pass


class ProcedureArgumentError(ConfigurationError):
    pass


# ---------------------------------------------------------------------------
# Fatal errors
# ---------------------------------------------------------------------------


class FatalError(TdfixError):
    pass


class DescriptionError(FatalError):
    """The transformation description file is unreadable or invalid."""


class RootDirectoryError(FatalError):
    """The directory to transform does not exist or cannot be listed."""
