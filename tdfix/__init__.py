"""
tdfix

A batch source transformation tool: it walks a directory tree and
rewrites the files selected by a transformation description file,
touching only the files whose content actually changes.
"""

__version__ = "0.1.0"

from .config import EngineConfig
from .errors import ConfigurationError, FatalError, TdfixError
from .manifest import Procedure, Transformation, TransformationSet, convert_description
from .rules import matches
from .preconditions import satisfies
from .procedures import apply
from .transformer import Transformer, process_file
from .file_scanner import FileScanner, walk
from .runner import RunSummary, Runner, fix, run

__all__ = [
    "EngineConfig",
    "ConfigurationError",
    "FatalError",
    "TdfixError",
    "Procedure",
    "Transformation",
    "TransformationSet",
    "convert_description",
    "matches",
    "satisfies",
    "apply",
    "Transformer",
    "process_file",
    "FileScanner",
    "walk",
    "RunSummary",
    "Runner",
    "fix",
    "run",
]
