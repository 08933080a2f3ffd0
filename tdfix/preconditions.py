"""
Precondition evaluation.

A precondition entry is either ``Name`` or ``Name:argument``. The name
selects a predicate over the current file content; all predicates of a
transformation must hold for its procedures to run.

Unknown names and bad arguments fail closed: the precondition is logged
as a configuration error and evaluates to False.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .config import ARGUMENT_SEPARATOR
from .errors import ConfigurationError, UnknownPreconditionError
from .manifest import Transformation
from .utils import encode_param, is_binary_content

logger = logging.getLogger(__name__)

Predicate = Callable[[Path, bytes, Optional[str]], bool]


@dataclass(frozen=True)
class PreconditionSpec:
    name: str
    func: Predicate
    takes_argument: bool


_REGISTRY: Dict[str, PreconditionSpec] = {}


def register_precondition(name: str, takes_argument: bool = False):
    """Decorator adding a predicate to the registry under ``name``."""

    def decorator(func: Predicate) -> Predicate:
        _REGISTRY[name] = PreconditionSpec(name, func, takes_argument)
        return func

    return decorator


def lookup(name: str) -> Optional[PreconditionSpec]:
    return _REGISTRY.get(name)


def available() -> List[str]:
    return sorted(_REGISTRY)


def split_precondition(entry: str) -> Tuple[str, Optional[str]]:
    name, sep, arg = entry.partition(ARGUMENT_SEPARATOR)
    return name.strip(), (arg if sep else None)


# ---------------------------------------------------------------------------
# Built-in predicates
# ---------------------------------------------------------------------------


@register_precondition("AlwaysTrue")
def _always_true(path, content, arg):
    return True


@register_precondition("AlwaysFalse")
def _always_false(path, content, arg):
    return False


@register_precondition("Contains", takes_argument=True)
def _contains(path, content, arg):
    return encode_param(arg) in content


@register_precondition("NotContains", takes_argument=True)
def _not_contains(path, content, arg):
    return encode_param(arg) not in content


@register_precondition("Matches", takes_argument=True)
def _matches(path, content, arg):
    return re.search(encode_param(arg), content) is not None


@register_precondition("NotMatches", takes_argument=True)
def _not_matches(path, content, arg):
    return re.search(encode_param(arg), content) is None


@register_precondition("IsText")
def _is_text(path, content, arg):
    return not is_binary_content(content)


@register_precondition("PathMatches", takes_argument=True)
def _path_matches(path, content, arg):
    return fnmatch.fnmatchcase(Path(path).name, arg)


# ---------------------------------------------------------------------------
# Validation / evaluation
# ---------------------------------------------------------------------------


def check_precondition(entry: str) -> None:
    """
    Raise if a precondition entry cannot be evaluated.

    Raises:
        UnknownPreconditionError: for unregistered names
        ConfigurationError: for a missing, unexpected or invalid argument
    """

    name, arg = split_precondition(entry)
    spec = lookup(name)
    if spec is None:
        raise UnknownPreconditionError(f"unknown precondition {name!r}")

    if spec.takes_argument and not arg:
        raise ConfigurationError(f"precondition {name!r} needs an argument ({name}:<value>)")
    if not spec.takes_argument and arg is not None:
        raise ConfigurationError(f"precondition {name!r} takes no argument")

    if name in ("Matches", "NotMatches"):
        try:
            re.compile(encode_param(arg))
        except re.error as e:
            raise ConfigurationError(f"invalid pattern in {entry!r}: {e}")


def evaluate(entry: str, path: str | Path, content: bytes) -> bool:
    try:
        check_precondition(entry)
    except ConfigurationError as e:
        logger.error("%s: %s, treated as false", path, e)
        return False

    name, arg = split_precondition(entry)
    return bool(lookup(name).func(Path(path), content, arg))


def satisfies(path: str | Path, content: bytes, transformation: Transformation) -> bool:
    """Return True when every precondition of the transformation holds."""

    for entry in transformation.preconditions:
        if not evaluate(entry, path, content):
            logger.debug("%s: precondition %r not met", path, entry)
            return False
    return True
