"""
Procedure registry and application.

A procedure is a pure rewrite ``(content, params) -> content``. Each
registered procedure declares how many string parameters it takes.
Looking up an unknown name or passing the wrong number of parameters
is a configuration error, never a silent no-op.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .errors import ProcedureArgumentError, UnknownProcedureError
from .manifest import Procedure
from .utils import encode_param

Rewrite = Callable[[bytes, Tuple[str, ...]], bytes]


@dataclass(frozen=True)
class ProcedureSpec:
    name: str
    func: Rewrite
    arity: int


_REGISTRY: Dict[str, ProcedureSpec] = {}


def register_procedure(name: str, arity: int):
    """Decorator adding a rewrite function to the registry under ``name``."""

    def decorator(func: Rewrite) -> Rewrite:
        _REGISTRY[name] = ProcedureSpec(name, func, arity)
        return func

    return decorator


def lookup(name: str) -> Optional[ProcedureSpec]:
    return _REGISTRY.get(name)


def available() -> List[str]:
    return sorted(_REGISTRY)


# ---------------------------------------------------------------------------
# Built-in procedures
# ---------------------------------------------------------------------------


@register_procedure("Replace", arity=2)
def _replace(content: bytes, params: Tuple[str, ...]) -> bytes:
    old, new = params
    return content.replace(encode_param(old), encode_param(new))


@register_procedure("ReplaceRegex", arity=2)
def _replace_regex(content: bytes, params: Tuple[str, ...]) -> bytes:
    pattern, replacement = params
    try:
        return re.sub(encode_param(pattern), encode_param(replacement), content)
    except re.error as e:
        raise ProcedureArgumentError(f"invalid replacement for 'ReplaceRegex': {e}")


@register_procedure("Delete", arity=1)
def _delete(content: bytes, params: Tuple[str, ...]) -> bytes:
    return content.replace(encode_param(params[0]), b"")


@register_procedure("Prepend", arity=1)
def _prepend(content: bytes, params: Tuple[str, ...]) -> bytes:
    return encode_param(params[0]) + content


@register_procedure("Append", arity=1)
def _append(content: bytes, params: Tuple[str, ...]) -> bytes:
    return content + encode_param(params[0])


# ---------------------------------------------------------------------------
# Validation / application
# ---------------------------------------------------------------------------


def resolve(procedure: Procedure) -> ProcedureSpec:
    """
    Return the registry entry for a procedure after checking its params.

    Raises:
        UnknownProcedureError: if the name is not registered
        ProcedureArgumentError: if the parameter count or a pattern is wrong
    """

    spec = lookup(procedure.name)
    if spec is None:
        raise UnknownProcedureError(f"unknown procedure {procedure.name!r}")

    if len(procedure.params) != spec.arity:
        raise ProcedureArgumentError(
            f"procedure {procedure.name!r} takes {spec.arity} param(s), "
            f"got {len(procedure.params)}"
        )

    if procedure.name == "Replace" and not procedure.params[0]:
        raise ProcedureArgumentError("procedure 'Replace' needs a non-empty search string")

    if procedure.name == "ReplaceRegex":
        try:
            compiled = re.compile(encode_param(procedure.params[0]))
        except re.error as e:
            raise ProcedureArgumentError(f"invalid pattern for 'ReplaceRegex': {e}")
        check_template(compiled, procedure.params[1])

    return spec


# Escapes a replacement template may contain besides group references
_TEMPLATE_ESCAPES = set("abfnrtv\\")

_TEMPLATE_TOKEN = re.compile(r"\\(?:g<([^>]*)>|([1-9][0-9]?)|(g)|(.))", re.DOTALL)


def check_template(compiled: re.Pattern, template: str) -> None:
    """
    Check every group reference of a replacement template.

    Raises:
        ProcedureArgumentError: on a reference to a missing group or an
            escape the template syntax rejects
    """

    for m in _TEMPLATE_TOKEN.finditer(template):
        named, numbered, bare_g, other = m.groups()

        if bare_g is not None:
            raise ProcedureArgumentError(
                f"invalid replacement for 'ReplaceRegex': missing group name after \\g in {template!r}"
            )

        if named is not None:
            if named.isdigit():
                numbered = named
            elif named not in compiled.groupindex:
                raise ProcedureArgumentError(
                    f"invalid replacement for 'ReplaceRegex': unknown group name {named!r}"
                )
            else:
                continue

        if numbered is not None:
            if int(numbered) > compiled.groups:
                raise ProcedureArgumentError(
                    f"invalid replacement for 'ReplaceRegex': invalid group reference {numbered}"
                )
            continue

        if other is not None and other.isascii() and other.isalpha() and other not in _TEMPLATE_ESCAPES:
            raise ProcedureArgumentError(
                f"invalid replacement for 'ReplaceRegex': bad escape \\{other}"
            )


def apply(content: bytes, procedure: Procedure) -> bytes:
    spec = resolve(procedure)
    return spec.func(content, procedure.params)


def apply_all(content: bytes, procedures: Tuple[Procedure, ...]) -> bytes:
    for procedure in procedures:
        content = apply(content, procedure)
    return content
