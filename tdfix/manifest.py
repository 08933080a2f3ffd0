"""
Transformation description loading, validation, and normalization.

This module answers one question:
    "What does the user want the tool to do?"

Responsibilities:
- Load the transformation description file (YAML or TOML, local or remote)
- Validate its structure
- Normalize aliases and defaults
- Expose a clean, immutable Python representation
- Write that representation back out as YAML or TOML

This module does NOT:
- Match files
- Rewrite content
- Walk the filesystem
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple
from urllib.parse import urlparse

import requests
import tomli_w
import yaml

from .config import EXCLUDE_PREFIX, FETCH_TIMEOUT, PATTERN_SEPARATOR
from .errors import DescriptionError

# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Procedure:
    name: str
    params: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Transformation:
    filter: str = ""
    preconditions: Tuple[str, ...] = ()
    procedures: Tuple[Procedure, ...] = ()


@dataclass(frozen=True)
class TransformationSet:
    exclude: str = ""
    transformations: Tuple[Transformation, ...] = field(default_factory=tuple)

    # ------------------------------------------------------------------
    # Loading API
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path) -> "TransformationSet":
        """
        Load a description file from a local path or an http(s) URL.

        Raises:
            DescriptionError: if the file cannot be read or parsed

        Returns:
            TransformationSet
        """

        location = str(path)
        fmt = detect_format(location)

        if is_remote(location):
            raw = fetch_description(location)
        else:
            local = Path(location)
            if not local.is_file():
                raise DescriptionError(f"Description file not found: {local}")
            try:
                raw = local.read_bytes()
            except OSError as e:
                raise DescriptionError(f"Unable to read the description file {local}: {e}")

        return cls.loads(raw, fmt)

    @classmethod
    def loads(cls, raw: bytes | str, fmt: str) -> "TransformationSet":
        """Parse description text already in memory."""

        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DescriptionError(f"Description file is not valid UTF-8: {e}")

        if fmt == "yml":
            try:
                data = yaml.safe_load(raw)
            except yaml.YAMLError as e:
                raise DescriptionError(f"Failed to parse the yaml file: {e}")
        elif fmt == "toml":
            try:
                data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as e:
                raise DescriptionError(f"Failed to parse the toml file: {e}")
        else:
            raise DescriptionError(f"{fmt} format unsupported")

        return cls._from_data(data)

    # ------------------------------------------------------------------
    # Serialization API
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Return the set in the canonical description layout."""

        return {
            "exclude": self.exclude,
            "transformations": [
                {
                    "filter": t.filter,
                    "pre": list(t.preconditions),
                    "proc": [{"name": p.name, "params": list(p.params)} for p in t.procedures],
                }
                for t in self.transformations
            ],
        }

    def dumps(self, fmt: str) -> str:
        """
        Serialize the set as description text.

        Raises:
            DescriptionError: for an unsupported format
        """

        if fmt == "toml":
            return tomli_w.dumps(self.to_dict())
        if fmt == "yml":
            return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)
        raise DescriptionError(f"{fmt} format unsupported")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @classmethod
    def _from_data(cls, data: Any) -> "TransformationSet":
        if data is None:
            return cls()

        # A bare list is the transformation list itself
        if isinstance(data, list):
            data = {"transformations": data}

        if not isinstance(data, Mapping):
            raise DescriptionError(
                f"Description must be a mapping or a list, got {type(data).__name__}"
            )

        data = _lower_keys(data)
        exclude = _as_pattern(data.get("exclude"), "exclude")

        raw_list = data.get("transformations") or []
        if not isinstance(raw_list, list):
            raise DescriptionError("'transformations' must be a list")

        transformations = tuple(
            _parse_transformation(entry, idx) for idx, entry in enumerate(raw_list)
        )
        return cls(exclude=exclude, transformations=transformations)


# ---------------------------------------------------------------------------
# Format / location helpers
# ---------------------------------------------------------------------------


def is_remote(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def detect_format(location: str) -> str:
    """
    Return the normalized format name ("yml" or "toml") from an extension.

    Raises:
        DescriptionError: for any other extension
    """

    name = urlparse(location).path if is_remote(location) else location
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""

    if extension in ("yml", "yaml"):
        return "yml"
    if extension == "toml":
        return "toml"
    raise DescriptionError(f"{extension or name} format unsupported")


def fetch_description(url: str) -> bytes:
    try:
        resp = requests.get(url, timeout=FETCH_TIMEOUT)
    except requests.exceptions.RequestException as e:
        raise DescriptionError(f"Error fetching {url}: {e}")

    if resp.status_code > 299:
        raise DescriptionError(f"Error {resp.status_code} when fetching {url}")
    return resp.content


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _lower_keys(data: Mapping[Any, Any]) -> Dict[str, Any]:
    return {str(k).lower(): v for k, v in data.items()}


def _as_pattern(value: Any, what: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return PATTERN_SEPARATOR.join(value)
    raise DescriptionError(f"'{what}' must be a string or a list of strings")


def _as_str_list(value: Any, what: str, idx: int) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise DescriptionError(f"Transformation #{idx}: '{what}' must be a list")
    return [_as_param(v, what, idx) for v in value]


def _as_param(value: Any, what: str, idx: int) -> str:
    # YAML reads bare ~, yes, true as null/bool; their text is lost by then
    if value is None or isinstance(value, bool):
        raise DescriptionError(
            f"Transformation #{idx}: '{what}' value {value!r} is not a string, quote it"
        )
    if isinstance(value, (Mapping, list)):
        raise DescriptionError(f"Transformation #{idx}: '{what}' values must be scalars")
    return str(value)


def _parse_transformation(entry: Any, idx: int) -> Transformation:
    if not isinstance(entry, Mapping):
        raise DescriptionError(f"Transformation #{idx} must be a mapping")

    entry = _lower_keys(entry)

    parts: List[str] = []
    filt = _as_pattern(entry.get("filter"), "filter")
    if filt:
        parts.append(filt)
    include = _as_pattern(entry.get("include"), "include")
    if include:
        parts.append(include)
    exclude = _as_pattern(entry.get("exclude"), "exclude")
    if exclude:
        parts.extend(
            p if p.startswith(EXCLUDE_PREFIX) else EXCLUDE_PREFIX + p
            for p in exclude.split(PATTERN_SEPARATOR)
        )

    pre = entry.get("pre", entry.get("preconditions"))
    proc = entry.get("proc", entry.get("procedures"))

    procedures: List[Procedure] = []
    for raw in _as_list(proc, "proc", idx):
        procedures.append(_parse_procedure(raw, idx))

    return Transformation(
        filter=PATTERN_SEPARATOR.join(parts),
        preconditions=tuple(_as_str_list(pre, "pre", idx)),
        procedures=tuple(procedures),
    )


def _as_list(value: Any, what: str, idx: int) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (str, Mapping)):
        return [value]
    if not isinstance(value, list):
        raise DescriptionError(f"Transformation #{idx}: '{what}' must be a list")
    return value


def _parse_procedure(raw: Any, idx: int) -> Procedure:
    if isinstance(raw, str):
        return Procedure(name=raw)

    if not isinstance(raw, Mapping):
        raise DescriptionError(
            f"Transformation #{idx}: procedure must be a name or a mapping"
        )

    raw = _lower_keys(raw)
    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise DescriptionError(f"Transformation #{idx}: procedure missing 'name'")

    params = raw.get("params")
    if params is None:
        params = []
    elif not isinstance(params, list):
        params = [params]

    return Procedure(name=name, params=tuple(_as_param(p, "params", idx) for p in params))


def convert_description(source: str | Path, fmt: str, target: str | Path | None = None) -> Path:
    """
    Rewrite a local description file in another format.

    The result lands next to the source with the new extension unless
    ``target`` is given.

    Raises:
        DescriptionError: if the source cannot be loaded, the format is
            unsupported, or the source is already in that format
    """

    if is_remote(str(source)):
        raise DescriptionError(f"Only local description files can be converted: {source}")

    source = Path(source)
    fmt = detect_format(f"x.{fmt}")
    if detect_format(str(source)) == fmt:
        raise DescriptionError(f"{source} is already in {fmt} format")

    text = TransformationSet.load(source).dumps(fmt)
    target = Path(target) if target is not None else source.with_suffix(f".{fmt}")

    try:
        target.write_text(text, encoding="utf-8")
    except OSError as e:
        raise DescriptionError(f"Unable to write {target}: {e.strerror or e}")
    return target
