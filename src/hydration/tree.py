"""Decoded configuration trees: text decoding, node classification and detached copies.

Every value the engine sees is one of three node kinds. ``Mapping`` nodes are
string-keyed records (``dict`` or ``types.SimpleNamespace``), ``Sequence``
nodes are lists or tuples, and everything else is a ``Scalar``.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Iterator, Mapping
from enum import StrEnum
from pathlib import Path
from types import SimpleNamespace
from typing import cast

import yaml

from hydration.constants import FILE_SUFFIX_FORMATS, SOURCE_JSON, SOURCE_OBJECT, SOURCE_YAML
from hydration.errors import FormatError

logger = logging.getLogger(__name__)

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

_EXCERPT_LIMIT = 60


class NodeKind(StrEnum):
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    SCALAR = "scalar"


def kind_of(value: object) -> NodeKind:
    """Classify ``value`` as a mapping, sequence or scalar node."""

    if is_bare_mapping(value):
        return NodeKind.MAPPING
    if isinstance(value, (list, tuple)):
        return NodeKind.SEQUENCE
    return NodeKind.SCALAR


def is_bare_mapping(value: object) -> bool:
    """True for structurally anonymous records, as opposed to typed instances."""

    return isinstance(value, (Mapping, SimpleNamespace))


def entries(value: object) -> Iterator[tuple[str, object]]:
    """Yield ``(key, value)`` pairs of a mapping node in input order."""

    if isinstance(value, SimpleNamespace):
        yield from vars(value).items()
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            yield str(key), item
        return
    raise FormatError(f"expected a mapping node, got {type(value).__name__}")


def member(value: object, name: str) -> object:
    """Read ``name`` from a mapping node or an instance attribute."""

    if isinstance(value, Mapping):
        return value[name]
    try:
        return getattr(value, name)
    except AttributeError as exc:
        raise KeyError(name) from exc


def detach(value: object) -> object:
    """Copy bare mappings (and sequences holding them) so the source tree stays untouched."""

    if isinstance(value, SimpleNamespace):
        return copy.deepcopy(value)
    if isinstance(value, Mapping):
        return {key: detach(item) for key, item in value.items()}
    if isinstance(value, list):
        return [detach(item) for item in value]
    if isinstance(value, tuple):
        return tuple(detach(item) for item in value)
    return value


def decode_text(config: object, source_format: str) -> object:
    """Decode JSON or YAML text into a tree; ``object`` sources pass through."""

    if source_format == SOURCE_OBJECT:
        return config
    if isinstance(config, bytes):
        config = config.decode("utf-8")
    if not isinstance(config, str):
        raise FormatError(
            f"Cannot decode {type(config).__name__}. Not a string.",
            source_format=source_format,
        )

    if source_format == SOURCE_JSON:
        try:
            decoded = cast("object", json.loads(config))
        except json.JSONDecodeError as exc:
            raise FormatError(
                f"Error parsing source data as json: {exc} (input {_excerpt(config)})",
                source_format=source_format,
            ) from exc
    elif source_format == SOURCE_YAML:
        try:
            decoded = cast("object", yaml.safe_load(config))
        except yaml.YAMLError as exc:
            raise FormatError(
                f"Error parsing source data as yaml: {exc} (input {_excerpt(config)})",
                source_format=source_format,
            ) from exc
    else:
        raise FormatError(
            f"Unknown source data format: {source_format}.", source_format=source_format
        )

    if decoded is None:
        reason = "document decoded to null" if config.strip() else "empty document"
        raise FormatError(
            f"Error parsing source data as {source_format}: {reason} "
            f"(input {_excerpt(config)})",
            source_format=source_format,
        )
    logger.debug("decoded %s document", source_format, extra={"source_format": source_format})
    return decoded


def format_for_path(path: Path) -> str:
    """Return the decode format implied by a file suffix."""

    suffix = path.suffix.lower()
    try:
        return FILE_SUFFIX_FORMATS[suffix]
    except KeyError as exc:
        expected = ", ".join(sorted(FILE_SUFFIX_FORMATS))
        raise FormatError(
            f"Unable to infer source format from {path.name!r}; expected one of: {expected}"
        ) from exc


def load_file(path: str | Path, source_format: str | None = None) -> tuple[str, str]:
    """Read a configuration file and return ``(text, format)``."""

    resolved = Path(path).expanduser()
    fmt = source_format.lower() if source_format else format_for_path(resolved)
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise FormatError(f"unable to read {resolved}: {exc}", source_format=fmt) from exc
    return text, fmt


def _excerpt(text: str) -> str:
    collapsed = " ".join(text.split())
    if len(collapsed) > _EXCERPT_LIMIT:
        collapsed = collapsed[: _EXCERPT_LIMIT - 3] + "..."
    return repr(collapsed)


__all__ = [
    "JSONScalar",
    "JSONValue",
    "NodeKind",
    "decode_text",
    "detach",
    "entries",
    "format_for_path",
    "is_bare_mapping",
    "kind_of",
    "load_file",
    "member",
]
