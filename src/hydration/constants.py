"""Stable constants shared across the hydration engine."""

from __future__ import annotations

from typing import Final

# Decode formats understood by the hydrator.
SOURCE_JSON: Final[str] = "json"
SOURCE_YAML: Final[str] = "yaml"
SOURCE_OBJECT: Final[str] = "object"
SOURCE_FORMATS: Final[tuple[str, ...]] = (SOURCE_JSON, SOURCE_YAML, SOURCE_OBJECT)

# File suffix to decode format.
FILE_SUFFIX_FORMATS: Final[dict[str, str]] = {
    ".json": SOURCE_JSON,
    ".yaml": SOURCE_YAML,
    ".yml": SOURCE_YAML,
}

DEFAULT_SOURCE: Final[str] = SOURCE_JSON
DEFAULT_STRICT: Final[bool] = True
DEFAULT_HYDRATE_METHOD: Final[str] = "hydrate"
DEFAULT_MAX_DEPTH: Final[int] = 64

# Error message prefixes callers may match on.
CONFIGURE_PROPERTY_PREFIX: Final[str] = "Unable to configure property"
CONSTRUCT_PREFIX: Final[str] = "Unable to construct: "
CLASS_NOT_FOUND_PREFIX: Final[str] = "Class not found: "

# Target names starting with this marker are routed through a setter only.
VIRTUAL_TARGET_MARKER: Final[str] = "*"

__all__ = [
    "CLASS_NOT_FOUND_PREFIX",
    "CONFIGURE_PROPERTY_PREFIX",
    "CONSTRUCT_PREFIX",
    "DEFAULT_HYDRATE_METHOD",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_SOURCE",
    "DEFAULT_STRICT",
    "FILE_SUFFIX_FORMATS",
    "SOURCE_FORMATS",
    "SOURCE_JSON",
    "SOURCE_OBJECT",
    "SOURCE_YAML",
    "VIRTUAL_TARGET_MARKER",
]
