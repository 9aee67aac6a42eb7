"""Per-call hydration options threaded through every recursive descent."""

from __future__ import annotations

import weakref
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Final

from hydration.config import HydrationSettings, active_settings
from hydration.constants import SOURCE_FORMATS, SOURCE_OBJECT
from hydration.errors import HydrationError, SchemaError

StrictPolicy = bool | type[BaseException]

_KNOWN_OPTIONS: Final[frozenset[str]] = frozenset({"source", "strict", "parent", "depth"})


@dataclass(frozen=True, slots=True)
class HydrationOptions:
    """Options for one hydrate call.

    ``strict`` is either a flag or an exception class raised (instead of
    ``UndefinedPropertyError``) when the input names an unknown property.
    ``parent`` only ever holds a weak reference to the enclosing object.
    """

    source: str | None = None
    strict: StrictPolicy | None = None
    parent: weakref.ReferenceType[Any] | None = None
    depth: int = 0

    @classmethod
    def coerce(cls, value: HydrationOptions | Mapping[str, object] | None) -> HydrationOptions:
        """Accept an options instance, a plain mapping, or ``None``."""

        if value is None:
            return cls()
        if isinstance(value, HydrationOptions):
            return value
        if not isinstance(value, Mapping):
            raise SchemaError(f"options must be a mapping, got {type(value).__name__}")
        unknown = sorted(key for key in value if key not in _KNOWN_OPTIONS)
        if unknown:
            raise SchemaError(f"unknown hydration option(s): {', '.join(unknown)}")

        parent = value.get("parent")
        depth = value.get("depth", 0)
        if isinstance(depth, bool) or not isinstance(depth, int):
            raise SchemaError("option 'depth' must be an integer")
        source = value.get("source")
        if source is not None and not isinstance(source, str):
            raise SchemaError("option 'source' must be a string")
        return cls(
            source=source,
            strict=_as_strict(value.get("strict")),
            parent=parent if isinstance(parent, weakref.ReferenceType) else _weak(parent),
            depth=depth,
        )

    def normalized(self, settings: HydrationSettings | None = None) -> HydrationOptions:
        """Fill unset options from ``settings`` and validate the source format."""

        defaults = settings or active_settings()
        source = (self.source or defaults.default_source).strip().lower()
        if source not in SOURCE_FORMATS:
            raise HydrationError(f"Unknown source data format: {source}.")
        strict = defaults.strict if self.strict is None else self.strict
        return replace(self, source=source, strict=strict)

    def child(self, parent: object) -> HydrationOptions:
        """Options for values nested one level below ``parent``."""

        return replace(self, source=SOURCE_OBJECT, parent=_weak(parent), depth=self.depth + 1)

    @property
    def parent_object(self) -> object | None:
        """The enclosing object, when it is still alive."""
        if self.parent is None:
            return None
        return self.parent()

    @property
    def is_strict(self) -> bool:
        return bool(self.strict)

    @property
    def strict_error(self) -> type[BaseException] | None:
        """Exception class configured as the strict policy, if any."""
        if isinstance(self.strict, type) and issubclass(self.strict, BaseException):
            return self.strict
        return None


def _as_strict(value: object) -> StrictPolicy | None:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, type) and issubclass(value, BaseException):
        return value
    raise SchemaError("option 'strict' must be a boolean or an exception class")


def _weak(target: object) -> weakref.ReferenceType[Any] | None:
    if target is None:
        return None
    try:
        return weakref.ref(target)
    except TypeError:
        # Instances without __weakref__ (plain slotted classes, builtins) carry no parent.
        return None


__all__ = ["HydrationOptions", "StrictPolicy"]
