"""Process-wide cache of per-class field descriptors and the class registry.

Descriptors are discovered once per class from its annotations (walking the
MRO) and ``__slots__``. Each descriptor carries a getter/setter pair so rule
writes go through a table built at discovery time rather than ad hoc name
lookups.
"""

from __future__ import annotations

import importlib
import logging
import threading
import types
import typing
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Flag, auto
from typing import Any, ClassVar, Final, Union, get_args, get_origin

from hydration.errors import ClassResolutionError

logger = logging.getLogger(__name__)

Getter = Callable[[object], object]
Setter = Callable[[object, object], None]


class Visibility(Flag):
    PUBLIC = auto()
    PROTECTED = auto()
    PRIVATE = auto()
    ALL = PUBLIC | PROTECTED | PRIVATE


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Declared field of a class: name, visibility, type and accessors."""

    name: str
    attribute: str
    visibility: Visibility
    declared_type: object = None
    owner: type | None = None
    getter: Getter = field(repr=False, compare=False, default=None)  # type: ignore[assignment]
    setter: Setter = field(repr=False, compare=False, default=None)  # type: ignore[assignment]

    @property
    def declared_class(self) -> type | None:
        """The declared type when it is a plain class, with ``Optional`` unwrapped."""
        candidate = _unwrap_optional(self.declared_type)
        return candidate if isinstance(candidate, type) else None


_CACHE_LOCK = threading.Lock()
_FIELD_CACHE: dict[type, Mapping[str, FieldDescriptor]] = {}

_REGISTRY_LOCK = threading.Lock()
_CLASS_REGISTRY: dict[str, type] = {}

_SKIPPED_SLOTS: Final[frozenset[str]] = frozenset({"__dict__", "__weakref__"})


def fetch_fields(cls: type) -> Mapping[str, FieldDescriptor]:
    """Return the cached field descriptors for ``cls``, building them on first use."""

    cached = _FIELD_CACHE.get(cls)
    if cached is not None:
        return cached
    with _CACHE_LOCK:
        cached = _FIELD_CACHE.get(cls)
        if cached is None:
            cached = types.MappingProxyType(_discover_fields(cls))
            _FIELD_CACHE[cls] = cached
            logger.debug(
                "cached %d field(s) for %s", len(cached), cls.__qualname__,
                extra={"subject": cls.__qualname__},
            )
    return cached


def clear_field_cache() -> None:
    """Drop every cached descriptor. Intended for tests that redefine classes."""

    with _CACHE_LOCK:
        _FIELD_CACHE.clear()


def register_class(cls: type, name: str | None = None) -> type:
    """Register ``cls`` so rules can bind to it by short name."""

    key = name or cls.__name__
    with _REGISTRY_LOCK:
        _CLASS_REGISTRY[key] = cls
    return cls


def resolve_class(name: str) -> type:
    """Resolve a registered short name or a dotted ``module.Class`` path."""

    with _REGISTRY_LOCK:
        registered = _CLASS_REGISTRY.get(name)
    if registered is not None:
        return registered

    module_name, sep, attr = name.replace(":", ".").rpartition(".")
    if not sep or not module_name:
        raise ClassResolutionError(name)
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ClassResolutionError(name) from exc
    candidate = getattr(module, attr, None)
    if not isinstance(candidate, type):
        raise ClassResolutionError(name)
    return candidate


def visibility_of(name: str) -> Visibility:
    if name.startswith("__") and not name.endswith("__"):
        return Visibility.PRIVATE
    if name.startswith("_"):
        return Visibility.PROTECTED
    return Visibility.PUBLIC


def _discover_fields(cls: type) -> dict[str, FieldDescriptor]:
    discovered: dict[str, FieldDescriptor] = {}
    # Base classes first so subclasses override inherited declarations.
    for owner in reversed(cls.__mro__):
        if owner is object:
            continue
        for declared, hint in _own_annotations(owner).items():
            if _is_class_var(hint):
                continue
            _add_field(discovered, owner, declared, hint)
        for slot in _own_slots(owner):
            if slot in _SKIPPED_SLOTS:
                continue
            declared = _unmangle(owner, slot)
            if declared not in discovered:
                _add_field(discovered, owner, declared, None)
    return discovered


def _add_field(
    discovered: dict[str, FieldDescriptor], owner: type, declared: str, hint: object
) -> None:
    visibility = visibility_of(declared)
    attribute = _mangle(owner, declared) if visibility is Visibility.PRIVATE else declared
    discovered[declared] = FieldDescriptor(
        name=declared,
        attribute=attribute,
        visibility=visibility,
        declared_type=hint,
        owner=owner,
        getter=_make_getter(attribute),
        setter=_make_setter(attribute),
    )


def _own_annotations(owner: type) -> dict[str, object]:
    raw: Mapping[str, object] = owner.__dict__.get("__annotations__", {})
    if not raw:
        return {}
    try:
        hints = typing.get_type_hints(owner, include_extras=False)
    except (NameError, TypeError, AttributeError):
        hints = {}
    resolved: dict[str, object] = {}
    for key, value in raw.items():
        declared = _unmangle(owner, key)
        resolved[declared] = hints.get(key, value)
    return resolved


def _own_slots(owner: type) -> tuple[str, ...]:
    slots = owner.__dict__.get("__slots__", ())
    if isinstance(slots, str):
        return (slots,)
    return tuple(slots)


def _is_class_var(hint: object) -> bool:
    if hint is ClassVar or get_origin(hint) is ClassVar:
        return True
    return isinstance(hint, str) and hint.replace("typing.", "").startswith("ClassVar")


def _mangle(owner: type, declared: str) -> str:
    return f"_{owner.__name__.lstrip('_')}{declared}"


def _unmangle(owner: type, attribute: str) -> str:
    prefix = f"_{owner.__name__.lstrip('_')}__"
    if attribute.startswith(prefix):
        return attribute[len(prefix) - 2 :]
    return attribute


def _unwrap_optional(hint: object) -> object:
    origin = get_origin(hint)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(hint) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return hint


def _make_getter(attribute: str) -> Getter:
    def getter(target: object) -> object:
        return getattr(target, attribute)

    return getter


def _make_setter(attribute: str) -> Setter:
    def setter(target: object, value: Any) -> None:
        setattr(target, attribute, value)

    return setter


__all__ = [
    "FieldDescriptor",
    "Visibility",
    "clear_field_cache",
    "fetch_fields",
    "register_class",
    "resolve_class",
    "visibility_of",
]
