"""Per-property hydration rules.

A ``PropertyRule`` describes how one value from the decoded tree lands on one
field of the host object::

    PropertyRule.make("form").bind(FormSpec)
    PropertyRule.make("elements").with_(lambda value, options: element_class(value)).key("name")
    PropertyRule.make("timeout").construct(timedelta, unpack=True)

Rules are configured fluently while a schema is being built and are treated as
read-only afterwards; only the per-call error buffer changes during
``assign``.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from enum import StrEnum
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any, Final

from hydration.constants import DEFAULT_HYDRATE_METHOD, VIRTUAL_TARGET_MARKER
from hydration.errors import (
    AssignmentError,
    ClassResolutionError,
    ConstructionError,
    DuplicateKeyError,
    HydrationError,
    SchemaError,
    ValidationError,
)
from hydration.options import HydrationOptions
from hydration.schema_cache import FieldDescriptor, resolve_class
from hydration.tree import NodeKind, detach, entries, is_bare_mapping, kind_of, member

if TYPE_CHECKING:
    from hydration.encoder import EncoderRule

logger = logging.getLogger(__name__)

KeyFunction = Callable[[object, object], object]
ClassResolver = Callable[[object, HydrationOptions], object]
Validator = Callable[[object], bool]


class BindingMode(StrEnum):
    SIMPLE = "simple"
    BOUND_OBJECT = "bound_object"
    CONSTRUCT = "construct"


# Fluent methods that ``apply`` may call when rules share common settings.
_APPLICABLE_OPTIONS: Final[frozenset[str]] = frozenset(
    {
        "allow_duplicates",
        "bind",
        "block",
        "construct",
        "encode",
        "ignore",
        "key",
        "require",
        "setter",
        "to_array",
        "unblock",
        "validate",
        "with_",
    }
)

_EXCLUSIVE_MESSAGE: Final[str] = "Can't use construct() and key() with the same property."


class PropertyRule:
    """Hydration and encoding policy for a single property."""

    __slots__ = (
        "_allow_duplicates",
        "_array_key",
        "_array_mode",
        "_binding",
        "_block_message",
        "_blocked",
        "_cast_array",
        "_class_resolver",
        "_descriptor",
        "_encode_rules",
        "_errors",
        "_hydrate_method",
        "_ignored",
        "_key_function",
        "_mode",
        "_required",
        "_setter_name",
        "_source",
        "_target",
        "_unpack",
        "_validator",
    )

    def __init__(self, source: str, binding: type | str | None = None) -> None:
        if not isinstance(source, str) or not source.strip():
            raise SchemaError("property name must be a non-empty string")
        self._source = source
        self._target = source
        self._binding: type | str | None = binding
        self._mode = BindingMode.SIMPLE if binding is None else BindingMode.BOUND_OBJECT
        self._allow_duplicates = False
        self._array_key: str | None = None
        self._array_mode = False
        self._block_message: str | None = None
        self._blocked = False
        self._cast_array = False
        self._class_resolver: ClassResolver | None = None
        self._descriptor: FieldDescriptor | None = None
        self._encode_rules: tuple[EncoderRule, ...] = ()
        self._errors: list[str] = []
        self._hydrate_method = DEFAULT_HYDRATE_METHOD
        self._ignored = False
        self._key_function: KeyFunction | None = None
        self._required = False
        self._setter_name: str | None = None
        self._unpack = False
        self._validator: Validator | None = None

    def __repr__(self) -> str:
        return (
            f"PropertyRule(source={self._source!r}, target={self._target!r}, "
            f"mode={self._mode.value}, array_mode={self._array_mode})"
        )

    # -- factories -----------------------------------------------------

    @classmethod
    def make(cls, source: str, binding: type | str | None = None) -> PropertyRule:
        return cls(source, binding)

    @classmethod
    def make_as(cls, spec: PropertyRule | str | Sequence[str]) -> PropertyRule:
        """Build a rule from a name, a ``(source, target)`` pair, or pass a rule through."""

        if isinstance(spec, PropertyRule):
            return spec
        if isinstance(spec, str):
            return cls(spec)
        if (
            isinstance(spec, Sequence)
            and len(spec) == 2
            and all(isinstance(item, str) for item in spec)
        ):
            return cls(spec[0]).as_(spec[1])
        raise SchemaError(f"Unable to make a property rule from {spec!r}")

    def apply(self, options: Mapping[str, object]) -> PropertyRule:
        """Call fluent methods by name; tuples spread into several arguments."""

        for name, argument in options.items():
            if name not in _APPLICABLE_OPTIONS:
                raise SchemaError(f"Invalid property option {name!r}")
            method = getattr(self, name)
            if isinstance(argument, tuple):
                method(*argument)
            elif argument is None:
                method()
            else:
                method(argument)
        return self

    # -- fluent configuration -------------------------------------------

    def allow_duplicates(self, allow: bool = True) -> PropertyRule:
        self._allow_duplicates = allow
        return self

    def as_(self, target: str) -> PropertyRule:
        """Store the value under a different attribute name."""
        if not isinstance(target, str) or not target.strip():
            raise SchemaError("target property name must be a non-empty string")
        self._target = target
        return self

    def bind(
        self, binding: type | str | None, method: str = DEFAULT_HYDRATE_METHOD
    ) -> PropertyRule:
        """Instantiate ``binding`` and hydrate it with the value."""
        self._binding = binding
        self._class_resolver = None
        self._hydrate_method = method
        self._mode = BindingMode.SIMPLE if binding is None else BindingMode.BOUND_OBJECT
        return self

    def block(self, message: str | None = None) -> PropertyRule:
        self._blocked = True
        self._block_message = message
        return self

    def construct(self, binding: type | str, unpack: bool = False) -> PropertyRule:
        """Build the value by passing it to the constructor of ``binding``."""
        if self._array_mode:
            raise SchemaError(_EXCLUSIVE_MESSAGE)
        self._binding = binding
        self._class_resolver = None
        self._unpack = unpack
        self._mode = BindingMode.CONSTRUCT
        return self

    def encode(self, rules: EncoderRule | Iterable[EncoderRule]) -> PropertyRule:
        from hydration.encoder import EncoderRule

        if isinstance(rules, EncoderRule):
            rules = (rules,)
        self._encode_rules = tuple(rules)
        return self

    def ignore(self, ignore: bool = True) -> PropertyRule:
        self._ignored = ignore
        return self

    def key(self, key: bool | str | KeyFunction | None = True) -> PropertyRule:
        """Enable array mode, optionally keyed by a member name or a function.

        ``False`` turns array mode off. A function is called as
        ``fn(owner, element)`` where owner is the hydrated object for simple
        rules and the freshly built instance for bound rules.
        """
        self._array_key = None
        self._key_function = None
        self._array_mode = key is not False
        if self._array_mode:
            if self._mode is BindingMode.CONSTRUCT:
                raise SchemaError(_EXCLUSIVE_MESSAGE)
            if isinstance(key, str):
                self._array_key = key
            elif callable(key):
                self._key_function = key
        return self

    def reflects(self, descriptor: FieldDescriptor) -> PropertyRule:
        self._descriptor = descriptor
        return self

    def require(self, required: bool = True) -> PropertyRule:
        self._required = required
        return self

    def setter(self, method: str) -> PropertyRule:
        self._setter_name = method
        return self

    def to_array(self, cast: bool = True) -> PropertyRule:
        """In array mode, iterate a mapping value keeping its keys."""
        self._cast_array = cast
        return self

    def unblock(self) -> PropertyRule:
        self._blocked = False
        self._block_message = None
        return self

    def validate(self, fn: Validator) -> PropertyRule:
        self._validator = fn
        return self

    def with_(self, resolver: ClassResolver, method: str = DEFAULT_HYDRATE_METHOD) -> PropertyRule:
        """Choose the bound class per value with ``resolver(value, options)``."""
        self._class_resolver = resolver
        self._hydrate_method = method
        self._mode = BindingMode.BOUND_OBJECT
        return self

    # -- introspection -------------------------------------------------

    @property
    def source(self) -> str:
        return self._source

    @property
    def target(self) -> str:
        return self._target

    @property
    def mode(self) -> BindingMode:
        return self._mode

    @property
    def array_mode(self) -> bool:
        return self._array_mode

    @property
    def binding(self) -> type | str | None:
        return self._binding

    @property
    def blocked(self) -> bool:
        return self._blocked

    @property
    def block_message(self) -> str | None:
        return self._block_message

    @property
    def ignored(self) -> bool:
        return self._ignored

    @property
    def required(self) -> bool:
        return self._required

    @property
    def hydrate_method(self) -> str:
        return self._hydrate_method

    @property
    def setter_name(self) -> str | None:
        return self._setter_name

    @property
    def encode_rules(self) -> tuple[EncoderRule, ...]:
        return self._encode_rules

    @property
    def descriptor(self) -> FieldDescriptor | None:
        return self._descriptor

    @property
    def is_virtual(self) -> bool:
        return self._target.startswith(VIRTUAL_TARGET_MARKER)

    def errors(self) -> list[str]:
        """Messages produced by the most recent ``assign`` call."""
        return list(self._errors)

    def read(self, target: object) -> object:
        """Read the current field value from ``target``."""
        if self._descriptor is not None:
            return self._descriptor.getter(target)
        return getattr(target, self._target)

    # -- assignment ----------------------------------------------------

    def assign(
        self,
        target: object,
        value: object,
        options: HydrationOptions | Mapping[str, object] | None = None,
    ) -> bool:
        """Assign ``value`` to ``target``; returns False when errors were recorded.

        Errors collect in a call-local buffer that becomes visible through
        ``errors()`` once the call ends, so a nested object hydrated with the
        same rule does not clobber the enclosing call's messages.
        """

        errors: list[str] = []
        try:
            if self._blocked:
                errors.append(self._block_message or f'Property "{self._source}" is blocked.')
                return False
            if self._ignored:
                return True

            resolved = HydrationOptions.coerce(options)
            try:
                if self._mode is BindingMode.SIMPLE:
                    if self._array_mode:
                        self._assign_array(target, value, errors)
                    else:
                        self._check_validity(value)
                        self._store(target, detach(value))
                else:
                    self._assign_instance(target, value, resolved, errors)
            except (AssignmentError, ClassResolutionError) as exc:
                errors.append(str(exc))

            if errors:
                logger.debug(
                    "property %s failed with %d error(s)", self._source, len(errors),
                    extra={"property": self._source},
                )
            return not errors
        finally:
            self._errors = errors

    def _assign_array(self, target: object, value: object, errors: list[str]) -> None:
        keyed = self._has_key_strategy() or (self._cast_array and is_bare_mapping(value))
        by_key: dict[object, object] = {}
        ordered: list[object] = []
        for default_key, element in self._array_elements(value):
            # Any invalid element abandons the whole array; nothing is written.
            self._check_validity(element)
            if not keyed:
                ordered.append(detach(element))
                continue
            try:
                index = self._array_index(target, element, default_key)
                self._insert(by_key, index, detach(element), target)
            except AssignmentError as exc:
                errors.append(str(exc))
        self._store(target, by_key if keyed else ordered)

    def _assign_instance(
        self, target: object, value: object, options: HydrationOptions, errors: list[str]
    ) -> None:
        if self._mode is BindingMode.CONSTRUCT:
            self._check_validity(value)
            self._store(target, self._construct(value, options))
            return

        kind = kind_of(value)
        if kind is not NodeKind.SEQUENCE and not self._array_mode:
            self._check_validity(value)
            bound = None if value is None else self._make_bound(value, options, errors)
            self._store(target, bound)
            return

        elements = list(value) if kind is NodeKind.SEQUENCE else [value]  # type: ignore[arg-type]
        keyed = self._has_key_strategy()
        by_key: dict[object, object] = {}
        ordered: list[object] = []
        for element in elements:
            self._check_validity(element)
            instance = self._make_bound(element, options, errors)
            if self._setter_name is not None:
                self._store(target, instance)
                continue
            if not keyed:
                ordered.append(instance)
                continue
            try:
                index = self._array_index(instance, element, None)
                self._insert(by_key, index, instance, instance)
            except AssignmentError as exc:
                errors.append(str(exc))
        if self._setter_name is None:
            self._store(target, by_key if keyed else ordered)

    def _array_elements(self, value: object) -> list[tuple[object, object]]:
        if self._cast_array and is_bare_mapping(value):
            return list(entries(value))
        if kind_of(value) is NodeKind.SEQUENCE:
            return [(None, element) for element in value]  # type: ignore[attr-defined]
        return [(None, value)]

    def _has_key_strategy(self) -> bool:
        return self._array_key is not None or self._key_function is not None

    def _array_index(self, owner: object, element: object, default: object) -> object:
        if self._array_key is not None:
            try:
                return member(owner if self._mode is not BindingMode.SIMPLE else element,
                              self._array_key)
            except KeyError as exc:
                raise AssignmentError(
                    f'Missing key "{self._array_key}" in element of {self._target}'
                ) from exc
        if self._key_function is not None:
            return self._key_function(owner, element)
        return default

    def _insert(
        self, buffer: dict[object, object], index: object, item: object, owner: object
    ) -> None:
        try:
            duplicate = index in buffer
        except TypeError as exc:
            raise AssignmentError(
                f"Unusable key {index!r} configuring {self._target}: {exc}"
            ) from exc
        if duplicate and not self._allow_duplicates:
            raise DuplicateKeyError(
                f'Duplicate key "{index}" configuring {self._target} in '
                f"{type(owner).__name__}",
                key=index,
            )
        buffer[index] = item

    def _check_validity(self, value: object) -> None:
        if self._validator is not None and not self._validator(value):
            raise ValidationError(f"Invalid value for {self._source}")

    def _store(self, target: object, value: object) -> None:
        try:
            if self._setter_name is not None:
                mutator = getattr(target, self._setter_name, None)
                if not callable(mutator):
                    raise AssignmentError(
                        f"Unable to set {self._target}: {type(target).__name__} has no "
                        f"method {self._setter_name}()"
                    )
                mutator(value)
            elif self._descriptor is not None:
                self._descriptor.setter(target, value)
            else:
                setattr(target, self._target, value)
        except (AttributeError, TypeError) as exc:
            raise AssignmentError(f"Unable to set {self._target}: {exc}") from exc

    # -- instances -----------------------------------------------------

    def _resolve_class(self, value: object, options: HydrationOptions) -> type:
        if self._class_resolver is not None:
            resolved = self._class_resolver(value, options)
        else:
            resolved = self._binding
        if isinstance(resolved, str):
            return resolve_class(resolved)
        if isinstance(resolved, type):
            return resolved
        raise ClassResolutionError(
            repr(resolved),
            f"Class resolver for {self._source} returned {type(resolved).__name__}, "
            "expected a class",
        )

    def _make_bound(self, element: object, options: HydrationOptions, errors: list[str]) -> object:
        cls = self._resolve_class(element, options)
        if cls is dict and is_bare_mapping(element):
            return dict(entries(detach(element)))
        if cls is SimpleNamespace and is_bare_mapping(element):
            return SimpleNamespace(**dict(entries(detach(element))))

        try:
            instance = cls()
        except HydrationError:
            raise
        except TypeError as exc:
            raise ConstructionError(
                f"{cls.__qualname__}() cannot be built without arguments: {exc}"
            ) from exc
        except Exception as exc:
            raise ConstructionError(f"{cls.__qualname__}: {exc}") from exc

        hydrate = getattr(instance, self._hydrate_method, None)
        if not callable(hydrate):
            raise AssignmentError(
                f"Class {cls.__qualname__} has no hydration method {self._hydrate_method}()"
            )
        try:
            succeeded = hydrate(element, options)
        except HydrationError:
            errors.extend(nested_errors(instance))
            raise
        if not succeeded:
            errors.extend(nested_errors(instance) or [f"Unable to hydrate {cls.__qualname__}"])
        return instance

    def _construct(self, value: object, options: HydrationOptions) -> object:
        cls = self._resolve_class(value, options)
        args, kwargs = self._constructor_arguments(value)
        _check_arity(cls, args, kwargs)
        try:
            return cls(*args, **kwargs)
        except HydrationError:
            raise
        except TypeError as exc:
            raise ConstructionError(str(exc)) from exc
        except Exception as exc:
            raise ConstructionError(f"{cls.__qualname__}: {exc}") from exc

    def _constructor_arguments(self, value: object) -> tuple[tuple[object, ...], dict[str, Any]]:
        if not self._unpack:
            return (detach(value),), {}
        if is_bare_mapping(value):
            return (), dict(entries(detach(value)))
        if kind_of(value) is NodeKind.SEQUENCE:
            return tuple(detach(value)), {}  # type: ignore[arg-type]
        return (value,), {}


def nested_errors(instance: object) -> list[str]:
    """Error lines exposed by a nested hydratable instance."""

    getter = getattr(instance, "get_errors", None)
    if not callable(getter):
        return []
    return [str(message) for message in getter()]


def _check_arity(cls: type, args: tuple[object, ...], kwargs: Mapping[str, object]) -> None:
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        # No introspectable signature; the constructor call reports mismatches.
        return
    try:
        signature.bind(*args, **kwargs)
    except TypeError as exc:
        raise ConstructionError(_arity_message(cls, signature, args, kwargs, exc)) from exc


def _arity_message(
    cls: type,
    signature: inspect.Signature,
    args: tuple[object, ...],
    kwargs: Mapping[str, object],
    exc: TypeError,
) -> str:
    parameters = list(signature.parameters.values())
    positional = [
        item
        for item in parameters
        if item.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    required = [item for item in positional if item.default is inspect.Parameter.empty]
    variadic = any(item.kind is inspect.Parameter.VAR_POSITIONAL for item in parameters)
    passed = len(args) + len(kwargs)
    name = f"{cls.__qualname__}.__init__()"

    if passed < len(required):
        qualifier = "exactly" if len(required) == len(positional) and not variadic else "at least"
        return (
            f"Too few arguments to {name}, {passed} passed and {qualifier} "
            f"{len(required)} expected"
        )
    if not variadic and len(args) > len(positional):
        qualifier = "exactly" if len(required) == len(positional) else "at most"
        return (
            f"Too many arguments to {name}, {passed} passed and {qualifier} "
            f"{len(positional)} expected"
        )
    return f"{name}: {exc}"


__all__ = [
    "BindingMode",
    "ClassResolver",
    "KeyFunction",
    "PropertyRule",
    "Validator",
    "nested_errors",
]
