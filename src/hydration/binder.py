"""Schema binding: match property rules to the declared fields of a class."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Protocol, runtime_checkable

from hydration.errors import SchemaError
from hydration.rules import BindingMode, PropertyRule
from hydration.schema_cache import FieldDescriptor, Visibility, fetch_fields

logger = logging.getLogger(__name__)


@runtime_checkable
class Hydratable(Protocol):
    """Anything that can populate itself from a decoded configuration tree."""

    def hydrate(self, config: object, options: object = None) -> bool: ...


def is_hydratable(cls: object) -> bool:
    """True when ``cls`` is a class whose instances expose ``hydrate``."""

    if not isinstance(cls, type):
        return False
    try:
        return issubclass(cls, Hydratable)
    except TypeError:
        return False


class Schema:
    """Ordered property rules for one class, indexed by source and by target."""

    __slots__ = ("_by_source", "_by_target", "_rules", "subject")

    def __init__(self, subject: type, rules: Iterable[PropertyRule] = ()) -> None:
        self.subject = subject
        self._rules: list[PropertyRule] = []
        self._by_source: dict[str, PropertyRule] = {}
        self._by_target: dict[str, PropertyRule] = {}
        for rule in rules:
            self.add(rule)

    def __iter__(self) -> Iterator[PropertyRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def add(self, rule: PropertyRule) -> None:
        if rule.source in self._by_source:
            raise SchemaError(
                f'Duplicate source property "{rule.source}" in {self.subject.__qualname__}.'
            )
        if rule.target in self._by_target:
            raise SchemaError(
                f'Duplicate target property "{rule.target}" in {self.subject.__qualname__}.'
            )
        self._rules.append(rule)
        self._by_source[rule.source] = rule
        self._by_target[rule.target] = rule

    def by_source(self, name: str) -> PropertyRule | None:
        return self._by_source.get(name)

    def by_target(self, name: str) -> PropertyRule | None:
        return self._by_target.get(name)

    @property
    def sources(self) -> Mapping[str, PropertyRule]:
        return dict(self._by_source)

    @property
    def targets(self) -> Mapping[str, PropertyRule]:
        return dict(self._by_target)

    def required(self) -> list[PropertyRule]:
        return [rule for rule in self._rules if rule.required]


def check_bindings(rules: Iterable[PropertyRule], cls: type) -> None:
    """Raise ``SchemaError`` for rules whose target is not a field of ``cls``.

    Virtual targets (leading ``*``) are not fields; they must route through a
    setter method instead.
    """

    fields = fetch_fields(cls)
    for rule in rules:
        if rule.is_virtual:
            if rule.setter_name is None:
                raise SchemaError(
                    f'Virtual property "{rule.target}" in {cls.__qualname__} requires a setter.'
                )
            continue
        descriptor = fields.get(rule.target)
        if descriptor is None:
            raise SchemaError(f'Property "{rule.target}" is not defined in {cls.__qualname__}.')
        rule.reflects(descriptor)


def bind(
    cls: type,
    rules: Iterable[PropertyRule] = (),
    visibility: Visibility = Visibility.PUBLIC,
) -> Schema:
    """Build the schema for ``cls`` from explicit rules plus default field rules."""

    explicit = list(rules)
    check_bindings(explicit, cls)
    by_target = {rule.target: rule for rule in explicit}

    schema = Schema(cls)
    for rule in explicit:
        schema.add(rule)

    for name, descriptor in fetch_fields(cls).items():
        rule = by_target.get(name)
        if rule is None:
            if not descriptor.visibility & visibility:
                continue
            rule = PropertyRule.make(name).reflects(descriptor)
            schema.add(rule)
        _auto_bind(rule, descriptor)

    logger.debug(
        "bound %d rule(s) to %s", len(schema), cls.__qualname__,
        extra={"subject": cls.__qualname__},
    )
    return schema


def _auto_bind(rule: PropertyRule, descriptor: FieldDescriptor) -> None:
    if rule.mode is not BindingMode.SIMPLE or rule.binding is not None:
        return
    declared = descriptor.declared_class
    if declared is not None and is_hydratable(declared):
        rule.bind(declared, rule.hydrate_method)


__all__ = ["Hydratable", "Schema", "bind", "check_bindings", "is_hydratable"]
