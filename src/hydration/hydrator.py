"""
hydration — schema-driven hydrator.

File: src/hydration/hydrator.py

Purpose
- Populate instances of one bound class from decoded configuration trees and
  encode them back.

What should be included in this file
- Rule registration before binding, binding through ``hydration.binder``.
- Decode dispatch (json, yaml, or an already decoded object tree).
- The per-entry walk: strict policy for unknown keys, delegation to existing
  hydratable values, ``PropertyRule.assign`` otherwise.
- Required-field reporting and the ordered error log.

Functional requirements
- Failures of one property never stop its siblings; each one is logged as
  ``Unable to configure property "<name>":`` followed by its causes.
- Fatal errors (decode, strict, depth) propagate after their chain is logged.

Non-functional requirements
- The option stack is restored on every exit path.
- Options handed to nested objects hold only a weak reference to the parent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from types import MemberDescriptorType

from hydration.binder import Schema, bind, check_bindings
from hydration.config import HydrationSettings, active_settings
from hydration.constants import CONFIGURE_PROPERTY_PREFIX
from hydration.encoder import AdHocRules, Encoder
from hydration.errors import (
    FormatError,
    HydrationError,
    RequiredFieldError,
    SchemaError,
    UndefinedPropertyError,
)
from hydration.observability.logging import correlation_scope
from hydration.options import HydrationOptions
from hydration.rules import BindingMode, PropertyRule, nested_errors
from hydration.schema_cache import Visibility
from hydration.tree import NodeKind, decode_text, entries, is_bare_mapping, kind_of, load_file

logger = logging.getLogger(__name__)

OptionsLike = HydrationOptions | Mapping[str, object] | None
RuleSpec = PropertyRule | str | Sequence[str]


class Hydrator:
    """Hydrates and encodes instances of a single bound class."""

    def __init__(self, settings: HydrationSettings | None = None) -> None:
        self._settings = settings
        self._pending: dict[str, PropertyRule] = {}
        self._schema: Schema | None = None
        self._encoder: Encoder | None = None
        self._options = HydrationOptions()
        self._option_stack: list[HydrationOptions] = []
        self._error_log: list[str] = []

    def __repr__(self) -> str:
        subject = self._schema.subject.__qualname__ if self._schema is not None else None
        return f"Hydrator(subject={subject!r}, rules={len(self._rules())})"

    @classmethod
    def make(
        cls,
        subject: type | object | None = None,
        visibility: Visibility = Visibility.PUBLIC,
        *,
        settings: HydrationSettings | None = None,
    ) -> Hydrator:
        """Create a hydrator, binding it immediately when ``subject`` is given."""

        instance = cls(settings)
        if subject is not None:
            instance.bind(subject, visibility)
        return instance

    @property
    def settings(self) -> HydrationSettings:
        return self._settings or active_settings()

    @property
    def subject(self) -> type | None:
        return self._schema.subject if self._schema is not None else None

    @property
    def is_bound(self) -> bool:
        return self._schema is not None

    # -- schema construction ---------------------------------------------

    def add_property(self, rule: PropertyRule) -> Hydrator:
        self._check_unbound()
        self._pending[rule.target] = rule
        return self

    def add_properties(
        self, rules: Iterable[RuleSpec], options: Mapping[str, object] | None = None
    ) -> Hydrator:
        """Add several rules, applying ``options`` (fluent method names) to each."""

        self._check_unbound()
        for spec in rules:
            rule = PropertyRule.make_as(spec)
            if options:
                rule.apply(options)
            self._pending[rule.target] = rule
        return self

    def bind(self, subject: type | object, visibility: Visibility = Visibility.PUBLIC) -> Hydrator:
        """Bind to a class (or the class of an instance) and build its schema."""

        cls = subject if isinstance(subject, type) else type(subject)
        self._schema = bind(cls, self._pending.values(), visibility)
        self._encoder = None
        return self

    @staticmethod
    def check_bindings(rules: Iterable[PropertyRule], cls: type) -> None:
        check_bindings(rules, cls)

    # -- lookups -----------------------------------------------------------

    def get_errors(self) -> list[str]:
        return list(self._error_log)

    def get_options(self) -> HydrationOptions:
        """Options of the hydrate call in progress, or the idle defaults."""
        return self._options

    def get_source(self, name: str) -> PropertyRule:
        rule = self._require_schema().by_source(name)
        if rule is None:
            raise SchemaError(f'No source property "{name}" defined.')
        return rule

    def get_target(self, name: str) -> PropertyRule:
        rule = self._require_schema().by_target(name)
        if rule is None:
            raise SchemaError(f'No target property "{name}" defined.')
        return rule

    def get_sources(self) -> list[str]:
        return list(self._require_schema().sources)

    def get_targets(self) -> list[str]:
        return list(self._require_schema().targets)

    def has_source(self, name: str) -> bool:
        return self._schema is not None and self._schema.by_source(name) is not None

    def has_target(self, name: str) -> bool:
        return self._schema is not None and self._schema.by_target(name) is not None

    # -- hydration ---------------------------------------------------------

    def decode(self, config: object, options: OptionsLike = None) -> object:
        """Decode ``config`` according to the ``source`` option."""

        resolved = HydrationOptions.coerce(options).normalized(self.settings)
        return decode_text(config, resolved.source or "")

    def hydrate(self, target: object, config: object, options: OptionsLike = None) -> bool:
        """Load ``config`` into ``target``.

        Returns True when every property was assigned and every required
        property received a value. Details are available from ``get_errors``.
        """

        schema = self._require_schema()
        resolved = HydrationOptions.coerce(options).normalized(self.settings)
        subject = schema.subject.__qualname__
        errors: list[str] = []
        with self._pushed(resolved), correlation_scope(subject=subject, depth=resolved.depth):
            logger.debug("hydrating %s from %s", subject, resolved.source)
            try:
                result = self._walk(schema, target, config, resolved, errors)
            finally:
                self._error_log = errors
            logger.debug("hydrated %s with %d error(s)", subject, len(errors))
        return result

    def hydrate_file(self, target: object, path: str | Path, options: OptionsLike = None) -> bool:
        """Hydrate from a file; the format comes from ``source`` or the file suffix."""

        resolved = HydrationOptions.coerce(options)
        text, source_format = load_file(path, resolved.source)
        return self.hydrate(target, text, replace(resolved, source=source_format))

    def _walk(
        self,
        schema: Schema,
        target: object,
        config: object,
        options: HydrationOptions,
        errors: list[str],
    ) -> bool:
        subject = schema.subject.__qualname__
        max_depth = self.settings.max_depth
        if options.depth > max_depth:
            raise HydrationError(
                f"Maximum hydration depth of {max_depth} exceeded hydrating {subject}."
            )

        tree = decode_text(config, options.source or "")
        kind = kind_of(tree)
        if kind is not NodeKind.MAPPING:
            raise FormatError(
                f"Unexpected {kind.value} value hydrating {subject}.",
                source_format=options.source,
            )

        child_options = options.child(target)
        unseen = dict(schema.sources)
        result = True
        for key, value in entries(tree):
            rule = schema.by_source(key)
            if rule is None:
                if options.is_strict:
                    self._reject_undefined(key, subject, options, errors)
                logger.debug("skipping undefined property %s", key, extra={"property": key})
                continue
            unseen.pop(key, None)
            if not self._assign(target, rule, value, child_options, errors):
                result = False

        missing = [name for name, rule in unseen.items() if rule.required]
        if missing:
            errors.append(str(RequiredFieldError(missing)))
            result = False
        return result

    def _reject_undefined(
        self, key: str, subject: str, options: HydrationOptions, errors: list[str]
    ) -> None:
        message = f'Undefined property "{key}" in class {subject}.'
        errors.append(message)
        logger.warning(message, extra={"property": key})
        configured = options.strict_error
        if configured is not None:
            raise configured(message)
        raise UndefinedPropertyError(message, property_name=key, subject=subject)

    def _assign(
        self,
        target: object,
        rule: PropertyRule,
        value: object,
        options: HydrationOptions,
        errors: list[str],
    ) -> bool:
        delegate = self._delegate_for(target, rule) if value is not None else None
        with correlation_scope(property=rule.source):
            try:
                if delegate is not None:
                    hydrate: Callable[[object, HydrationOptions], bool] = getattr(
                        delegate, rule.hydrate_method
                    )
                    succeeded = bool(hydrate(value, options))
                else:
                    succeeded = rule.assign(target, value, options)
            except HydrationError:
                self._log_failure(rule, self._causes(rule, delegate), errors)
                raise
            if not succeeded:
                causes = self._causes(rule, delegate)
                if delegate is not None and not causes:
                    causes = [f"Unable to hydrate {type(delegate).__qualname__}"]
                self._log_failure(rule, causes, errors)
        return succeeded

    @staticmethod
    def _delegate_for(target: object, rule: PropertyRule) -> object | None:
        """The current field value when it can hydrate itself, else None."""

        if rule.blocked or rule.ignored or rule.is_virtual or rule.mode is BindingMode.CONSTRUCT:
            return None
        # Class-level defaults are shared by every instance; only own storage is reused.
        attribute = rule.descriptor.attribute if rule.descriptor is not None else rule.target
        in_slot = isinstance(getattr(type(target), attribute, None), MemberDescriptorType)
        if not in_slot and attribute not in getattr(target, "__dict__", {}):
            return None
        try:
            current = rule.read(target)
        except AttributeError:
            return None
        if current is None or isinstance(current, type) or is_bare_mapping(current):
            return None
        return current if callable(getattr(current, rule.hydrate_method, None)) else None

    @staticmethod
    def _causes(rule: PropertyRule, delegate: object | None) -> list[str]:
        return nested_errors(delegate) if delegate is not None else rule.errors()

    @staticmethod
    def _log_failure(rule: PropertyRule, causes: list[str], errors: list[str]) -> None:
        errors.append(f'{CONFIGURE_PROPERTY_PREFIX} "{rule.source}":')
        errors.extend(causes)
        logger.debug(
            "property %s failed: %s", rule.source, "; ".join(causes),
            extra={"property": rule.source},
        )

    # -- encoding ----------------------------------------------------------

    def encode(self, source: object, rules: AdHocRules | None = None) -> dict[str, object]:
        """Encode ``source`` into a plain tree keyed by source property names."""

        schema = self._require_schema()
        if self._encoder is None:
            self._encoder = Encoder(schema.targets.values())
        return self._encoder.encode(source, rules)

    # -- internals ---------------------------------------------------------

    @contextmanager
    def _pushed(self, options: HydrationOptions) -> Iterator[None]:
        self._option_stack.append(self._options)
        self._options = options
        try:
            yield
        finally:
            self._options = self._option_stack.pop()

    def _rules(self) -> list[PropertyRule]:
        if self._schema is not None:
            return list(self._schema)
        return list(self._pending.values())

    def _check_unbound(self) -> None:
        if self._schema is not None:
            raise SchemaError("Must add properties before binding to a class.")

    def _require_schema(self) -> Schema:
        if self._schema is None:
            raise SchemaError("Must bind to a class first.")
        return self._schema


__all__ = ["Hydrator", "OptionsLike", "RuleSpec"]
