"""Encoding: turn hydrated objects back into plain trees."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from types import SimpleNamespace
from typing import Final

from hydration.errors import SchemaError
from hydration.rules import PropertyRule

logger = logging.getLogger(__name__)

_COMMANDS: Final[frozenset[str]] = frozenset(
    {"array", "drop", "drop_empty", "drop_false", "drop_null", "order", "scalar", "transform"}
)

AdHocRules = Mapping[str, "EncoderRule | Iterable[EncoderRule]"]


class _Dropped:
    __slots__ = ()

    def __repr__(self) -> str:
        return "DROPPED"


DROPPED: Final = _Dropped()


@dataclass(frozen=True, slots=True)
class EncoderRule:
    """One encoding command applied to a property value.

    ``drop`` removes the property, ``drop_null``/``drop_empty``/``drop_false``
    remove it conditionally, ``transform`` replaces the value with
    ``fn(value)``, ``order`` sets the output position, ``array`` turns a dict
    into the list of its values and ``scalar`` unwraps a one-element list.
    """

    command: str
    argument: object = None

    def __post_init__(self) -> None:
        if self.command not in _COMMANDS:
            raise SchemaError(f"Unknown encoder command {self.command!r}")
        if self.command == "transform" and not callable(self.argument):
            raise SchemaError("transform requires a callable")
        if self.command == "order" and (
            isinstance(self.argument, bool) or not isinstance(self.argument, int)
        ):
            raise SchemaError("order requires an integer position")

    @classmethod
    def make(cls, command: str, argument: object = None) -> EncoderRule:
        return cls(command.strip().lower(), argument)

    @classmethod
    def drop(cls) -> EncoderRule:
        return cls("drop")

    @classmethod
    def drop_null(cls) -> EncoderRule:
        return cls("drop_null")

    @classmethod
    def drop_empty(cls) -> EncoderRule:
        return cls("drop_empty")

    @classmethod
    def drop_false(cls) -> EncoderRule:
        return cls("drop_false")

    @classmethod
    def transform(cls, fn: Callable[[object], object]) -> EncoderRule:
        return cls("transform", fn)

    @classmethod
    def order(cls, position: int) -> EncoderRule:
        return cls("order", position)

    @classmethod
    def array(cls) -> EncoderRule:
        return cls("array")

    @classmethod
    def scalar(cls) -> EncoderRule:
        return cls("scalar")

    def apply(self, value: object) -> object:
        """Return the new value, or ``DROPPED`` when the property is removed."""

        match self.command:
            case "drop":
                return DROPPED
            case "drop_null":
                return DROPPED if value is None else value
            case "drop_empty":
                return DROPPED if _is_empty(value) else value
            case "drop_false":
                return DROPPED if value is False else value
            case "transform":
                return self.argument(value)  # type: ignore[operator]
            case "array":
                return list(value.values()) if isinstance(value, Mapping) else value
            case "scalar":
                if isinstance(value, list) and len(value) == 1:
                    return value[0]
                return value
        return value


class Encoder:
    """Encodes objects of one bound class through its target-indexed rules."""

    def __init__(self, rules: Iterable[PropertyRule]) -> None:
        self._rules = [rule for rule in rules if not (rule.ignored or rule.blocked)]

    def encode(self, source: object, rules: AdHocRules | None = None) -> dict[str, object]:
        """Encode ``source``; ``rules`` maps source names to extra encoder rules."""

        extra = _normalize_ad_hoc(rules)
        placed: list[tuple[int, int, str, object]] = []
        for position, rule in enumerate(self._rules):
            if rule.is_virtual:
                continue
            try:
                value = rule.read(source)
            except AttributeError:
                # Declared but never assigned.
                continue
            encoded = encode_value(value)
            order: int | None = None
            for command in (*rule.encode_rules, *extra.get(rule.source, ())):
                if command.command == "order":
                    order = command.argument  # type: ignore[assignment]
                    continue
                encoded = command.apply(encoded)
                if encoded is DROPPED:
                    break
            if encoded is DROPPED:
                continue
            # Explicitly ordered properties come first, the rest keep rule order.
            rank = (0, order) if order is not None else (1, position)
            placed.append((*rank, rule.source, encoded))

        placed.sort(key=lambda item: (item[0], item[1]))
        logger.debug(
            "encoded %d propert(ies) of %s", len(placed), type(source).__qualname__,
            extra={"subject": type(source).__qualname__},
        )
        return {name: value for _, _, name, value in placed}


def encode_value(value: object) -> object:
    """Recursively convert ``value`` into plain mappings, lists and scalars."""

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return encode_value(value.value)
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, SimpleNamespace):
        value = vars(value)
    if isinstance(value, Mapping):
        return {str(key): encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((encode_value(item) for item in value), key=_sort_key)
    encode = getattr(value, "encode", None)
    if callable(encode):
        return encode()
    attributes = getattr(value, "__dict__", None)
    if isinstance(attributes, dict):
        return {
            key: encode_value(item)
            for key, item in attributes.items()
            if not key.startswith("_")
        }
    return value


def _normalize_ad_hoc(rules: AdHocRules | None) -> dict[str, tuple[EncoderRule, ...]]:
    if not rules:
        return {}
    normalized: dict[str, tuple[EncoderRule, ...]] = {}
    for name, value in rules.items():
        if isinstance(value, EncoderRule):
            normalized[name] = (value,)
        else:
            normalized[name] = tuple(value)
    return normalized


def _is_empty(value: object) -> bool:
    if value is None or value == "":
        return True
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def _sort_key(item: object) -> tuple[str, object]:
    if isinstance(item, (bool, int, float, str)):
        return type(item).__name__, item
    return type(item).__name__, repr(item)


__all__ = ["DROPPED", "EncoderRule", "Encoder", "encode_value"]
