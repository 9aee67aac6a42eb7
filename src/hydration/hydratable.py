"""Base class for objects that hydrate themselves through a per-class Hydrator."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from hydration.encoder import AdHocRules
from hydration.hydrator import Hydrator, OptionsLike
from hydration.rules import PropertyRule
from hydration.schema_cache import Visibility

_HYDRATORS_LOCK = threading.Lock()
_HYDRATORS: dict[type, Hydrator] = {}

_ERRORS_ATTRIBUTE = "_hydration_errors"


class HydratableObject:
    """Mixin that wires ``hydrate``/``get_errors``/``encode`` to a cached Hydrator.

    Subclasses describe their schema by overriding ``hydration_rules``;
    fields without a rule get a default one when their visibility matches
    ``hydration_visibility``::

        class Server(HydratableObject):
            host: str = "localhost"
            port: int = 80
            tls: TlsOptions | None = None

            @classmethod
            def hydration_rules(cls):
                return [PropertyRule.make("port").validate(lambda v: 0 < v < 65536)]
    """

    @classmethod
    def hydration_rules(cls) -> Iterable[PropertyRule]:
        return ()

    @classmethod
    def hydration_visibility(cls) -> Visibility:
        return Visibility.PUBLIC

    @classmethod
    def hydrator(cls) -> Hydrator:
        """The bound Hydrator for this class, built once."""

        cached = _HYDRATORS.get(cls)
        if cached is not None:
            return cached
        with _HYDRATORS_LOCK:
            cached = _HYDRATORS.get(cls)
            if cached is None:
                cached = Hydrator()
                for rule in cls.hydration_rules():
                    cached.add_property(rule)
                cached.bind(cls, cls.hydration_visibility())
                _HYDRATORS[cls] = cached
        return cached

    def hydrate(self, config: object, options: OptionsLike = None) -> bool:
        hydrator = type(self).hydrator()
        try:
            return hydrator.hydrate(self, config, options)
        finally:
            # Instance-level copy; the shared hydrator is reused by nested objects.
            object.__setattr__(self, _ERRORS_ATTRIBUTE, hydrator.get_errors())

    def get_errors(self) -> list[str]:
        """Errors from this object's most recent ``hydrate`` call."""
        return list(self.__dict__.get(_ERRORS_ATTRIBUTE, ()))

    def encode(self, rules: AdHocRules | None = None) -> dict[str, object]:
        return type(self).hydrator().encode(self, rules)


def clear_hydrator_cache() -> None:
    """Forget every cached per-class Hydrator."""

    with _HYDRATORS_LOCK:
        _HYDRATORS.clear()


__all__ = ["HydratableObject", "clear_hydrator_cache"]
