"""Error taxonomy for schema binding, decoding and property assignment."""

from __future__ import annotations

from collections.abc import Sequence

from hydration.constants import CLASS_NOT_FOUND_PREFIX, CONSTRUCT_PREFIX


class HydrationError(ValueError):
    """Base class for every error raised by the hydration engine."""


class SchemaError(HydrationError):
    """Raised when rules and the bound class disagree or the API is misused."""


class UndefinedPropertyError(SchemaError):
    """Raised in strict mode when the input names a property with no rule."""

    def __init__(self, message: str, *, property_name: str, subject: str) -> None:
        super().__init__(message)
        self.property_name = property_name
        self.subject = subject


class ClassResolutionError(SchemaError):
    """Raised when a bound class name or resolver cannot produce a class."""

    def __init__(self, class_name: str, message: str | None = None) -> None:
        super().__init__(message or f"{CLASS_NOT_FOUND_PREFIX}{class_name}")
        self.class_name = class_name


class FormatError(HydrationError):
    """Raised when configuration text cannot be decoded into a tree."""

    def __init__(self, message: str, *, source_format: str | None = None) -> None:
        super().__init__(message)
        self.source_format = source_format


class AssignmentError(HydrationError):
    """Recoverable failure while assigning a single property value."""


class ValidationError(AssignmentError):
    """A validation predicate rejected a value."""


class DuplicateKeyError(AssignmentError):
    """Two array elements produced the same key."""

    def __init__(self, message: str, *, key: object) -> None:
        super().__init__(message)
        self.key = key


class ConstructionError(AssignmentError):
    """A constructor rejected the supplied arguments."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"{CONSTRUCT_PREFIX}{detail}")
        self.detail = detail


class RequiredFieldError(HydrationError):
    """One or more required properties received no value."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__("No value provided for " + ", ".join(self.missing))


__all__ = [
    "AssignmentError",
    "ClassResolutionError",
    "ConstructionError",
    "DuplicateKeyError",
    "FormatError",
    "HydrationError",
    "RequiredFieldError",
    "SchemaError",
    "UndefinedPropertyError",
    "ValidationError",
]
