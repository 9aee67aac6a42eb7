"""
hydration — declarative configuration-tree hydration.

File: src/hydration/__init__.py

Purpose
- Package root. Exposes the public API for turning decoded JSON/YAML trees
  into typed objects and encoding them back.

What should be included in this file
- Re-exports of the rule, hydrator, encoder and error types.
- Version export.

Functional requirements
- Must not have side effects at import time (no settings loading, no logging init).
"""

from hydration.binder import Hydratable, Schema, is_hydratable
from hydration.config import (
    HydrationSettings,
    SettingsLoadError,
    active_settings,
    configure_settings,
    load_settings,
)
from hydration.encoder import Encoder, EncoderRule
from hydration.errors import (
    AssignmentError,
    ClassResolutionError,
    ConstructionError,
    DuplicateKeyError,
    FormatError,
    HydrationError,
    RequiredFieldError,
    SchemaError,
    UndefinedPropertyError,
    ValidationError,
)
from hydration.hydratable import HydratableObject
from hydration.hydrator import Hydrator
from hydration.options import HydrationOptions
from hydration.rules import BindingMode, PropertyRule
from hydration.schema_cache import Visibility, register_class

__version__ = "0.1.0"

__all__ = [
    "AssignmentError",
    "BindingMode",
    "ClassResolutionError",
    "ConstructionError",
    "DuplicateKeyError",
    "Encoder",
    "EncoderRule",
    "FormatError",
    "Hydratable",
    "HydratableObject",
    "HydrationError",
    "HydrationOptions",
    "HydrationSettings",
    "Hydrator",
    "PropertyRule",
    "RequiredFieldError",
    "Schema",
    "SchemaError",
    "SettingsLoadError",
    "UndefinedPropertyError",
    "ValidationError",
    "Visibility",
    "__version__",
    "active_settings",
    "configure_settings",
    "is_hydratable",
    "load_settings",
    "register_class",
]
