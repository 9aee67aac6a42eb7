"""
hydration — library settings loader.

File: src/hydration/config.py

Purpose
- Resolve the process defaults used by new ``Hydrator`` instances.

What should be included in this file
- Precedence logic: env (HYDRATION_) > TOML file > built-in defaults.
- TOML loading via ``tomllib`` from a ``[tool.hydration]`` table or the file root.
- Deterministic environment variable coercion.

Functional requirements
- Reject unknown keys and values that cannot be coerced with a clear error.

Non-functional requirements
- Loading has no side effects; ``configure_settings`` is the only mutation point.
"""

from __future__ import annotations

import os
import threading
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Final

from hydration.constants import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_SOURCE,
    DEFAULT_STRICT,
    SOURCE_FORMATS,
)

ENV_PREFIX: Final[str] = "HYDRATION_"
TOOL_TABLE: Final[tuple[str, ...]] = ("tool", "hydration")

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})
_LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_ACTIVE_LOCK = threading.Lock()
_ACTIVE_SETTINGS: HydrationSettings | None = None


class SettingsLoadError(ValueError):
    """Raised when settings cannot be loaded or overrides cannot be coerced."""


@dataclass(frozen=True, slots=True)
class HydrationSettings:
    """Process defaults applied when a hydrate call omits an option."""

    default_source: str = DEFAULT_SOURCE
    strict: bool = DEFAULT_STRICT
    max_depth: int = DEFAULT_MAX_DEPTH
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.default_source not in SOURCE_FORMATS:
            expected = ", ".join(SOURCE_FORMATS)
            raise SettingsLoadError(
                f"default_source {self.default_source!r} is not one of: {expected}"
            )
        if self.max_depth < 1:
            raise SettingsLoadError("max_depth must be >= 1")
        if self.log_level not in _LOG_LEVELS:
            raise SettingsLoadError(f"unsupported log_level {self.log_level!r}")


def default_settings() -> HydrationSettings:
    """Return the built-in defaults."""

    return HydrationSettings()


def load_settings(
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> HydrationSettings:
    """Load settings with deterministic precedence: env > file > defaults."""

    payload: dict[str, Any] = {}
    if config_path is not None:
        payload.update(_load_toml_file(Path(config_path).expanduser().resolve()))

    env_map = dict(os.environ if environ is None else environ)
    payload.update(_collect_env_overrides(env_map))

    settings = default_settings()
    if not payload:
        return settings
    try:
        return replace(settings, **payload)
    except TypeError as exc:
        raise SettingsLoadError(f"invalid settings: {exc}") from exc


def configure_settings(settings: HydrationSettings | None) -> None:
    """Install ``settings`` as the process default; ``None`` restores built-ins."""

    global _ACTIVE_SETTINGS
    with _ACTIVE_LOCK:
        _ACTIVE_SETTINGS = settings


def active_settings() -> HydrationSettings:
    """Return the installed process settings, or the built-in defaults."""

    with _ACTIVE_LOCK:
        current = _ACTIVE_SETTINGS
    return current if current is not None else default_settings()


def _load_toml_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise SettingsLoadError(f"settings file not found: {path}")

    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise SettingsLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise SettingsLoadError(f"unable to read settings file {path}: {exc}") from exc

    section: object = parsed
    for key in TOOL_TABLE:
        if isinstance(section, Mapping) and isinstance(section.get(key), Mapping):
            section = section[key]
        else:
            section = parsed
            break

    if not isinstance(section, Mapping):
        raise SettingsLoadError(f"settings root must be a table: {path}")

    known = _field_types()
    out: dict[str, Any] = {}
    for key in sorted(section):
        if key in TOOL_TABLE[:1]:
            continue
        if key not in known:
            raise SettingsLoadError(f"unknown setting {key!r} in {path}")
        out[key] = _coerce_file_value(key, section[key], known[key], path)
    return out


def _collect_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name, value_type in sorted(_field_types().items()):
        env_name = f"{ENV_PREFIX}{name.upper()}"
        raw = environ.get(env_name)
        if raw is None:
            continue
        overrides[name] = _coerce_env_value(env_name, raw, value_type)
    return overrides


def _field_types() -> dict[str, str]:
    return {item.name: str(item.type) for item in fields(HydrationSettings)}


def _coerce_env_value(env_name: str, raw: str, value_type: str) -> object:
    text = raw.strip()
    if value_type == "bool":
        lowered = text.lower()
        if lowered in _BOOLEAN_TRUE:
            return True
        if lowered in _BOOLEAN_FALSE:
            return False
        raise SettingsLoadError(f"{env_name} must be a boolean, got {raw!r}")
    if value_type == "int":
        try:
            return int(text)
        except ValueError as exc:
            raise SettingsLoadError(f"{env_name} must be an integer, got {raw!r}") from exc
    if not text:
        raise SettingsLoadError(f"{env_name} must not be empty")
    return text.upper() if env_name.endswith("LOG_LEVEL") else text.lower()


def _coerce_file_value(key: str, value: object, value_type: str, path: Path) -> object:
    if value_type == "bool":
        if isinstance(value, bool):
            return value
    elif value_type == "int":
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif isinstance(value, str) and value.strip():
        normalized = value.strip()
        return normalized.upper() if key == "log_level" else normalized.lower()
    raise SettingsLoadError(f"{path}: {key} expects {value_type}, got {type(value).__name__}")


__all__ = [
    "ENV_PREFIX",
    "HydrationSettings",
    "SettingsLoadError",
    "active_settings",
    "configure_settings",
    "default_settings",
    "load_settings",
]
