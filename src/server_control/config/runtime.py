from __future__ import annotations

"""Environment-backed defaults for server settings.

``SERVERCTL_*`` variables come from the process environment first and from
``./.env`` or ``~/.serverctl.env`` second; the files are read once per process.
"""


import os
from pathlib import Path
from typing import Callable, Optional, TypeVar

from .errors import ConfigurationError

T = TypeVar("T")

TRUE_VALUES = frozenset({"1", "true", "t", "yes", "y", "on"})
FALSE_VALUES = frozenset({"0", "false", "f", "no", "n", "off"})

_DOTENV_CANDIDATES = (Path(".env"), Path.home() / ".serverctl.env")

_DEFAULT_VALUES: dict[str, str] | None = None


def _load_default_values() -> dict[str, str]:
    from .runtime_helpers import DotenvLoader

    global _DEFAULT_VALUES
    if _DEFAULT_VALUES is None:
        defaults: dict[str, str] = {}
        # Earlier files win.
        for path in reversed(_DOTENV_CANDIDATES):
            defaults.update(DotenvLoader.load_from_file(path))
        _DEFAULT_VALUES = defaults
    return _DEFAULT_VALUES


def parse_bool(name: str, raw_value: object) -> bool:
    """
    Interpret *raw_value* as a boolean.

    Accepts real booleans, integers, and the strings in TRUE_VALUES / FALSE_VALUES
    in any case, so rc-file ``use-sudo: 1`` and ``--use-sudo yes`` agree.

    Raises:
        ConfigurationError: For anything else
    """
    if isinstance(raw_value, bool):
        return raw_value
    if isinstance(raw_value, int):
        return raw_value != 0
    lowered = str(raw_value).strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ConfigurationError.invalid_value(name, raw_value, f"Expected one of {sorted(TRUE_VALUES | FALSE_VALUES)}")


def env_str(name: str, or_value: str | None = None, *, required: bool = False) -> str | None:
    """Return the stripped value of *name*, falling back to dotenv defaults, then *or_value*."""

    value = (os.getenv(name) or "").strip()
    if not value:
        value = (_load_default_values().get(name) or "").strip()
    if value:
        return value
    if required:
        raise ConfigurationError(f"Required environment variable {name!r} is not set")
    return or_value


def _env_typed(name: str, or_value: Optional[T], required: bool, cast: Callable[[str], T], kind: str) -> Optional[T]:
    raw = env_str(name)
    if raw is None:
        if required and or_value is None:
            raise ConfigurationError(f"Required environment variable {name!r} is not set")
        return or_value
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Environment variable {name!r} must be {kind} (got {raw!r})") from exc


def env_float(name: str, or_value: float | None = None, *, required: bool = False) -> float | None:
    """Fetch an environment variable as seconds or another ``float``."""
    return _env_typed(name, or_value, required, float, "a float")


def env_bool(name: str, or_value: bool | None = None, *, required: bool = False) -> bool | None:
    return _env_typed(name, or_value, required, lambda raw: parse_bool(name, raw), "a boolean")


__all__ = [
    "ConfigurationError",
    "FALSE_VALUES",
    "TRUE_VALUES",
    "env_bool",
    "env_float",
    "env_str",
    "parse_bool",
]
