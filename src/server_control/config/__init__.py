"""Shared configuration helpers."""

from .errors import ConfigurationError
from .rc_file import RC_FILE_NAME, load_rc_file, locate_rc_file
from .runtime import (
    env_bool,
    env_float,
    env_str,
    parse_bool,
)

__all__ = [
    "ConfigurationError",
    "RC_FILE_NAME",
    "env_bool",
    "env_float",
    "env_str",
    "load_rc_file",
    "locate_rc_file",
    "parse_bool",
]
