from __future__ import annotations

"""Exception types for configuration handling."""

from typing import Iterable


class ConfigurationError(RuntimeError):
    """Raised when server settings are missing, malformed or contradictory."""

    @classmethod
    def import_failed(cls, module_name: str, class_name: str, context: str = "") -> "ConfigurationError":
        """Create error for an adapter class that cannot be imported."""
        msg = f"Unable to import {class_name} from {module_name}"
        if context:
            msg += f": {context}"
        return cls(msg)

    @classmethod
    def invalid_format(cls, param_name: str, received_value: str, expected_format: str = "") -> "ConfigurationError":
        """Create error for invalid format."""
        msg = f"{param_name} has invalid format (received {received_value!r})"
        if expected_format:
            msg += f". Expected {expected_format}"
        return cls(msg)

    @classmethod
    def missing_value(cls, param_name: str, context: str = "") -> "ConfigurationError":
        """Create error for a setting that cannot be derived from anything given."""
        msg = f"cannot determine {param_name}"
        if context:
            msg += f": {context}"
        return cls(msg)

    @classmethod
    def invalid_value(cls, param_name: str, value, reason: str = "") -> "ConfigurationError":
        """Create error for invalid value."""
        msg = f"Invalid value for {param_name}: {value!r}"
        if reason:
            msg += f". {reason}"
        return cls(msg)

    @classmethod
    def unknown_params(cls, names: Iterable[str]) -> "ConfigurationError":
        return cls(f"unknown server parameters: {', '.join(sorted(names))}")

    @classmethod
    def unknown_adapter(cls, name: str, known: Iterable[str]) -> "ConfigurationError":
        return cls(f"unknown adapter '{name}'; expected one of {sorted(known)} or 'module:Class'")

    @classmethod
    def load_failed(cls, resource: str, identifier: str = "") -> "ConfigurationError":
        """Create error for a file that cannot be read or parsed."""
        msg = f"Failed to load {resource}"
        if identifier:
            msg += f" for {identifier}"
        return cls(msg)

    @classmethod
    def not_a_mapping(cls, path: str, payload: object) -> "ConfigurationError":
        """Create error for an rc file whose top level is not a mapping."""
        return cls(f"expected mapping from rc file '{path}', got {payload!r}")

    @classmethod
    def binary_not_found(cls, binary_name: str) -> "ConfigurationError":
        """Create error for an executable missing from PATH."""
        return cls(f"cannot find {binary_name} in PATH")


__all__ = ["ConfigurationError"]
