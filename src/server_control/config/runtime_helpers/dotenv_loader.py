"""Dotenv file loading for ``SERVERCTL_*`` defaults."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple

from ..errors import ConfigurationError

_EXPORT_PREFIX = "export "


class DotenvLoader:
    """Loads configuration from .env-style files."""

    @staticmethod
    def load_from_file(path: Path) -> Dict[str, str]:
        """
        Load key-value pairs from a .env file.

        Args:
            path: Path to .env file

        Returns:
            Dictionary of variables, empty when the file does not exist

        Raises:
            ConfigurationError: If file cannot be read
        """
        if not path.is_file():
            return {}

        try:
            lines = path.read_text().splitlines()
        except OSError as exc:  # policy_guard: allow-silent-handler
            raise ConfigurationError(f"Failed to load configuration from {path}") from exc

        values: Dict[str, str] = {}
        for line in lines:
            parsed = DotenvLoader._parse_env_line(line.strip())
            if parsed is not None:
                key, value = parsed
                values[key] = value
        return values

    @staticmethod
    def _parse_env_line(line: str) -> Optional[Tuple[str, str]]:
        """Parse ``KEY=value`` (optionally prefixed by ``export``); skip blanks and comments."""
        if not line or line.startswith("#") or "=" not in line:
            return None
        if line.startswith(_EXPORT_PREFIX):
            line = line[len(_EXPORT_PREFIX) :]
        key, raw_value = line.split("=", 1)
        key = key.strip()
        if not key:
            return None
        return key, raw_value.strip().strip("'").strip('"')
