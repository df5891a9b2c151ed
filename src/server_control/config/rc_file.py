"""Loading of ``serverctl.yml`` rc files.

An rc file holds constructor parameters in YAML form, e.g.::

    # serverctl.yml
    use-sudo: 1
    wait-for-status-secs: 5

Dashes in keys are normalized to underscores. Parameters passed explicitly
take precedence over values read from the rc file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

RC_FILE_NAME = "serverctl.yml"


def locate_rc_file(params: Mapping[str, Any]) -> Optional[Path]:
    """Return the rc file named by ``serverctlrc`` or found under ``server_root``."""
    explicit = params.get("serverctlrc")
    if explicit:
        return Path(explicit).expanduser()
    server_root = params.get("server_root")
    if server_root:
        return Path(server_root).expanduser() / RC_FILE_NAME
    return None


def load_rc_file(path: Path) -> Dict[str, Any]:
    """
    Read rc parameters from *path*.

    Args:
        path: Location of the YAML rc file

    Returns:
        Mapping of parameter name to value, empty when the file is absent or empty

    Raises:
        ConfigurationError: If the file cannot be read, parsed, or is not a mapping
    """
    if not path.is_file():
        return {}

    try:
        payload = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigurationError.load_failed("rc file", str(path)) from exc
    except OSError as exc:
        raise ConfigurationError.load_failed("rc file", str(path)) from exc

    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigurationError.not_a_mapping(str(path), payload)

    params = {str(key).replace("-", "_"): value for key, value in payload.items()}
    logger.debug("found rc file '%s' with these parameters: %s", path, params)
    return params


__all__ = ["RC_FILE_NAME", "load_rc_file", "locate_rc_file"]
