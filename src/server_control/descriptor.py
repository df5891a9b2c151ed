"""
Server descriptor and its one-time configuration resolution.

All defaults are computed eagerly in :func:`resolve_descriptor`; the resulting
:class:`ServerDescriptor` is immutable and holds no lazily derived state.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from .config import ConfigurationError, env_bool, env_float, env_str, load_rc_file, locate_rc_file, parse_bool

if TYPE_CHECKING:
    from .adapters.base import ServerAdapter

logger = logging.getLogger(__name__)

DEFAULT_BIND_ADDR = "localhost"
DEFAULT_WAIT_FOR_STATUS_SECS = 10.0
DEFAULT_POLL_INTERVAL_SECS = 0.2
DEFAULT_NAME = "server"
PRIVILEGED_PORT_LIMIT = 1024
MAX_PORT = 65535

KNOWN_PARAMS = frozenset(
    {
        "bind_addr",
        "error_log",
        "log_dir",
        "name",
        "pid_file",
        "poll_interval",
        "port",
        "server_root",
        "serverctlrc",
        "use_sudo",
        "wait_for_status_secs",
    }
)
_PARAM_ALIASES = {"poll_for_status_secs": "poll_interval"}


@dataclass(frozen=True)
class ServerDescriptor:
    """
    Identity and settings of one managed server instance.

    ``use_sudo`` left as None becomes True for privileged ports (below 1024).
    """

    name: str
    port: int
    pid_file: Path
    bind_addr: str = DEFAULT_BIND_ADDR
    error_log: Optional[Path] = None
    use_sudo: Optional[bool] = None
    wait_for_status_secs: float = DEFAULT_WAIT_FOR_STATUS_SECS
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECS
    server_root: Optional[Path] = None
    log_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "pid_file", Path(self.pid_file))
        if self.error_log is not None:
            object.__setattr__(self, "error_log", Path(self.error_log))
        _validate_port(self.port)
        if self.use_sudo is None:
            object.__setattr__(self, "use_sudo", self.port < PRIVILEGED_PORT_LIMIT)
        if self.wait_for_status_secs < 0:
            raise ConfigurationError.invalid_value("wait_for_status_secs", self.wait_for_status_secs, "Must be non-negative")
        if self.poll_interval <= 0:
            raise ConfigurationError.invalid_value("poll_interval", self.poll_interval, "Must be positive")

    @property
    def description(self) -> str:
        return f"server '{self.name}'"

    def with_overrides(self, **changes: Any) -> "ServerDescriptor":
        """Return a copy with *changes* applied; the original is left untouched."""
        return dataclasses.replace(self, **changes)


def resolve_descriptor(params: Mapping[str, Any], adapter: Optional["ServerAdapter"] = None) -> ServerDescriptor:
    """
    Build a fully populated descriptor from explicit parameters.

    Precedence, highest first: explicit *params*, the rc file, adapter-derived
    defaults, ``SERVERCTL_*`` environment variables, built-in defaults.

    Args:
        params: Explicit parameters; ``None`` values are treated as not given
        adapter: Adapter that may derive defaults such as port or pid file

    Returns:
        Immutable ServerDescriptor

    Raises:
        ConfigurationError: If port or pid_file cannot be determined, or a value is invalid
    """
    explicit = _normalize_keys({key: value for key, value in params.items() if value is not None})

    rc_path = locate_rc_file(explicit)
    rc_params = _normalize_keys(load_rc_file(rc_path)) if rc_path is not None else {}
    rc_params.pop("serverctlrc", None)

    merged: Dict[str, Any] = {**rc_params, **explicit}
    merged.pop("serverctlrc", None)
    _reject_unknown(merged)

    if adapter is not None:
        derived = {key: value for key, value in adapter.default_params(merged).items() if value is not None}
        merged = {**derived, **merged}

    server_root = _optional_path(merged.get("server_root"))
    log_dir = _optional_path(merged.get("log_dir"))
    if log_dir is None and server_root is not None:
        log_dir = server_root / "logs"

    error_log = _optional_path(merged.get("error_log"))
    if error_log is None and log_dir is not None:
        error_log = log_dir / "error_log"

    port = _coerce_port(merged.get("port"))
    pid_file = _optional_path(merged.get("pid_file"))
    if pid_file is None:
        raise ConfigurationError.missing_value("pid_file")

    use_sudo_raw = merged.get("use_sudo")
    if use_sudo_raw is not None:
        use_sudo = parse_bool("use_sudo", use_sudo_raw)
    else:
        use_sudo = bool(env_bool("SERVERCTL_USE_SUDO", port < PRIVILEGED_PORT_LIMIT))

    descriptor = ServerDescriptor(
        name=str(merged.get("name") or _default_name(server_root, adapter)),
        port=port,
        pid_file=pid_file,
        bind_addr=str(merged.get("bind_addr") or env_str("SERVERCTL_BIND_ADDR", DEFAULT_BIND_ADDR)),
        error_log=error_log,
        use_sudo=use_sudo,
        wait_for_status_secs=_coerce_float(
            "wait_for_status_secs",
            merged.get("wait_for_status_secs"),
            env_float("SERVERCTL_WAIT_FOR_STATUS_SECS", DEFAULT_WAIT_FOR_STATUS_SECS),
        ),
        poll_interval=_coerce_float(
            "poll_interval",
            merged.get("poll_interval"),
            env_float("SERVERCTL_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECS),
        ),
        server_root=server_root,
        log_dir=log_dir,
    )
    logger.debug("resolved %s: %s", descriptor.description, descriptor)
    return descriptor


def _normalize_keys(params: Mapping[str, Any]) -> Dict[str, Any]:
    normalized: Dict[str, Any] = {}
    for key, value in params.items():
        name = str(key).replace("-", "_")
        normalized[_PARAM_ALIASES.get(name, name)] = value
    return normalized


def _reject_unknown(params: Mapping[str, Any]) -> None:
    unknown = set(params) - KNOWN_PARAMS
    if unknown:
        raise ConfigurationError.unknown_params(unknown)


def _default_name(server_root: Optional[Path], adapter: Optional["ServerAdapter"]) -> str:
    if server_root is not None and server_root.name:
        return server_root.name
    if adapter is not None:
        return adapter.default_name
    return DEFAULT_NAME


def _optional_path(value: Any) -> Optional[Path]:
    if value is None or value == "":
        return None
    return Path(value).expanduser()


def _validate_port(port: int) -> None:
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port <= MAX_PORT:
        raise ConfigurationError.invalid_value("port", port, f"Must be an integer between 1 and {MAX_PORT}")


def _coerce_port(value: Any) -> int:
    if value is None or value == "":
        raise ConfigurationError.missing_value("port")
    if isinstance(value, bool):
        raise ConfigurationError.invalid_value("port", value)
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError.invalid_format("port", str(value), "a positive integer") from exc
    _validate_port(port)
    return port


def _coerce_float(name: str, value: Any, fallback: Optional[float]) -> float:
    if value is None or value == "":
        if fallback is None:
            raise ConfigurationError.missing_value(name)
        return float(fallback)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError.invalid_format(name, str(value), "a number of seconds") from exc


__all__ = [
    "DEFAULT_BIND_ADDR",
    "DEFAULT_POLL_INTERVAL_SECS",
    "DEFAULT_WAIT_FOR_STATUS_SECS",
    "ServerDescriptor",
    "resolve_descriptor",
]
