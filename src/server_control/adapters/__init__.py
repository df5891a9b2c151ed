"""Server adapters: per-server-type start and stop mechanics."""

from __future__ import annotations

import importlib
from typing import Dict, Type

from ..config import ConfigurationError
from .apache import ApacheServerAdapter
from .base import (
    BaseServerAdapter,
    ServerAdapter,
    SupportsConfigCheck,
    SupportsGracefulRestart,
    build_binary,
    spawn_detached,
)
from .command import CommandServerAdapter
from .nginx import NginxServerAdapter
from .starman import StarmanServerAdapter

ADAPTERS: Dict[str, Type[BaseServerAdapter]] = {
    CommandServerAdapter.name: CommandServerAdapter,
    ApacheServerAdapter.name: ApacheServerAdapter,
    NginxServerAdapter.name: NginxServerAdapter,
    StarmanServerAdapter.name: StarmanServerAdapter,
}


def load_adapter_class(name: str) -> Type[BaseServerAdapter]:
    """
    Resolve an adapter by registry name or ``package.module:ClassName``.

    Raises:
        ConfigurationError: If the name is unknown or the class cannot be imported
    """
    if name in ADAPTERS:
        return ADAPTERS[name]
    module_name, _, class_name = name.partition(":")
    if not module_name or not class_name:
        raise ConfigurationError.unknown_adapter(name, ADAPTERS)
    try:
        module = importlib.import_module(module_name)
        adapter_class = getattr(module, class_name)
    except (ImportError, AttributeError) as exc:
        raise ConfigurationError.import_failed(module_name, class_name, str(exc)) from exc
    if not isinstance(adapter_class, type):
        raise ConfigurationError(f"{name} is not a class")
    return adapter_class


__all__ = [
    "ADAPTERS",
    "ApacheServerAdapter",
    "BaseServerAdapter",
    "CommandServerAdapter",
    "NginxServerAdapter",
    "ServerAdapter",
    "StarmanServerAdapter",
    "SupportsConfigCheck",
    "SupportsGracefulRestart",
    "build_binary",
    "load_adapter_class",
    "spawn_detached",
]
