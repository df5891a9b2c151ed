"""apachectl-style control for servers that write a pid file and listen on a port."""

from .adapters import (
    ApacheServerAdapter,
    BaseServerAdapter,
    CommandServerAdapter,
    NginxServerAdapter,
    ServerAdapter,
    StarmanServerAdapter,
)
from .config import ConfigurationError
from .controller import OperationResult, ServerController
from .descriptor import ServerDescriptor, resolve_descriptor
from .errors import AdapterError, PidFileError, ServerControlError
from .status import Status, StatusReport

__version__ = "0.10.0"

__all__ = [
    "AdapterError",
    "ApacheServerAdapter",
    "BaseServerAdapter",
    "CommandServerAdapter",
    "ConfigurationError",
    "NginxServerAdapter",
    "OperationResult",
    "PidFileError",
    "ServerAdapter",
    "ServerControlError",
    "ServerController",
    "ServerDescriptor",
    "StarmanServerAdapter",
    "Status",
    "StatusReport",
    "resolve_descriptor",
]
