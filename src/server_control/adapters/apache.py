"""Adapter for Apache httpd, driven through ``httpd -k``."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from ..config import ConfigurationError
from ..descriptor import ServerDescriptor
from ..process_table import ProcessHandle
from .base import BaseServerAdapter, build_binary


class ApacheServerAdapter(BaseServerAdapter):
    """
    Controls httpd with ``-k start``, ``-k stop`` and ``-k graceful``.

    The conf file defaults to ``<server_root>/conf/httpd.conf``.
    """

    name = "apache"
    default_name = "apache"

    def __init__(self, conf_file: Optional[str] = None, httpd_binary: Optional[str] = None) -> None:
        self.conf_file = Path(conf_file).expanduser() if conf_file else None
        self.httpd_binary = httpd_binary or build_binary("httpd", "apache2")

    def conf_file_for(self, descriptor: ServerDescriptor) -> Path:
        if self.conf_file is not None:
            return self.conf_file
        if descriptor.server_root is not None:
            return descriptor.server_root / "conf" / "httpd.conf"
        raise ConfigurationError.missing_value("conf_file", "pass conf_file or server_root")

    def httpd_command(self, descriptor: ServerDescriptor, command: str) -> List[str]:
        return [self.httpd_binary, "-k", command, "-f", str(self.conf_file_for(descriptor))]

    def do_start(self, descriptor: ServerDescriptor) -> None:
        self.run_system_command(self.httpd_command(descriptor, "start"), descriptor)

    def do_stop(self, descriptor: ServerDescriptor, process: ProcessHandle) -> None:
        self.run_system_command(self.httpd_command(descriptor, "stop"), descriptor)

    def do_graceful(self, descriptor: ServerDescriptor, process: ProcessHandle) -> None:
        self.run_system_command(self.httpd_command(descriptor, "graceful"), descriptor)

    def check_config_syntax(self, descriptor: ServerDescriptor) -> None:
        self.run_system_command([self.httpd_binary, "-t", "-f", str(self.conf_file_for(descriptor))], descriptor)


__all__ = ["ApacheServerAdapter"]
