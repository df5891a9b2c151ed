"""Adapter for nginx."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from ..descriptor import ServerDescriptor
from ..process_table import ProcessHandle
from .base import BaseServerAdapter, build_binary


class NginxServerAdapter(BaseServerAdapter):
    name = "nginx"
    default_name = "nginx"

    def __init__(self, conf_file: str, nginx_binary: Optional[str] = None) -> None:
        if not conf_file:
            raise ValueError("conf_file is required")
        self.conf_file = Path(conf_file).expanduser()
        self.nginx_binary = nginx_binary or build_binary("nginx")

    def _command(self, *extra: str) -> List[str]:
        return [self.nginx_binary, "-c", str(self.conf_file), *extra]

    def do_start(self, descriptor: ServerDescriptor) -> None:
        self.run_system_command(self._command(), descriptor)

    def do_stop(self, descriptor: ServerDescriptor, process: ProcessHandle) -> None:
        self.run_system_command(self._command("-s", "stop"), descriptor)

    def do_graceful(self, descriptor: ServerDescriptor, process: ProcessHandle) -> None:
        self.run_system_command(self._command("-s", "reload"), descriptor)

    def check_config_syntax(self, descriptor: ServerDescriptor) -> None:
        self.run_system_command([self.nginx_binary, "-t", "-c", str(self.conf_file)], descriptor)


__all__ = ["NginxServerAdapter"]
