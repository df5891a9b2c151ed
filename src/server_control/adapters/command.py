"""Adapter for servers launched from an arbitrary command line."""

from __future__ import annotations

import logging
import shlex
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from ..descriptor import ServerDescriptor
from ..errors import AdapterError
from ..pid_file import PidFileStore
from ..process_table import ProcessHandle
from .base import BaseServerAdapter, spawn_detached, with_sudo

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]


class CommandServerAdapter(BaseServerAdapter):
    """
    Starts a server by spawning a detached command.

    Command arguments may reference descriptor fields as ``{port}``,
    ``{bind_addr}``, ``{pid_file}``, ``{error_log}`` and ``{name}``; literal
    braces must be doubled. Unless ``write_pid_file`` is set, the server is
    expected to write its own pid file.
    """

    name = "command"
    default_name = "command"

    def __init__(
        self,
        start_command: Command,
        stop_command: Optional[Command] = None,
        *,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        output_file: Optional[str] = None,
        write_pid_file: bool = False,
    ) -> None:
        self.start_command = _split(start_command)
        if not self.start_command:
            raise ValueError("start_command must not be empty")
        self.stop_command = _split(stop_command) if stop_command else None
        self.cwd = cwd
        self.env = dict(env) if env is not None else None
        self.output_file = output_file
        self.write_pid_file = write_pid_file

    def do_start(self, descriptor: ServerDescriptor) -> None:
        argv = with_sudo(render_command(self.start_command, descriptor), descriptor.use_sudo)
        output_file = self.output_file or (str(descriptor.error_log) if descriptor.error_log else None)
        pid = spawn_detached(argv, cwd=self.cwd, env=self.env, output_file=output_file)
        if self.write_pid_file:
            PidFileStore.write(descriptor.pid_file, pid)
            logger.debug("wrote pid %d to '%s'", pid, descriptor.pid_file)

    def do_stop(self, descriptor: ServerDescriptor, process: ProcessHandle) -> None:
        if self.stop_command is None:
            super().do_stop(descriptor, process)
            return
        self.run_system_command(render_command(self.stop_command, descriptor, pid=process.pid), descriptor)


def render_command(argv: Sequence[str], descriptor: ServerDescriptor, **extra: Any) -> List[str]:
    """Substitute descriptor fields into *argv*."""
    fields: Dict[str, Any] = {
        "name": descriptor.name,
        "port": descriptor.port,
        "bind_addr": descriptor.bind_addr,
        "pid_file": descriptor.pid_file,
        "error_log": descriptor.error_log or "",
        "server_root": descriptor.server_root or "",
        **extra,
    }
    try:
        return [arg.format_map(fields) for arg in argv]
    except (KeyError, IndexError, ValueError) as exc:
        raise AdapterError(f"cannot render command '{shlex.join(argv)}': {exc}") from exc


def _split(command: Optional[Command]) -> List[str]:
    if command is None:
        return []
    if isinstance(command, str):
        return shlex.split(command)
    return [str(arg) for arg in command]


__all__ = ["CommandServerAdapter", "render_command"]
