"""
Server adapter contract and shared mechanics.

An adapter knows how to start and stop one kind of server. It only initiates
the transition and returns promptly; the controller observes readiness by
polling. Adapters must leave the server detached from the calling process.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from ..config import ConfigurationError
from ..descriptor import ServerDescriptor
from ..errors import AdapterError
from ..process_table import ProcessHandle

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT_SECONDS = 60.0
SUDO = "sudo"


@runtime_checkable
class ServerAdapter(Protocol):
    """Per-server-type start/stop mechanics consumed by the controller."""

    name: str
    default_name: str

    def default_params(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        """Descriptor parameters this adapter can derive from its own settings."""
        ...

    def do_start(self, descriptor: ServerDescriptor) -> None:
        ...

    def do_stop(self, descriptor: ServerDescriptor, process: ProcessHandle) -> None:
        ...


@runtime_checkable
class SupportsGracefulRestart(Protocol):
    def do_graceful(self, descriptor: ServerDescriptor, process: ProcessHandle) -> None:
        ...


@runtime_checkable
class SupportsConfigCheck(Protocol):
    def check_config_syntax(self, descriptor: ServerDescriptor) -> None:
        ...


class BaseServerAdapter(ABC):
    """Common adapter behavior: SIGTERM stop, sudo-aware system commands."""

    name = "base"
    default_name = "server"
    command_timeout = DEFAULT_COMMAND_TIMEOUT_SECONDS

    def default_params(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        return {}

    @abstractmethod
    def do_start(self, descriptor: ServerDescriptor) -> None:
        """Begin starting the server and return without waiting for readiness."""

    def do_stop(self, descriptor: ServerDescriptor, process: ProcessHandle) -> None:
        """
        Send SIGTERM to the server process.

        When the signal is refused and sudo is enabled, ``sudo kill`` is used instead.
        """
        try:
            os.kill(process.pid, signal.SIGTERM)
        except ProcessLookupError:
            logger.debug("process %d exited before it could be signalled", process.pid)
        except PermissionError:
            if not descriptor.use_sudo:
                raise
            self.run_system_command(["kill", "-TERM", str(process.pid)], descriptor)

    def run_system_command(self, argv: Sequence[str], descriptor: ServerDescriptor) -> str:
        """
        Run *argv*, prefixed with ``sudo`` when the descriptor asks for it.

        Returns:
            Combined stdout and stderr of the command

        Raises:
            AdapterError: If the command cannot run, times out, or exits non-zero
        """
        command = with_sudo(argv, descriptor.use_sudo)
        logger.debug("running '%s'", " ".join(command))
        try:
            completed = subprocess.run(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.command_timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise AdapterError.spawn_failed(command, exc.strerror or str(exc)) from exc
        except subprocess.TimeoutExpired as exc:
            raise AdapterError(f"command '{' '.join(command)}' did not finish within {self.command_timeout}s") from exc
        if completed.returncode != 0:
            raise AdapterError.command_failed(command, completed.returncode, completed.stdout or "")
        return completed.stdout or ""


def with_sudo(argv: Sequence[str], use_sudo: bool) -> List[str]:
    command = [str(arg) for arg in argv]
    if use_sudo and command[:1] != [SUDO]:
        command.insert(0, SUDO)
    return command


def build_binary(*candidates: str) -> str:
    """
    Locate the first of *candidates* on PATH.

    Raises:
        ConfigurationError: If none of them can be found
    """
    for candidate in candidates:
        path = shutil.which(candidate)
        if path:
            return path
    raise ConfigurationError.binary_not_found(" or ".join(candidates))


def spawn_detached(
    argv: Sequence[str],
    *,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    output_file: Optional[str] = None,
) -> int:
    """
    Launch *argv* so that it outlives, and is not a child of, the caller.

    An intermediate child starts a new session, launches the server and exits
    at once; the caller reaps the intermediate child, leaving the server
    re-parented to init. Launch errors travel back over a pipe.

    Returns:
        Pid of the detached server process

    Raises:
        AdapterError: If the command could not be launched
    """
    command = [str(arg) for arg in argv]
    read_fd, write_fd = os.pipe()
    child = os.fork()
    if child == 0:
        os.close(read_fd)
        exit_code = 0
        try:
            os.setsid()
            with open(output_file or os.devnull, "ab") as output:
                proc = subprocess.Popen(
                    command,
                    cwd=cwd,
                    env=dict(env) if env is not None else None,
                    stdin=subprocess.DEVNULL,
                    stdout=output,
                    stderr=subprocess.STDOUT,
                    close_fds=True,
                )
            os.write(write_fd, f"ok {proc.pid}".encode())
        except Exception as exc:  # policy_guard: allow-silent-handler
            os.write(write_fd, f"error {exc}".encode(errors="replace"))
            exit_code = 1
        finally:
            os._exit(exit_code)

    os.close(write_fd)
    try:
        payload = _read_pipe(read_fd)
    finally:
        os.close(read_fd)
        os.waitpid(child, 0)

    status, _, detail = payload.partition(" ")
    if status != "ok":
        raise AdapterError.spawn_failed(command, detail or "intermediate process exited without reporting")
    pid = int(detail)
    logger.debug("spawned detached process %d: %s", pid, " ".join(command))
    return pid


def _read_pipe(fd: int) -> str:
    chunks = []
    while True:
        chunk = os.read(fd, 4096)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks).decode(errors="replace")


__all__ = [
    "BaseServerAdapter",
    "ServerAdapter",
    "SupportsConfigCheck",
    "SupportsGracefulRestart",
    "build_binary",
    "spawn_detached",
    "with_sudo",
]
