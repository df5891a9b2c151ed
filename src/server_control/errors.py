"""Error types raised by server control components."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class ServerControlError(RuntimeError):
    """Base class for server control failures."""


class PidFileError(ServerControlError):
    """Raised when a pid file cannot be repaired; status checks would be unreliable."""

    def __init__(self, pid_file: Path, *, reason: str) -> None:
        super().__init__(f"cannot remove '{pid_file}': {reason}")
        self.pid_file = pid_file
        self.reason = reason


class AdapterError(ServerControlError):
    """Raised when a server adapter fails to start, stop or signal its server."""

    @classmethod
    def command_failed(cls, argv: Sequence[str], returncode: int, output: str = "") -> "AdapterError":
        """Create error for a system command exiting non-zero."""
        msg = f"command '{' '.join(argv)}' exited with status {returncode}"
        output = output.strip()
        if output:
            msg += f": {output}"
        return cls(msg)

    @classmethod
    def spawn_failed(cls, argv: Sequence[str], reason: str) -> "AdapterError":
        """Create error for a server process that could not be launched."""
        return cls(f"could not spawn '{' '.join(argv)}': {reason}")


__all__ = ["AdapterError", "PidFileError", "ServerControlError"]
