"""Status model: two independent liveness facts and their four composites."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag
from typing import Optional

from .process_table import ProcessHandle


class Status(IntFlag):
    """Bitmask over RUNNING (pid file names a live process) and LISTENING (port accepts)."""

    INACTIVE = 0
    RUNNING = 1
    LISTENING = 2
    ACTIVE = 3


@dataclass(frozen=True)
class StatusReport:
    """Result of a single status check; never reused across checks."""

    status: Status
    process: Optional[ProcessHandle] = None

    @property
    def is_running(self) -> bool:
        return bool(self.status & Status.RUNNING)

    @property
    def is_listening(self) -> bool:
        return bool(self.status & Status.LISTENING)

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None


def status_as_string(description: str, port: int, report: StatusReport, running: str = "running") -> str:
    """
    Render a status report using the fixed operator-facing templates.

    Args:
        description: Server description, e.g. ``server 'foo'``
        port: Port the server is expected to listen to
        report: Status snapshot to render
        running: Wording for a live process, e.g. ``already running``

    Returns:
        One of the four status sentences
    """
    status = report.status
    if status == Status.INACTIVE:
        msg = "not running"
    elif status == Status.RUNNING:
        msg = f"{running} (pid {report.pid}), but not listening to port {port}"
    elif status == Status.LISTENING:
        msg = f"not running, but something is listening to port {port}"
    elif status == Status.ACTIVE:
        msg = f"{running} (pid {report.pid}) and listening to port {port}"
    else:
        raise ValueError(f"invalid status: {status!r}")
    return f"{description} is {msg}"


__all__ = ["Status", "StatusReport", "status_as_string"]
