"""Status classification from pid file, process table and port probe."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .descriptor import ServerDescriptor
from .pid_file import PidFileStore
from .port_probe import is_listening
from .process_table import ProcessHandle, ProcessTable
from .status import Status, StatusReport, status_as_string

logger = logging.getLogger(__name__)

PortProbeFunc = Callable[[str, int], bool]


class StatusEngine:
    """
    Computes the current status of a server from live OS state.

    Nothing is cached: each call re-reads the pid file, re-queries the process
    table and re-probes the port. Corrupt and stale pid files are deleted as a
    side effect of the check.
    """

    def __init__(
        self,
        pid_store: Optional[PidFileStore] = None,
        process_table: Optional[ProcessTable] = None,
        port_probe: Optional[PortProbeFunc] = None,
    ) -> None:
        self.pid_store = pid_store or PidFileStore()
        self.process_table = process_table or ProcessTable()
        self.port_probe = port_probe or is_listening

    def status(self, descriptor: ServerDescriptor) -> StatusReport:
        """Return a fresh status snapshot for *descriptor*."""
        process = self.running_process(descriptor)
        status = Status.INACTIVE
        if process is not None:
            status |= Status.RUNNING
        if self.is_listening(descriptor):
            status |= Status.LISTENING
        return StatusReport(status=status, process=process)

    def running_process(self, descriptor: ServerDescriptor) -> Optional[ProcessHandle]:
        """
        Return the process named by the pid file, if it is alive.

        Raises:
            PidFileError: If a corrupt or stale pid file cannot be removed
        """
        pid_file = descriptor.pid_file
        record = self.pid_store.read(pid_file)
        if record.is_absent:
            return None

        if record.is_corrupt:
            logger.info("pid file '%s' does not contain a valid process id!", pid_file)
            self.pid_store.delete_corrupt(pid_file)
            return None

        assert record.pid is not None
        process = self.process_table.lookup(record.pid)
        if process is not None:
            logger.debug("pid file '%s' exists and has valid pid %d", pid_file, record.pid)
            return process

        # The server may have removed its own pid file while exiting.
        if self.pid_store.exists(pid_file):
            logger.info("pid file '%s' contains a non-existing process id '%d'!", pid_file, record.pid)
            self.pid_store.delete_corrupt(pid_file)
        return None

    def is_running(self, descriptor: ServerDescriptor) -> bool:
        return self.running_process(descriptor) is not None

    def is_listening(self, descriptor: ServerDescriptor) -> bool:
        return self.port_probe(descriptor.bind_addr, descriptor.port)

    def status_as_string(
        self, descriptor: ServerDescriptor, report: Optional[StatusReport] = None, running: str = "running"
    ) -> str:
        """Render *report*, or a freshly computed status, for *descriptor*."""
        if report is None:
            report = self.status(descriptor)
        return status_as_string(descriptor.description, descriptor.port, report, running)


__all__ = ["PortProbeFunc", "StatusEngine"]
