"""
apachectl-style lifecycle control for one server instance.

Start and stop only initiate a transition through the adapter; completion is
observed by polling :class:`StatusEngine` until the target status is reached
or ``wait_for_status_secs`` elapses. Every operation returns an
:class:`OperationResult`; adapter failures, precondition failures and
timeouts never escape as exceptions; only :class:`PidFileError` propagates.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from .adapters.base import ServerAdapter, SupportsConfigCheck, SupportsGracefulRestart
from .descriptor import ServerDescriptor, resolve_descriptor
from .diagnostics import DiagnosticsReporter
from .errors import PidFileError
from .port_probe import something_is_listening_msg
from .status import Status, StatusReport
from .status_engine import StatusEngine

logger = logging.getLogger(__name__)

VALID_ACTIONS = ("start", "stop", "restart", "ping")


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a controller operation."""

    action: str
    success: bool
    message: str
    status: Optional[Status] = None
    steps: Tuple["OperationResult", ...] = ()

    def __bool__(self) -> bool:
        return self.success


class ServerController:
    """
    Drives start, stop, restart and ping for a single server.

    Args:
        descriptor: Resolved server settings
        adapter: Start/stop mechanics for this kind of server
        status_engine: Status source; a default engine is built when omitted
        logger: Destination for operator-facing messages
    """

    def __init__(
        self,
        descriptor: ServerDescriptor,
        adapter: ServerAdapter,
        *,
        status_engine: Optional[StatusEngine] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.descriptor = descriptor
        self.adapter = adapter
        self.status_engine = status_engine or StatusEngine()
        self.log = logger or logging.getLogger(__name__)
        self.diagnostics = DiagnosticsReporter(self.log)

    @classmethod
    def from_params(cls, adapter: ServerAdapter, params: Mapping[str, Any], **kwargs: Any) -> "ServerController":
        """Resolve a descriptor from *params* (and rc file) and build a controller."""
        return cls(resolve_descriptor(params, adapter), adapter, **kwargs)

    @property
    def description(self) -> str:
        return self.descriptor.description

    def valid_actions(self) -> tuple[str, ...]:
        if isinstance(self.adapter, SupportsGracefulRestart):
            return VALID_ACTIONS + ("graceful",)
        return VALID_ACTIONS

    # Status

    def status(self) -> StatusReport:
        return self.status_engine.status(self.descriptor)

    def status_as_string(self, report: Optional[StatusReport] = None, running: str = "running") -> str:
        return self.status_engine.status_as_string(self.descriptor, report, running)

    def is_running(self) -> bool:
        return self.status_engine.is_running(self.descriptor)

    def is_listening(self) -> bool:
        return self.status_engine.is_listening(self.descriptor)

    # Actions

    def start(self) -> OperationResult:
        report = self.status()
        if report.is_running:
            message = self.status_as_string(report, running="already running")
            self.log.warning(message)
            return OperationResult("start", False, message, report.status)
        if report.is_listening:
            message = (
                f"cannot start {self.description} - pid file '{self.descriptor.pid_file}' does not exist, "
                f"but {something_is_listening_msg(self.descriptor.port)}"
            )
            self.log.warning(message)
            return OperationResult("start", False, message, report.status)

        watch = self.diagnostics.watch_error_log(self.descriptor)
        try:
            self.adapter.do_start(self.descriptor)
        except PidFileError:
            raise
        except Exception as exc:  # policy_guard: allow-silent-handler
            message = f"error while trying to start {self.description}: {exc}"
            self.log.error(message)
            self.diagnostics.report_error_log_output(watch)
            return OperationResult("start", False, message, self.status().status)

        reached, report = self._wait_for_status(Status.ACTIVE, "start")
        if reached:
            message = self.status_as_string(report, running="now running")
            self.log.info(message)
            return OperationResult("start", True, message, report.status)

        self.diagnostics.report_error_log_output(watch)
        return OperationResult("start", False, self.status_as_string(report), report.status)

    def stop(self) -> OperationResult:
        report = self.status()
        process = report.process
        if process is None:
            message = self.status_as_string(report)
            self.log.warning(message)
            return OperationResult("stop", False, message, report.status)

        self.diagnostics.ownership_warning(self.descriptor, process)

        try:
            self.adapter.do_stop(self.descriptor, process)
        except PidFileError:
            raise
        except Exception as exc:  # policy_guard: allow-silent-handler
            message = f"error while trying to stop {self.description}: {exc}"
            self.log.error(message)
            return OperationResult("stop", False, message, self.status().status)

        reached, report = self._wait_for_status(Status.INACTIVE, "stop")
        if reached:
            message = f"{self.description} has stopped"
            self.log.info(message)
            return OperationResult("stop", True, message, report.status)
        return self._report_stop_timeout()

    def restart(self) -> OperationResult:
        """
        Stop, then start. The start is skipped while the old process is alive.

        The returned result carries both halves in ``steps``; its message joins them.
        """
        stopped = self.stop()
        if self.is_running():
            message = f"could not stop {self.description}, will not attempt start ({stopped.message})"
            self.log.warning(message)
            return OperationResult("restart", False, message, Status.RUNNING, steps=(stopped,))
        started = self.start()
        message = f"{stopped.message}; {started.message}"
        return OperationResult("restart", started.success, message, started.status, steps=(stopped, started))

    def ping(self) -> OperationResult:
        report = self.status()
        message = self.status_as_string(report)
        self.log.info(message)
        return OperationResult("ping", True, message, report.status)

    def graceful_restart(self) -> OperationResult:
        """
        Ask the server to reload without dropping connections.

        Falls back to :meth:`start` when the server is not running. A failing
        config check or signal is reported; the server is never hard-stopped.
        """
        if not isinstance(self.adapter, SupportsGracefulRestart):
            message = f"{self.description} does not support graceful restart"
            self.log.error(message)
            return OperationResult("graceful", False, message)

        report = self.status()
        if report.process is None:
            self.log.info("%s is not running, starting it instead", self.description)
            result = self.start()
            return OperationResult("graceful", result.success, result.message, result.status)

        if isinstance(self.adapter, SupportsConfigCheck):
            try:
                self.adapter.check_config_syntax(self.descriptor)
            except PidFileError:
                raise
            except Exception as exc:  # policy_guard: allow-silent-handler
                message = f"config check failed for {self.description}, not restarting: {exc}"
                self.log.error(message)
                return OperationResult("graceful", False, message, report.status)

        try:
            self.adapter.do_graceful(self.descriptor, report.process)
        except PidFileError:
            raise
        except Exception as exc:  # policy_guard: allow-silent-handler
            message = f"error while trying to gracefully restart {self.description}: {exc}"
            self.log.error(message)
            return OperationResult("graceful", False, message, self.status().status)

        reached, report = self._wait_for_status(Status.ACTIVE, "graceful restart")
        message = self.status_as_string(report)
        if reached:
            self.log.info("%s gracefully restarted", self.description)
        return OperationResult("graceful", reached, message, report.status)

    def perform(self, action: str) -> OperationResult:
        """Run one of :meth:`valid_actions` by name."""
        if action not in self.valid_actions():
            choices = ", ".join(f"'{name}'" for name in self.valid_actions())
            raise ValueError(f"invalid action '{action}' - must be one of {choices}")
        if action == "graceful":
            return self.graceful_restart()
        return getattr(self, action)()

    # Internals

    def _wait_for_status(self, target: Status, action: str) -> tuple[bool, StatusReport]:
        """
        Poll until the status equals *target* or the deadline passes.

        Returns control no later than ``wait_for_status_secs`` plus one poll
        interval after it was called (plus the duration of a single check).
        """
        self.log.info("waiting for server %s", action)
        wait_secs = self.descriptor.wait_for_status_secs
        deadline = time.monotonic() + wait_secs
        while True:
            report = self.status()
            if report.status == target:
                return True, report
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(self.descriptor.poll_interval, remaining))

        self.log.warning("after %s secs, %s", _format_secs(wait_secs), self.status_as_string(report))
        return False, report

    def _report_stop_timeout(self) -> OperationResult:
        report = self.status()
        if report.is_running:
            message = f"{self.description} could not be stopped gracefully"
            self.log.error(message)
            return OperationResult("stop", False, message, report.status)
        if report.is_listening:
            message = (
                f"{self.description} has stopped, but {something_is_listening_msg(self.descriptor.port)} "
                "- possibly a child process"
            )
            self.log.warning(message)
            return OperationResult("stop", False, message, report.status)
        message = f"{self.description} has stopped"
        self.log.info(message)
        return OperationResult("stop", True, message, report.status)


def _format_secs(secs: float) -> str:
    return str(int(secs)) if float(secs).is_integer() else f"{secs:g}"


__all__ = ["OperationResult", "ServerController", "VALID_ACTIONS"]
