"""Operator-facing diagnostics for failed start and stop attempts."""

from __future__ import annotations

import logging
import pwd
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .descriptor import ServerDescriptor
from .process_table import ProcessHandle, current_uids

logger = logging.getLogger(__name__)

ERROR_LOG_PREFIX = "> "
MAX_ERROR_LOG_BYTES = 64 * 1024


@dataclass(frozen=True)
class ErrorLogWatch:
    """Size of the error log when an operation began."""

    path: Optional[Path]
    start_size: int

    @classmethod
    def begin(cls, error_log: Optional[Path]) -> "ErrorLogWatch":
        return cls(path=error_log, start_size=_file_size(error_log))

    def new_output(self) -> str:
        """Return text appended to the log since :meth:`begin`, or an empty string."""
        if self.path is None or not self.path.is_file():
            return ""
        end_size = _file_size(self.path)
        # A shrunken log was truncated or rotated; everything in it is new.
        offset = self.start_size if end_size >= self.start_size else 0
        if end_size <= offset:
            return ""
        offset = max(offset, end_size - MAX_ERROR_LOG_BYTES)
        try:
            with self.path.open("rb") as fh:
                fh.seek(offset)
                data = fh.read(end_size - offset)
        except OSError as exc:  # policy_guard: allow-silent-handler
            logger.debug("cannot read error log '%s': %s", self.path, exc)
            return ""
        return data.decode("utf-8", errors="replace")


class DiagnosticsReporter:
    """Formats and logs diagnostics through the controller's logger."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self.log = log or logger

    def watch_error_log(self, descriptor: ServerDescriptor) -> ErrorLogWatch:
        return ErrorLogWatch.begin(descriptor.error_log)

    def report_error_log_output(self, watch: ErrorLogWatch) -> Optional[str]:
        """
        Log lines appended to the error log since *watch* began.

        Returns:
            The quoted excerpt that was logged, or None if nothing new appeared
        """
        output = watch.new_output()
        if not output.strip():
            return None
        excerpt = quote_lines(output)
        self.log.info("error log output:\n%s", excerpt)
        return excerpt

    def ownership_warning(self, descriptor: ServerDescriptor, process: ProcessHandle) -> Optional[str]:
        """
        Warn when the server process belongs to another user and sudo is off.

        No warning is produced for root, or when the owner cannot be determined.
        """
        if descriptor.use_sudo or process.owner_uid is None:
            return None
        uid, euid = current_uids()
        if (uid == 0 and euid == 0) or process.owner_uid == uid:
            return None
        message = (
            f"warning: process {process.pid} is owned by uid {process.owner_uid} ('{user_name(process.owner_uid)}'), "
            f"different than current user {uid} ('{user_name(uid)}'); may not be able to stop server"
        )
        self.log.warning(message)
        return message


def quote_lines(text: str) -> str:
    """Prefix every line of *text* with ``> ``."""
    if not text:
        return ""
    return "\n".join(f"{ERROR_LOG_PREFIX}{line}" for line in text.rstrip("\n").split("\n"))


def user_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:  # policy_guard: allow-silent-handler
        return str(uid)


def _file_size(path: Optional[Path]) -> int:
    if path is None:
        return 0
    try:
        return path.stat().st_size
    except OSError:  # policy_guard: allow-silent-handler
        return 0


__all__ = ["DiagnosticsReporter", "ErrorLogWatch", "quote_lines", "user_name"]
