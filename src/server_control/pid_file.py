"""Reading, writing and repairing server pid files."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .errors import PidFileError

logger = logging.getLogger(__name__)

_PID_PATTERN = re.compile(r"^\s*([0-9]+)\s*\Z")


class PidFileState(Enum):
    ABSENT = "absent"
    CORRUPT = "corrupt"
    VALID = "valid"


@dataclass(frozen=True)
class PidFileRecord:
    """Contents of a pid file as read at one instant."""

    state: PidFileState
    pid: Optional[int] = None
    raw_contents: Optional[str] = None

    @classmethod
    def absent(cls) -> "PidFileRecord":
        return cls(PidFileState.ABSENT)

    @classmethod
    def corrupt(cls, raw_contents: str) -> "PidFileRecord":
        return cls(PidFileState.CORRUPT, raw_contents=raw_contents)

    @classmethod
    def valid(cls, pid: int, raw_contents: str) -> "PidFileRecord":
        return cls(PidFileState.VALID, pid=pid, raw_contents=raw_contents)

    @property
    def is_absent(self) -> bool:
        return self.state is PidFileState.ABSENT

    @property
    def is_corrupt(self) -> bool:
        return self.state is PidFileState.CORRUPT

    @property
    def is_valid(self) -> bool:
        return self.state is PidFileState.VALID


def parse_pid(contents: str) -> Optional[int]:
    """Return the pid in *contents*, or None unless it is a single positive integer."""
    match = _PID_PATTERN.match(contents)
    if match is None:
        return None
    pid = int(match.group(1))
    return pid if pid > 0 else None


class PidFileStore:
    """Stateless access to pid files; every call reads the file system afresh."""

    @staticmethod
    def read(path: Union[str, Path]) -> PidFileRecord:
        """
        Read *path* and classify its contents.

        Args:
            path: Pid file location

        Returns:
            ``ABSENT`` when the file cannot be read, ``CORRUPT`` when it does not hold
            a positive integer, otherwise ``VALID`` with the pid
        """
        pid_path = Path(path)
        try:
            contents = pid_path.read_text(errors="replace")
        except FileNotFoundError:
            logger.debug("pid file '%s' does not exist", pid_path)
            return PidFileRecord.absent()
        except (IsADirectoryError, PermissionError) as exc:  # policy_guard: allow-silent-handler
            logger.debug("pid file '%s' is not readable: %s", pid_path, exc)
            return PidFileRecord.absent()

        pid = parse_pid(contents)
        if pid is None:
            return PidFileRecord.corrupt(contents)
        return PidFileRecord.valid(pid, contents)

    @staticmethod
    def exists(path: Union[str, Path]) -> bool:
        return Path(path).is_file()

    @staticmethod
    def delete_corrupt(path: Union[str, Path]) -> None:
        """
        Remove a corrupt or stale pid file.

        A file that vanished in the meantime counts as removed.

        Raises:
            PidFileError: If the file exists but cannot be removed
        """
        pid_path = Path(path)
        logger.info("deleting bogus pid file '%s'", pid_path)
        try:
            pid_path.unlink()
        except FileNotFoundError:
            logger.debug("pid file '%s' was already removed", pid_path)
        except OSError as exc:
            raise PidFileError(pid_path, reason=exc.strerror or str(exc)) from exc

    @staticmethod
    def write(path: Union[str, Path], pid: int) -> None:
        """Write *pid* to *path*, creating parent directories as needed."""
        if pid <= 0:
            raise ValueError(f"pid must be positive (got {pid})")
        pid_path = Path(path)
        pid_path.parent.mkdir(parents=True, exist_ok=True)
        pid_path.write_text(f"{pid}\n")


__all__ = ["PidFileRecord", "PidFileState", "PidFileStore", "parse_pid"]
