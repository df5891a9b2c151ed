"""Process lookups by pid, backed by psutil with a ``/proc`` fallback on Linux."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import psutil

logger = logging.getLogger(__name__)

PROC_ROOT = Path("/proc")


@dataclass(frozen=True)
class ProcessHandle:
    """A live process found in the process table."""

    pid: int
    owner_uid: Optional[int]
    name: Optional[str] = None


class ProcessTable:
    """
    Looks up a pid in the OS process table.

    Some server runtimes are missing from generic process enumeration on Linux
    while still present under ``/proc``; those are found through the fallback.
    Zombies are reported as absent since they no longer serve anything.
    """

    def __init__(self, proc_root: Path = PROC_ROOT, use_procfs_fallback: Optional[bool] = None) -> None:
        self.proc_root = proc_root
        if use_procfs_fallback is None:
            use_procfs_fallback = sys.platform.startswith("linux")
        self.use_procfs_fallback = use_procfs_fallback

    def lookup(self, pid: int) -> Optional[ProcessHandle]:
        """
        Find *pid* in the process table.

        Args:
            pid: Process id to look up

        Returns:
            ProcessHandle when the process exists and is not a zombie, else None
        """
        if pid <= 0:
            return None

        handle = self._lookup_psutil(pid)
        if handle is None and self.use_procfs_fallback:
            handle = self._lookup_procfs(pid)
        return handle

    def _lookup_psutil(self, pid: int) -> Optional[ProcessHandle]:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                if proc.status() == psutil.STATUS_ZOMBIE:
                    logger.debug("process %d is a zombie", pid)
                    return None
                owner_uid = _owner_uid(proc)
                name = _process_name(proc)
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            logger.debug("process %d not found by psutil", pid)
            return None
        except psutil.AccessDenied:  # policy_guard: allow-silent-handler
            # Exists, but details are hidden from us.
            return ProcessHandle(pid=pid, owner_uid=None)
        return ProcessHandle(pid=pid, owner_uid=owner_uid, name=name)

    def _lookup_procfs(self, pid: int) -> Optional[ProcessHandle]:
        proc_dir = self.proc_root / str(pid)
        try:
            stat_result = os.stat(proc_dir)
        except FileNotFoundError:
            return None
        except OSError as exc:  # policy_guard: allow-silent-handler
            logger.debug("cannot stat %s: %s", proc_dir, exc)
            return None
        if _procfs_is_zombie(proc_dir):
            logger.debug("process %d is a zombie", pid)
            return None
        logger.debug("process %d found through %s", pid, proc_dir)
        return ProcessHandle(pid=pid, owner_uid=stat_result.st_uid, name=_procfs_name(proc_dir))


def _owner_uid(proc: psutil.Process) -> Optional[int]:
    try:
        return proc.uids().real
    except (AttributeError, psutil.AccessDenied):  # policy_guard: allow-silent-handler
        # uids() is unavailable on Windows
        return None


def _process_name(proc: psutil.Process) -> Optional[str]:
    try:
        return proc.name()
    except psutil.AccessDenied:  # policy_guard: allow-silent-handler
        return None


def _procfs_name(proc_dir: Path) -> Optional[str]:
    try:
        return (proc_dir / "comm").read_text().strip() or None
    except OSError:  # policy_guard: allow-silent-handler
        return None


def _procfs_is_zombie(proc_dir: Path) -> bool:
    try:
        stat_line = (proc_dir / "stat").read_text()
    except OSError:  # policy_guard: allow-silent-handler
        return False
    # "pid (comm) state ..."; comm may itself contain parentheses
    fields = stat_line.rpartition(")")[2].split()
    return bool(fields) and fields[0] == "Z"


def current_uids() -> tuple[int, int]:
    """Return the (real, effective) uid of the calling process."""
    return os.getuid(), os.geteuid()


__all__ = ["PROC_ROOT", "ProcessHandle", "ProcessTable", "current_uids"]
