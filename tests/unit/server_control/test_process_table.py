"""Unit tests for ProcessTable."""

import os
from unittest.mock import MagicMock, patch

import psutil

from server_control import process_table as process_table_module
from server_control.process_table import ProcessHandle, ProcessTable, current_uids


def test_lookup_current_process():
    handle = ProcessTable().lookup(os.getpid())

    assert handle is not None
    assert handle.pid == os.getpid()
    assert handle.owner_uid == os.getuid()


def test_non_positive_pid():
    table = ProcessTable()

    assert table.lookup(0) is None
    assert table.lookup(-4) is None


def test_missing_process_without_fallback():
    with patch.object(process_table_module.psutil, "Process", side_effect=psutil.NoSuchProcess(999999)):
        assert ProcessTable(use_procfs_fallback=False).lookup(999999) is None


def test_zombie_is_not_running():
    proc = MagicMock()
    proc.status.return_value = psutil.STATUS_ZOMBIE
    with patch.object(process_table_module.psutil, "Process", return_value=proc):
        assert ProcessTable(use_procfs_fallback=False).lookup(4821) is None


def test_access_denied_still_exists():
    with patch.object(process_table_module.psutil, "Process", side_effect=psutil.AccessDenied(4821)):
        assert ProcessTable(use_procfs_fallback=False).lookup(4821) == ProcessHandle(pid=4821, owner_uid=None)


def test_procfs_fallback(tmp_path):
    proc_dir = tmp_path / "4821"
    proc_dir.mkdir()
    (proc_dir / "comm").write_text("starman\n")
    table = ProcessTable(proc_root=tmp_path, use_procfs_fallback=True)

    with patch.object(process_table_module.psutil, "Process", side_effect=psutil.NoSuchProcess(4821)):
        handle = table.lookup(4821)

    assert handle == ProcessHandle(pid=4821, owner_uid=os.stat(proc_dir).st_uid, name="starman")


def test_procfs_fallback_miss(tmp_path):
    table = ProcessTable(proc_root=tmp_path, use_procfs_fallback=True)

    with patch.object(process_table_module.psutil, "Process", side_effect=psutil.NoSuchProcess(4821)):
        assert table.lookup(4821) is None


def test_current_uids():
    assert current_uids() == (os.getuid(), os.geteuid())


def test_procfs_fallback_skips_zombies(tmp_path):
    proc_dir = tmp_path / "4821"
    proc_dir.mkdir()
    (proc_dir / "stat").write_text("4821 (my (odd) server) Z 1 4821 4821 0 -1\n")
    table = ProcessTable(proc_root=tmp_path, use_procfs_fallback=True)

    with patch.object(process_table_module.psutil, "Process", side_effect=psutil.NoSuchProcess(4821)):
        assert table.lookup(4821) is None
