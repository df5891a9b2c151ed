"""Root pytest configuration and shared fixtures."""

from __future__ import annotations

import logging
import socket

import pytest

from server_control.config import runtime
from server_control.controller import ServerController
from server_control.descriptor import ServerDescriptor
from server_control.status_engine import StatusEngine
from tests.helpers.server_control_fakes import FakeProbe, FakeProcessTable, FakeServer, RecordingAdapter

SERVER_PORT = 15432
SERVER_PID = 4821


@pytest.fixture(autouse=True)
def isolate_env_defaults(monkeypatch):
    """Keep developer .env files and SERVERCTL_* variables out of tests."""
    runtime._DEFAULT_VALUES = {}
    for name in ("SERVERCTL_BIND_ADDR", "SERVERCTL_WAIT_FOR_STATUS_SECS", "SERVERCTL_POLL_INTERVAL", "SERVERCTL_USE_SUDO"):
        monkeypatch.delenv(name, raising=False)
    yield
    runtime._DEFAULT_VALUES = None


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def pid_file(tmp_path):
    directory = tmp_path / "x"
    directory.mkdir()
    return directory / "server.pid"


@pytest.fixture
def descriptor(pid_file) -> ServerDescriptor:
    return ServerDescriptor(
        name="x",
        port=SERVER_PORT,
        pid_file=pid_file,
        error_log=pid_file.parent / "error_log",
        wait_for_status_secs=0.5,
        poll_interval=0.05,
    )


@pytest.fixture
def process_table() -> FakeProcessTable:
    return FakeProcessTable()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def engine(process_table, probe) -> StatusEngine:
    return StatusEngine(process_table=process_table, port_probe=probe)


@pytest.fixture
def fake_server(process_table, probe) -> FakeServer:
    return FakeServer(process_table, probe, pid=SERVER_PID)


@pytest.fixture
def adapter(fake_server) -> RecordingAdapter:
    return RecordingAdapter(
        on_start=lambda descriptor: fake_server.launch(descriptor),
        on_stop=lambda descriptor, process: fake_server.terminate(descriptor),
    )


@pytest.fixture
def controller(descriptor, adapter, engine) -> ServerController:
    return ServerController(descriptor, adapter, status_engine=engine)


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
