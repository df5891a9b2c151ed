"""Unit tests for ServerController against simulated OS state."""

import logging
import time

import pytest

from server_control import controller as controller_module
from server_control.adapters import ApacheServerAdapter
from server_control.config import ConfigurationError
from server_control.controller import OperationResult, ServerController
from server_control.errors import AdapterError, PidFileError
from server_control.pid_file import PidFileStore
from server_control.status import Status
from tests.helpers.server_control_fakes import RecordingAdapter

ACTIVE_MSG = "server 'x' is running (pid 4821) and listening to port 15432"


@pytest.fixture(autouse=True)
def same_user(monkeypatch):
    monkeypatch.setattr("server_control.diagnostics.current_uids", lambda: (1000, 1000))


@pytest.fixture(autouse=True)
def no_listener_details(monkeypatch):
    monkeypatch.setattr("server_control.port_probe.describe_listeners", lambda port: [])


class GracefulAdapter(RecordingAdapter):
    def __init__(self, *args, config_error=None, graceful_error=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.config_error = config_error
        self.graceful_error = graceful_error
        self.graceful_calls = []
        self.config_checks = 0

    def check_config_syntax(self, descriptor):
        self.config_checks += 1
        if self.config_error is not None:
            raise self.config_error

    def do_graceful(self, descriptor, process):
        self.graceful_calls.append(process)
        if self.graceful_error is not None:
            raise self.graceful_error


class TestStart:
    def test_start_from_inactive(self, controller, adapter, caplog):
        with caplog.at_level(logging.INFO):
            result = controller.start()

        assert result == OperationResult("start", True, "server 'x' is now running (pid 4821) and listening to port 15432", Status.ACTIVE)
        assert len(adapter.start_calls) == 1
        assert "waiting for server start" in caplog.text
        assert controller.status().status == Status.ACTIVE

    def test_start_is_idempotent(self, controller, adapter, caplog):
        controller.start()

        with caplog.at_level(logging.WARNING):
            result = controller.start()

        assert not result
        assert result.message == "server 'x' is already running (pid 4821) and listening to port 15432"
        assert result.message in caplog.text
        assert len(adapter.start_calls) == 1

    def test_running_but_not_listening_counts_as_running(self, controller, adapter, fake_server, descriptor):
        fake_server.launch(descriptor, listen=False)

        result = controller.start()

        assert not result.success
        assert "already running (pid 4821), but not listening" in result.message
        assert adapter.start_calls == []

    def test_port_in_use_without_pid_file_aborts(self, controller, adapter, probe, caplog):
        probe.listening = True

        with caplog.at_level(logging.WARNING):
            result = controller.start()

        assert not result.success
        assert result.status == Status.LISTENING
        assert adapter.start_calls == []
        assert "pid file" in result.message and "does not exist" in result.message
        assert "something is listening to port 15432" in caplog.text

    def test_corrupt_pid_file_is_repaired_before_start(self, controller, adapter, descriptor, caplog):
        descriptor.pid_file.write_text("blah")

        with caplog.at_level(logging.INFO):
            result = controller.start()

        assert result.success
        assert "does not contain a valid process id" in caplog.text
        assert len(adapter.start_calls) == 1
        assert PidFileStore.read(descriptor.pid_file).pid == 4821

    def test_adapter_failure_is_reported_with_error_log(self, descriptor, engine, caplog):
        def fail(desc):
            desc.error_log.write_text("fatal: cannot bind\n")
            raise AdapterError("boom")

        controller = ServerController(descriptor, RecordingAdapter(on_start=fail), status_engine=engine)

        with caplog.at_level(logging.INFO):
            result = controller.start()

        assert not result.success
        assert result.message == "error while trying to start server 'x': boom"
        assert "error log output:\n> fatal: cannot bind" in caplog.text

    def test_timeout_reports_status_and_new_error_log_lines(self, descriptor, engine, caplog):
        descriptor.error_log.write_text("old line\n")

        def starts_but_dies(desc):
            with desc.error_log.open("a") as fh:
                fh.write("new line\n")

        controller = ServerController(descriptor, RecordingAdapter(on_start=starts_but_dies), status_engine=engine)

        begin = time.monotonic()
        with caplog.at_level(logging.INFO):
            result = controller.start()
        elapsed = time.monotonic() - begin

        assert not result.success
        assert result.message == "server 'x' is not running"
        assert elapsed < descriptor.wait_for_status_secs + descriptor.poll_interval + 0.5
        assert "after 0.5 secs, server 'x' is not running" in caplog.text
        assert "> new line" in caplog.text
        assert "old line" not in caplog.text

    def test_zero_wait_checks_once(self, descriptor, engine, probe):
        controller = ServerController(descriptor.with_overrides(wait_for_status_secs=0), RecordingAdapter(), status_engine=engine)

        result = controller.start()

        assert not result.success
        # one check before starting, one while waiting
        assert len(probe.calls) == 2


class TestStop:
    def test_stop_when_not_running(self, controller, adapter, caplog):
        with caplog.at_level(logging.WARNING):
            result = controller.stop()

        assert not result.success
        assert result.message == "server 'x' is not running"
        assert "server 'x' is not running" in caplog.text
        assert adapter.stop_calls == []

    def test_stop_running_server(self, controller, adapter, fake_server, descriptor, caplog):
        fake_server.launch(descriptor)

        with caplog.at_level(logging.INFO):
            result = controller.stop()

        assert result.success
        assert result.message == "server 'x' has stopped"
        assert [process.pid for process in adapter.stop_calls] == [4821]
        assert not descriptor.pid_file.exists()
        assert "waiting for server stop" in caplog.text

    def test_stop_timeout_when_process_survives(self, descriptor, engine, fake_server, caplog):
        fake_server.launch(descriptor)
        controller = ServerController(descriptor, RecordingAdapter(), status_engine=engine)

        with caplog.at_level(logging.INFO):
            result = controller.stop()

        assert not result.success
        assert result.message == "server 'x' could not be stopped gracefully"
        assert f"after 0.5 secs, {ACTIVE_MSG}" in caplog.text

    def test_stop_leaves_something_listening(self, descriptor, engine, fake_server, process_table):
        fake_server.launch(descriptor)

        def exit_but_leave_child(desc, process):
            desc.pid_file.unlink()
            process_table.remove(process.pid)

        controller = ServerController(descriptor, RecordingAdapter(on_stop=exit_but_leave_child), status_engine=engine)

        result = controller.stop()

        assert not result.success
        assert result.message == (
            "server 'x' has stopped, but something is listening to port 15432 - possibly a child process"
        )

    def test_stop_adapter_error(self, descriptor, engine, fake_server):
        fake_server.launch(descriptor)

        def refuse(desc, process):
            raise PermissionError(1, "Operation not permitted")

        controller = ServerController(descriptor, RecordingAdapter(on_stop=refuse), status_engine=engine)

        result = controller.stop()

        assert not result.success
        assert result.message.startswith("error while trying to stop server 'x':")
        assert result.status == Status.ACTIVE

    def test_ownership_warning_for_other_user(self, controller, fake_server, descriptor, monkeypatch, caplog):
        monkeypatch.setattr("server_control.diagnostics.current_uids", lambda: (2000, 2000))
        monkeypatch.setattr("server_control.diagnostics.user_name", lambda uid: f"user{uid}")
        fake_server.launch(descriptor)

        with caplog.at_level(logging.WARNING):
            controller.stop()

        assert (
            "warning: process 4821 is owned by uid 1000 ('user1000'), different than current user 2000 ('user2000'); "
            "may not be able to stop server"
        ) in caplog.text

    def test_no_ownership_warning_with_sudo(self, descriptor, adapter, engine, fake_server, monkeypatch, caplog):
        monkeypatch.setattr("server_control.diagnostics.current_uids", lambda: (2000, 2000))
        controller = ServerController(descriptor.with_overrides(use_sudo=True), adapter, status_engine=engine)
        fake_server.launch(descriptor)

        with caplog.at_level(logging.WARNING):
            controller.stop()

        assert "is owned by uid" not in caplog.text


class TestRestartAndPing:
    def test_restart_running_server(self, controller, adapter, fake_server, descriptor):
        fake_server.launch(descriptor)

        result = controller.restart()

        assert result.action == "restart"
        assert result.success
        assert [step.action for step in result.steps] == ["stop", "start"]
        assert result.message == "server 'x' has stopped; server 'x' is now running (pid 4821) and listening to port 15432"
        assert len(adapter.stop_calls) == 1
        assert len(adapter.start_calls) == 1

    def test_restart_of_stopped_server_starts_it(self, controller, adapter):
        result = controller.restart()

        assert result.success
        assert adapter.stop_calls == []
        assert len(adapter.start_calls) == 1

    def test_restart_does_not_start_when_stop_fails(self, descriptor, engine, fake_server, caplog):
        fake_server.launch(descriptor)
        adapter = RecordingAdapter()
        controller = ServerController(descriptor, adapter, status_engine=engine)

        with caplog.at_level(logging.WARNING):
            result = controller.restart()

        assert not result.success
        assert result.message == (
            "could not stop server 'x', will not attempt start (server 'x' could not be stopped gracefully)"
        )
        assert [step.action for step in result.steps] == ["stop"]
        assert adapter.start_calls == []

    @pytest.mark.parametrize("listening", [False, True])
    def test_ping_always_succeeds(self, controller, probe, listening, caplog):
        probe.listening = listening

        with caplog.at_level(logging.INFO):
            result = controller.ping()

        assert result.success
        assert result.message in caplog.text
        assert controller.adapter.start_calls == []


class TestGracefulRestart:
    def test_unsupported_adapter(self, controller):
        result = controller.graceful_restart()

        assert not result.success
        assert result.message == "server 'x' does not support graceful restart"
        assert "graceful" not in controller.valid_actions()

    def test_graceful_signals_running_server(self, descriptor, engine, fake_server):
        fake_server.launch(descriptor)
        adapter = GracefulAdapter()
        controller = ServerController(descriptor, adapter, status_engine=engine)

        result = controller.perform("graceful")

        assert result.success
        assert result.message == ACTIVE_MSG
        assert adapter.config_checks == 1
        assert [process.pid for process in adapter.graceful_calls] == [4821]
        assert adapter.stop_calls == []

    def test_config_error_leaves_server_alone(self, descriptor, engine, fake_server):
        fake_server.launch(descriptor)
        adapter = GracefulAdapter(config_error=AdapterError("Syntax error on line 3"))
        controller = ServerController(descriptor, adapter, status_engine=engine)

        result = controller.graceful_restart()

        assert not result.success
        assert result.message == "config check failed for server 'x', not restarting: Syntax error on line 3"
        assert adapter.graceful_calls == []
        assert adapter.stop_calls == []

    def test_graceful_starts_stopped_server(self, descriptor, engine, fake_server):
        adapter = GracefulAdapter(on_start=fake_server.launch)
        controller = ServerController(descriptor, adapter, status_engine=engine)

        result = controller.graceful_restart()

        assert result.success
        assert len(adapter.start_calls) == 1
        assert adapter.graceful_calls == []


class TestPerform:
    def test_valid_actions(self, controller):
        assert controller.valid_actions() == ("start", "stop", "restart", "ping")
        assert ServerController(controller.descriptor, GracefulAdapter()).valid_actions()[-1] == "graceful"

    def test_invalid_action(self, controller):
        with pytest.raises(ValueError, match="invalid action 'bounce'"):
            controller.perform("bounce")

    def test_dispatches_by_name(self, controller):
        assert controller.perform("ping").action == "ping"

    def test_pid_file_repair_failure_propagates(self, controller, descriptor, monkeypatch):
        def refuse(path):
            raise PidFileError(path, reason="Permission denied")

        monkeypatch.setattr(PidFileStore, "delete_corrupt", staticmethod(refuse))
        descriptor.pid_file.write_text("blah")

        with pytest.raises(PidFileError, match="cannot remove"):
            controller.start()


def test_format_secs():
    assert controller_module._format_secs(10.0) == "10"
    assert controller_module._format_secs(0.5) == "0.5"


def _raiser(exc):
    def raise_it(*args):
        raise exc

    return raise_it


ADAPTER_FAILURES = [
    pytest.param(ConfigurationError("cannot determine conf_file"), id="configuration-error"),
    pytest.param(RuntimeError("boom"), id="runtime-error"),
    pytest.param(ValueError("bad option"), id="value-error"),
]


class TestAdapterExceptions:
    @pytest.mark.parametrize("exc", ADAPTER_FAILURES)
    def test_start_failure_becomes_result(self, descriptor, engine, exc, caplog):
        controller = ServerController(descriptor, RecordingAdapter(on_start=_raiser(exc)), status_engine=engine)

        with caplog.at_level(logging.ERROR):
            result = controller.start()

        assert not result.success
        assert result.message == f"error while trying to start server 'x': {exc}"
        assert result.message in caplog.text

    @pytest.mark.parametrize("exc", ADAPTER_FAILURES)
    def test_stop_failure_becomes_result(self, descriptor, engine, fake_server, exc):
        fake_server.launch(descriptor)
        controller = ServerController(descriptor, RecordingAdapter(on_stop=_raiser(exc)), status_engine=engine)

        result = controller.stop()

        assert not result.success
        assert result.message == f"error while trying to stop server 'x': {exc}"
        assert result.status == Status.ACTIVE

    @pytest.mark.parametrize("exc", ADAPTER_FAILURES)
    def test_graceful_failure_becomes_result(self, descriptor, engine, fake_server, exc):
        fake_server.launch(descriptor)
        adapter = GracefulAdapter(graceful_error=exc)
        controller = ServerController(descriptor, adapter, status_engine=engine)

        result = controller.graceful_restart()

        assert not result.success
        assert result.message == f"error while trying to gracefully restart server 'x': {exc}"
        assert adapter.stop_calls == []

    def test_config_check_runtime_error_becomes_result(self, descriptor, engine, fake_server):
        fake_server.launch(descriptor)
        adapter = GracefulAdapter(config_error=RuntimeError("conf missing"))
        controller = ServerController(descriptor, adapter, status_engine=engine)

        result = controller.graceful_restart()

        assert not result.success
        assert result.message == "config check failed for server 'x', not restarting: conf missing"

    def test_apache_without_conf_file(self, descriptor, engine):
        controller = ServerController(descriptor, ApacheServerAdapter(httpd_binary="/bin/true"), status_engine=engine)

        result = controller.start()

        assert not result.success
        assert "cannot determine conf_file" in result.message

    def test_pid_file_error_from_adapter_propagates(self, descriptor, engine):
        exc = PidFileError(descriptor.pid_file, reason="Read-only file system")
        controller = ServerController(descriptor, RecordingAdapter(on_start=_raiser(exc)), status_engine=engine)

        with pytest.raises(PidFileError):
            controller.start()


class TestStatusWording:
    @pytest.fixture
    def running_app(self, descriptor, adapter, engine):
        return ServerController(descriptor.with_overrides(name="running-app"), adapter, status_engine=engine)

    def test_server_name_containing_running(self, running_app):
        started = running_app.start()
        again = running_app.start()

        assert started.message == "server 'running-app' is now running (pid 4821) and listening to port 15432"
        assert again.message == "server 'running-app' is already running (pid 4821) and listening to port 15432"
