"""
Command line entry point, in the spirit of apachectl.

Usage:
    serverctl -k start --pid-file /tmp/x/server.pid --port 15432 --command "myserver --port {port}"
    serverctl -k graceful --adapter apache --server-root /my/apache

Exit status is 2 for usage or configuration errors, 1 when the requested
action failed and 0 otherwise.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .adapters import (
    ApacheServerAdapter,
    BaseServerAdapter,
    CommandServerAdapter,
    NginxServerAdapter,
    StarmanServerAdapter,
    load_adapter_class,
)
from .config import ConfigurationError
from .controller import VALID_ACTIONS, ServerController
from .errors import PidFileError
from .logging_config import setup_logging

logger = logging.getLogger("server_control")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2

# Options forwarded to descriptor resolution, by argparse dest.
DESCRIPTOR_OPTIONS = (
    "bind_addr",
    "error_log",
    "log_dir",
    "name",
    "pid_file",
    "poll_interval",
    "port",
    "server_root",
    "serverctlrc",
    "use_sudo",
    "wait_for_status_secs",
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="serverctl", description="apachectl-style control for a background server")
    parser.add_argument("-k", "--action", required=True, help=f"one of {', '.join(VALID_ACTIONS)} (or graceful, if supported)")
    parser.add_argument(
        "--adapter",
        "--class",
        dest="adapter",
        default="command",
        help="adapter name (command, apache, nginx, starman) or package.module:ClassName",
    )

    server = parser.add_argument_group("server")
    server.add_argument("--bind-addr", help="address the server binds to (default: localhost)")
    server.add_argument("-d", "--server-root", help="root directory of the server; logs default to <root>/logs")
    server.add_argument("--error-log", help="error log to show when the server fails to start")
    server.add_argument("--log-dir", help="log directory (default: <server-root>/logs)")
    server.add_argument("--name", help="name used in output")
    server.add_argument("--pid-file", help="path to the pid file")
    server.add_argument("--port", help="port the server listens to")
    server.add_argument("--use-sudo", help="run commands through sudo (default: port < 1024)")
    server.add_argument("--wait-for-status-secs", help="seconds to wait for start or stop (default: 10)")
    server.add_argument("--poll-interval", help="seconds between status checks (default: 0.2)")
    server.add_argument("--serverctlrc", help="YAML rc file with default parameters (default: <server-root>/serverctl.yml)")

    adapter = parser.add_argument_group("adapter")
    adapter.add_argument("--command", help="start command for the command adapter")
    adapter.add_argument("--stop-command", help="stop command for the command adapter (default: SIGTERM)")
    adapter.add_argument("--write-pid-file", action="store_true", help="command adapter writes the pid file itself")
    adapter.add_argument("--conf-file", help="conf file for apache or nginx")
    adapter.add_argument("-b", "--binary", help="server binary for apache, nginx or starman")
    adapter.add_argument("--app-psgi", help="app.psgi for starman")
    adapter.add_argument("--option", action="append", default=[], metavar="KEY=VALUE", help="adapter option; repeatable")

    output = parser.add_argument_group("output")
    verbosity = output.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="log debug messages")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="log warnings and errors only")
    output.add_argument("--log-file", help="also write a timestamped log to this file")
    return parser


def parse_options(pairs: Sequence[str]) -> Dict[str, str]:
    options: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError.invalid_format("--option", pair, "KEY=VALUE")
        options[key.strip()] = value.strip()
    return options


def build_adapter(args: argparse.Namespace) -> BaseServerAdapter:
    """Instantiate the adapter selected by ``--adapter`` from its command-line options."""
    adapter_class = load_adapter_class(args.adapter)
    options = parse_options(args.option)

    if adapter_class is CommandServerAdapter:
        if not args.command:
            raise ConfigurationError.missing_value("command", "--command is required for the command adapter")
        return CommandServerAdapter(args.command, args.stop_command, write_pid_file=args.write_pid_file)
    if adapter_class is ApacheServerAdapter:
        return ApacheServerAdapter(conf_file=args.conf_file, httpd_binary=args.binary)
    if adapter_class is NginxServerAdapter:
        if not args.conf_file:
            raise ConfigurationError.missing_value("conf_file", "--conf-file is required for nginx")
        return NginxServerAdapter(args.conf_file, nginx_binary=args.binary)
    if adapter_class is StarmanServerAdapter:
        if not args.app_psgi:
            raise ConfigurationError.missing_value("app_psgi", "--app-psgi is required for starman")
        return StarmanServerAdapter(args.app_psgi, options, starman_binary=args.binary)
    return adapter_class(**options)


def descriptor_params(args: argparse.Namespace) -> Dict[str, Any]:
    return {name: getattr(args, name) for name in DESCRIPTOR_OPTIONS if getattr(args, name) is not None}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, quiet=args.quiet, log_file=Path(args.log_file) if args.log_file else None)

    try:
        adapter = build_adapter(args)
        controller = ServerController.from_params(adapter, descriptor_params(args), logger=logger)
    except (ConfigurationError, TypeError, ValueError) as exc:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    if args.action not in controller.valid_actions():
        choices = ", ".join(f"'{name}'" for name in controller.valid_actions())
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: invalid action '{args.action}' - must be one of {choices}", file=sys.stderr)
        return EXIT_USAGE

    try:
        result = controller.perform(args.action)
    except PidFileError as exc:
        logger.critical("%s", exc)
        return EXIT_FAILED
    return EXIT_OK if result.success else EXIT_FAILED


__all__ = ["build_adapter", "build_parser", "main", "parse_options"]
