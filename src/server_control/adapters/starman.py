"""Adapter for the Starman PSGI server."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ..descriptor import ServerDescriptor
from .base import BaseServerAdapter, build_binary

FIXED_FLAGS = ("--daemonize", "--preload-app")


class StarmanServerAdapter(BaseServerAdapter):
    """
    Runs ``starman <options> --daemonize --preload-app <app.psgi>``.

    ``port``, ``pid`` and ``error_log`` options double as the descriptor's
    port, pid file and error log unless those are given explicitly.
    """

    name = "starman"
    default_name = "starman"

    def __init__(self, app_psgi: str, options: Mapping[str, Any], starman_binary: Optional[str] = None) -> None:
        if not app_psgi:
            raise ValueError("app_psgi is required")
        self.app_psgi = app_psgi
        self.options = dict(options)
        self.starman_binary = starman_binary or build_binary("starman")

    def default_params(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "port": self.options.get("port"),
            "pid_file": self.options.get("pid"),
            "error_log": self.options.get("error_log"),
        }

    def option_args(self) -> List[str]:
        args: List[str] = []
        for key in sorted(self.options):
            args.extend([f"--{key.replace('_', '-')}", str(self.options[key])])
        args.extend(FIXED_FLAGS)
        return args

    def do_start(self, descriptor: ServerDescriptor) -> None:
        self.run_system_command([self.starman_binary, *self.option_args(), self.app_psgi], descriptor)


__all__ = ["StarmanServerAdapter"]
