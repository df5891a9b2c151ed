"""
TCP port probing.

A successful connect only proves that *something* accepts connections on the
port, not that it is the managed server; :func:`describe_listeners` tries to
name the owner for operator messages.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import List, Optional

import psutil

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_SECONDS = 1.0
MAX_CONNECT_TIMEOUT_SECONDS = 2.0

_WILDCARD_ADDRESSES = frozenset({"", "0.0.0.0", "::", "*"})


@dataclass(frozen=True)
class ListenerInfo:
    """Owner of a listening socket, as far as it can be determined."""

    pid: int
    user: Optional[str]
    command: Optional[str]


def is_listening(bind_addr: str, port: int, timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS) -> bool:
    """
    Check whether a TCP connection to ``(bind_addr, port)`` is accepted.

    Args:
        bind_addr: Host name or address to connect to
        port: TCP port
        timeout: Connect timeout in seconds, capped at MAX_CONNECT_TIMEOUT_SECONDS

    Returns:
        True if the connection was accepted
    """
    timeout = min(max(timeout, 0.01), MAX_CONNECT_TIMEOUT_SECONDS)
    host = _connect_host(bind_addr)
    try:
        with socket.create_connection((host, port), timeout=timeout):
            listening = True
    except OSError:  # policy_guard: allow-silent-handler
        # Refused, unreachable, timed out or unresolvable all mean "not listening".
        listening = False
    logger.debug("%s is listening to %s:%d", "something" if listening else "nothing", bind_addr, port)
    return listening


def describe_listeners(port: int) -> List[ListenerInfo]:
    """
    Find processes with a TCP socket listening on *port*.

    Returns an empty list when the system refuses to disclose socket owners.
    """
    try:
        connections = psutil.net_connections(kind="tcp")
    except (psutil.AccessDenied, psutil.Error, OSError) as exc:  # policy_guard: allow-silent-handler
        logger.debug("cannot list tcp connections: %s", exc)
        return []

    listeners: List[ListenerInfo] = []
    seen: set[int] = set()
    for conn in connections:
        if conn.status != psutil.CONN_LISTEN or not conn.laddr or conn.laddr.port != port:
            continue
        if conn.pid is None or conn.pid in seen:
            continue
        seen.add(conn.pid)
        listeners.append(_listener_info(conn.pid))
    return listeners


def something_is_listening_msg(port: int) -> str:
    """Describe what occupies *port*, e.g. ``something is listening to port 80 (pid 12, ...)``."""
    msg = f"something is listening to port {port}"
    listeners = describe_listeners(port)
    if listeners:
        details = ", ".join(_format_listener(listener) for listener in listeners)
        msg += f" ({details})"
    return msg


def _format_listener(listener: ListenerInfo) -> str:
    return f"pid {listener.pid}, user '{listener.user or 'unknown'}', command '{listener.command or 'unknown'}'"


def _listener_info(pid: int) -> ListenerInfo:
    try:
        proc = psutil.Process(pid)
        with proc.oneshot():
            user = proc.username()
            command = " ".join(proc.cmdline()) or proc.name()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):  # policy_guard: allow-silent-handler
        return ListenerInfo(pid=pid, user=None, command=None)
    return ListenerInfo(pid=pid, user=user, command=command)


def _connect_host(bind_addr: str) -> str:
    """Servers bound to a wildcard address are reached through loopback."""
    if bind_addr in _WILDCARD_ADDRESSES:
        return "127.0.0.1"
    return bind_addr


__all__ = [
    "DEFAULT_CONNECT_TIMEOUT_SECONDS",
    "ListenerInfo",
    "describe_listeners",
    "is_listening",
    "something_is_listening_msg",
]
