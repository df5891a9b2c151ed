"""
Logging configuration for the ``serverctl`` command line.

Library code only obtains module loggers; handlers are installed here, once,
for command-line use:
- Console output to stdout with bare messages (debug with ``-v``, warnings only with ``-q``)
- Optional file output with timestamps
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional

_config_lock = threading.Lock()
_MODULE_LOGGER = logging.getLogger(__name__)
_UNKNOWN_LOGGER_NAME = "<unknown>"

TECHNICAL_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TECHNICAL_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def console_level(verbose: bool = False, quiet: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def _close_handlers(logger: logging.Logger, logger_name: Optional[str] = None) -> None:
    """Close all handlers for a logger, logging any errors."""
    for handler in list(logger.handlers):
        try:
            handler.close()
        except OSError as e:  # Best-effort cleanup operation  # policy_guard: allow-silent-handler
            safe_name = logger_name if logger_name else _UNKNOWN_LOGGER_NAME
            _MODULE_LOGGER.debug("Handler close failed for logger '%s': %s", safe_name, e)


def _reset_root_handlers(root_logger: logging.Logger) -> None:
    _close_handlers(root_logger, "root")
    root_logger.handlers = []


def _build_console_handler(level: int) -> logging.Handler:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    console_handler.setLevel(level)
    return console_handler


def _build_file_handler(log_file: Path) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, mode="a")
    file_handler.setFormatter(logging.Formatter(TECHNICAL_FORMAT, TECHNICAL_DATE_FORMAT))
    file_handler.setLevel(logging.DEBUG)
    return file_handler


def _suppress_noisy_third_parties() -> None:
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("psutil").setLevel(logging.WARNING)


def setup_logging(verbose: bool = False, quiet: bool = False, log_file: Optional[Path] = None) -> None:
    """Configure root logging for command-line use, replacing existing handlers."""

    with _config_lock:
        root_logger = logging.getLogger()
        _reset_root_handlers(root_logger)

        level = console_level(verbose, quiet)
        root_logger.addHandler(_build_console_handler(level))
        if log_file is not None:
            root_logger.addHandler(_build_file_handler(log_file))

        root_logger.setLevel(logging.DEBUG if log_file is not None else level)
        _suppress_noisy_third_parties()


__all__ = ["console_level", "setup_logging"]
