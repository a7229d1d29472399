"""Package logger for recordgrid.

A grid must keep rendering when a fetch fails, a preference file is
unreadable or an export has nothing to write. Those failures are
reported through the error reporter and end up here; nothing in this
module raises.

Usage:
    from recordgrid.log import debug, enable_debug

    enable_debug()  # show fetch sequencing on stderr
"""

from __future__ import annotations

import logging
import sys

from collections.abc import Mapping
from typing import Any


LOGGER_NAME = "recordgrid"
_FORMAT = "%(name)s - %(levelname)s - %(message)s"


class _LoggerHolder:
    """Lazily created package logger."""

    instance: logging.Logger | None = None


def get_logger() -> logging.Logger:
    """Return the ``recordgrid`` logger, creating it on first use.

    The first call attaches a stderr handler unless the application has
    configured one already, and defaults the level to WARNING unless a
    level was set beforehand.

    Returns
    -------
    logging.Logger
        The package logger.
    """
    if _LoggerHolder.instance is None:
        logger = logging.getLogger(LOGGER_NAME)
        # Keep a level the application already set
        if logger.level == logging.NOTSET:
            logger.setLevel(logging.WARNING)

        if not logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter(_FORMAT))
            logger.addHandler(handler)

        _LoggerHolder.instance = logger

    return _LoggerHolder.instance


def debug(msg: str) -> None:
    """Fetch sequencing, preference I/O and other tracing detail."""
    get_logger().debug(msg)


def info(msg: str) -> None:
    """State transitions worth seeing in normal operation."""
    get_logger().info(msg)


def warn(msg: str) -> None:
    """Recoverable problems: empty exports, dropped preference values."""
    get_logger().warning(msg)


def error(msg: str) -> None:
    """Failures the grid recovered from but the user will notice."""
    get_logger().error(msg)


def exception(msg: str) -> None:
    """Log ``msg`` at error level with the active traceback.

    Only meaningful inside an ``except`` block.
    """
    get_logger().exception(msg)


def log_callback_error(table_id: str, callback: str, exc: BaseException) -> None:
    """Log an exception raised by a callback the application registered.

    Parameters
    ----------
    table_id : str
        Grid whose callback failed.
    callback : str
        Human readable callback name, e.g. ``"row selection"``.
    exc : BaseException
        The exception the callback raised.
    """
    get_logger().exception(f"[{table_id}] {callback} callback failed: {exc}")


def set_level(level: int | str) -> None:
    """Change the package log level.

    Parameters
    ----------
    level : int or str
        A ``logging`` constant or its name in any case, e.g. ``"debug"``.

    Raises
    ------
    ValueError
        If a level name is not one ``logging`` knows.
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level '{level}'")
        level = resolved
    get_logger().setLevel(level)


def enable_debug() -> None:
    """Turn on debug output.

    Shows every fetch as it is issued, applied or discarded as stale,
    along with preference reads and writes and export deliveries.
    """
    set_level(logging.DEBUG)


# Substrings of keys whose values never reach the log
_SENSITIVE_KEYS = (
    "secret",
    "password",
    "api_key",
    "apikey",
    "token",
    "auth",
    "credential",
    "cookie",
)


def _is_sensitive(key: Any) -> bool:
    name = str(key).lower()
    return any(marker in name for marker in _SENSITIVE_KEYS)


def redact_sensitive_data(data: Any, max_depth: int = 5) -> Any:
    """Copy ``data`` with credential-like values replaced by ``"[REDACTED]"``.

    Used before request headers and payloads are logged. Mappings (plain
    dicts or ``httpx.Headers``), lists and tuples are walked; any other
    value is returned unchanged.

    Parameters
    ----------
    data : Any
        Value to redact.
    max_depth : int, optional
        Nesting below this depth is replaced by ``"[MAX_DEPTH]"``.

    Returns
    -------
    Any
        Redacted copy. Mappings come back as plain dicts.
    """
    if max_depth <= 0:
        return "[MAX_DEPTH]"

    if isinstance(data, Mapping):
        return {
            k: "[REDACTED]" if _is_sensitive(k) else redact_sensitive_data(v, max_depth - 1)
            for k, v in data.items()
        }

    if isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item, max_depth - 1) for item in data]

    return data
