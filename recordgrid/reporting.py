"""Single seam for recoverable errors.

The embedding application passes an ErrorReporter to surface failures
(toast, banner, status line). Without one, errors are only logged.
"""

from __future__ import annotations

from collections.abc import Callable

from .exceptions import RecordGridException
from .log import error, exception, warn


ErrorReporter = Callable[[RecordGridException], None]


def log_error_reporter(exc: RecordGridException) -> None:
    """Default reporter: log the error and nothing else."""
    if exc.__cause__ is not None:
        error(f"{exc}: {exc.__cause__!r}")
    else:
        warn(str(exc))


def report_error(reporter: ErrorReporter | None, exc: RecordGridException) -> None:
    """Hand an error to a reporter without letting the reporter raise.

    Parameters
    ----------
    reporter : ErrorReporter or None
        Reporter supplied by the embedding application.
    exc : RecordGridException
        The recoverable error.
    """
    if reporter is None:
        log_error_reporter(exc)
        return
    try:
        reporter(exc)
    except Exception:  # pylint: disable=broad-exception-caught
        exception(f"Error reporter failed while reporting: {exc}")
