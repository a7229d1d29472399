"""recordgrid exception hierarchy.

All recordgrid exceptions inherit from RecordGridException, enabling
catch-all handling while supporting specific error types.

Only GridConfigurationError is raised to callers. The other types are
recoverable: the controller builds them and hands them to the error
reporter instead of raising.
"""

from __future__ import annotations

from typing import Any


class RecordGridException(Exception):
    """Base exception for all recordgrid errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize recordgrid exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (table_id, request_id, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class GridConfigurationError(RecordGridException):
    """Grid was configured incorrectly by its caller.

    Raised at construction time for duplicate column ids, a non-positive
    page size or an unknown preference backend. Never reported through
    the error reporter.
    """


class FetchError(RecordGridException):
    """Remote data source call failed.

    Reported when the source raises or returns an unusable response.
    The previously displayed rows stay on screen.
    """

    def __init__(
        self,
        message: str,
        table_id: str | None = None,
        request_id: int | None = None,
        status_code: int | None = None,
        **context: Any,
    ) -> None:
        """Initialize fetch error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        table_id : str, optional
            The grid whose query failed.
        request_id : int, optional
            Sequence number of the failed request.
        status_code : int, optional
            HTTP status code when the source is HTTP based.
        **context : Any
            Additional context.
        """
        super().__init__(
            message,
            table_id=table_id,
            request_id=request_id,
            status_code=status_code,
            **context,
        )
        self.table_id = table_id
        self.request_id = request_id
        self.status_code = status_code


class PreferenceError(RecordGridException):
    """Reading, writing or decoding stored preferences failed.

    Treated as "no preference available"; never surfaces to rendering.
    """

    def __init__(
        self,
        message: str,
        table_id: str | None = None,
        operation: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize preference error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        table_id : str, optional
            The table whose preferences were involved.
        operation : str, optional
            One of "save", "load" or "clear".
        **context : Any
            Additional context.
        """
        super().__init__(message, table_id=table_id, operation=operation, **context)
        self.table_id = table_id
        self.operation = operation


class ExportError(RecordGridException):
    """Export could not produce or deliver a file."""

    def __init__(self, message: str, fmt: str | None = None, **context: Any) -> None:
        """Initialize export error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        fmt : str, optional
            Export format ("csv" or "xlsx").
        **context : Any
            Additional context.
        """
        super().__init__(message, fmt=fmt, **context)
        self.fmt = fmt


class EmptyExportError(ExportError):
    """Export was requested for an empty row set.

    No file is produced.
    """
