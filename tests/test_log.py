"""Tests for recordgrid.log."""

from __future__ import annotations

import logging

import httpx
import pytest

from recordgrid.log import (
    enable_debug,
    get_logger,
    log_callback_error,
    redact_sensitive_data,
    set_level,
)


class TestLogger:
    """Tests for the package logger."""

    def test_single_named_logger(self) -> None:
        """One lazily created logger named recordgrid."""
        logger = get_logger()
        assert logger is get_logger()
        assert logger.name == "recordgrid"
        assert logger.handlers

    def test_set_level_accepts_names(self) -> None:
        """Levels may be given by name or number."""
        try:
            set_level("error")
            assert get_logger().level == logging.ERROR
            enable_debug()
            assert get_logger().level == logging.DEBUG
        finally:
            set_level(logging.WARNING)

    def test_unknown_level_name_rejected(self) -> None:
        """A misspelt level name fails instead of being ignored."""
        with pytest.raises(ValueError, match="Unknown log level"):
            set_level("verbose")

    def test_callback_error_logged_with_traceback(self, caplog) -> None:
        """Callback failures name the grid and carry the traceback."""
        with caplog.at_level("ERROR", logger="recordgrid"):
            try:
                raise RuntimeError("listener down")
            except RuntimeError as exc:
                log_callback_error("users", "row selection", exc)
        record = caplog.records[-1]
        assert record.getMessage() == "[users] row selection callback failed: listener down"
        assert record.exc_info is not None


class TestRedaction:
    """Tests for redact_sensitive_data."""

    def test_headers(self) -> None:
        """Authorization headers never reach the log."""
        headers = {"Accept": "application/json", "Authorization": "Bearer abc"}
        assert redact_sensitive_data(headers) == {
            "Accept": "application/json",
            "Authorization": "[REDACTED]",
        }

    def test_httpx_headers(self) -> None:
        """Header objects are redacted like plain dicts."""
        headers = httpx.Headers({"Authorization": "Bearer abc", "X-Trace": "1"})
        redacted = redact_sensitive_data(headers)
        assert {k.lower(): v for k, v in redacted.items()} == {
            "authorization": "[REDACTED]",
            "x-trace": "1",
        }

    def test_nested(self) -> None:
        """Nested containers are traversed."""
        data = {"items": [{"apiKey": "k", "name": "x"}], "password": "p"}
        assert redact_sensitive_data(data) == {
            "items": [{"apiKey": "[REDACTED]", "name": "x"}],
            "password": "[REDACTED]",
        }

    def test_scalars_and_depth(self) -> None:
        """Scalars pass through; deep structures are cut off."""
        assert redact_sensitive_data("plain") == "plain"
        assert redact_sensitive_data(None) is None
        assert redact_sensitive_data(("a", {"token": "t"})) == ["a", {"token": "[REDACTED]"}]
        assert redact_sensitive_data({"a": {"b": 1}}, max_depth=1) == {"a": "[MAX_DEPTH]"}
