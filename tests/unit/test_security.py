"""Unit tests for log sanitization helpers."""

import logging

from outbound_http.utils.security import (
    BODY_TOO_LARGE,
    SanitizingFormatter,
    format_body,
    sanitize_headers,
    sanitize_string,
)


def test_sanitize_headers_redacts_credentials():
    headers = {
        "Authorization": "Bearer secret-token",
        "Cookie": "session=abc",
        "X-Trace": "abc",
    }
    safe = sanitize_headers(headers)
    assert safe["Authorization"] == "<REDACTED:length=19>"
    assert safe["Cookie"].startswith("<REDACTED")
    assert safe["X-Trace"] == "abc"
    assert headers["Authorization"] == "Bearer secret-token"


def test_sanitize_headers_empty():
    assert sanitize_headers(None) == {}


def test_sanitize_string_redacts_bearer_in_text():
    out = sanitize_string("retrying with Bearer abc.def-123 now")
    assert "abc.def-123" not in out
    assert "retrying with" in out


def test_format_body_limit():
    assert format_body(b"x" * 10, limit=10) == "x" * 10
    assert format_body(b"x" * 11, limit=10) == BODY_TOO_LARGE
    assert format_body(None, limit=10) == ""
    assert format_body("héllo", limit=100) == "héllo"


def test_sanitizing_formatter():
    record = logging.LogRecord(
        "outbound_http", logging.DEBUG, __file__, 1,
        "token %s", ("Bearer abcdef",), None,
    )
    assert "abcdef" not in SanitizingFormatter("%(message)s").format(record)


def test_setup_secure_logging_runs_once(monkeypatch):
    from unittest.mock import MagicMock

    from outbound_http.utils import security

    basic_config = MagicMock()
    monkeypatch.setattr(security, "_LOGGING_CONFIGURED", False)
    monkeypatch.setattr(security.logging, "basicConfig", basic_config)

    security.setup_secure_logging()
    security.setup_secure_logging("ERROR")

    basic_config.assert_called_once()
    kwargs = basic_config.call_args.kwargs
    assert kwargs["level"] == logging.DEBUG  # from OUTBOUND_HTTP_LOG_LEVEL
    assert isinstance(kwargs["handlers"][0].formatter, SanitizingFormatter)
