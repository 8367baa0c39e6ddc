"""Unit tests for Settings loading and validation."""

import pytest
from pydantic import ValidationError

from outbound_http.config.settings import Settings, get_settings


def test_defaults_match_client_contract():
    s = Settings()
    assert s.dial_timeout == 30.0
    assert s.keepalive_interval == 30.0
    assert s.max_idle_connections == 100
    assert s.idle_connection_timeout == 90.0
    assert s.tls_handshake_timeout == 10.0
    assert s.expect_continue_timeout == 1.0
    assert s.call_timeout == 300.0
    assert s.fallback_timeout == 30.0
    assert s.log_body_limit == 10_000
    assert s.connect_timeout == 30.0


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("OUTBOUND_HTTP_CALL_TIMEOUT", "45")
    monkeypatch.setenv("OUTBOUND_HTTP_MAX_RENEWALS", "7")
    s = Settings()
    assert s.call_timeout == 45.0
    assert s.max_renewals == 7


def test_get_settings_is_cached(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("OUTBOUND_HTTP_LOG_BODY_LIMIT", "5")
    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().log_body_limit == 5


@pytest.mark.parametrize("field", ["dial_timeout", "call_timeout", "fallback_timeout"])
def test_non_positive_timeouts_rejected(field):
    with pytest.raises(ValidationError):
        Settings(**{field: 0})


def test_negative_retry_cap_rejected():
    with pytest.raises(ValidationError):
        Settings(max_redirects=-1)


def test_retry_caps_accept_none():
    s = Settings(max_redirects=None, max_renewals=None)
    assert s.max_redirects is None
    assert s.max_renewals is None


@pytest.mark.parametrize("raw", ["None", "null", ""])
def test_retry_caps_unbounded_from_env(monkeypatch, raw):
    monkeypatch.setenv("OUTBOUND_HTTP_MAX_REDIRECTS", raw)
    monkeypatch.setenv("OUTBOUND_HTTP_MAX_RENEWALS", raw)
    s = Settings()
    assert s.max_redirects is None
    assert s.max_renewals is None
