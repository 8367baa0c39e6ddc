"""Configuration settings for the outbound HTTP executor.

This module defines the transport, retry and logging settings used by
the client factory, the request executor and the response parser.
Settings are loaded from environment variables (prefixed with
``OUTBOUND_HTTP_``) and ``.env`` files.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for outbound HTTP calls.

    Timeouts are expressed in seconds. The defaults mirror the keep-alive
    client contract: 30s dial, 30s keep-alive, 100 idle connections kept
    for 90s, 10s TLS handshake, 1s expect-continue and a 300s per-call
    budget.

    :param dial_timeout: Timeout for establishing a new connection
    :type dial_timeout: float
    :param keepalive_interval: TCP keep-alive probe interval
    :type keepalive_interval: float
    :param max_idle_connections: Maximum number of idle pooled connections
    :type max_idle_connections: int
    :param idle_connection_timeout: How long an idle connection is kept
    :type idle_connection_timeout: float
    :param tls_handshake_timeout: Timeout for the TLS handshake
    :type tls_handshake_timeout: float
    :param expect_continue_timeout: Wait for ``100 Continue`` (informational)
    :type expect_continue_timeout: float
    :param call_timeout: Per-call read/write budget for the pooled client
    :type call_timeout: float
    :param fallback_timeout: Timeout for the client used when none is given
    :type fallback_timeout: float
    :param http2: Enable HTTP/2 on the pooled client
    :type http2: bool
    :param max_redirects: Cap on 307 hops per call (None for unbounded)
    :type max_redirects: Optional[int]
    :param max_renewals: Cap on credential renewals per call (None for unbounded)
    :type max_renewals: Optional[int]
    :param log_body_limit: Bodies larger than this are elided in debug logs
    :type log_body_limit: int
    :param log_level: Logging level used by :func:`setup_secure_logging`
    :type log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    """

    model_config = SettingsConfigDict(
        env_prefix="OUTBOUND_HTTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Transport
    dial_timeout: float = Field(30.0, description="Connection dial timeout")
    keepalive_interval: float = Field(30.0, description="TCP keep-alive interval")
    max_idle_connections: int = Field(100, description="Idle connection cap")
    idle_connection_timeout: float = Field(
        90.0, description="Idle connection expiry"
    )
    tls_handshake_timeout: float = Field(10.0, description="TLS handshake timeout")
    expect_continue_timeout: float = Field(
        1.0, description="Expect: 100-continue wait (not enforced by httpx)"
    )
    call_timeout: float = Field(300.0, description="Per-call timeout")
    fallback_timeout: float = Field(
        30.0, description="Timeout for the fallback client"
    )
    http2: bool = Field(False, description="Enable HTTP/2")

    # Retry loop
    max_redirects: Optional[int] = Field(
        10, description="Maximum 307 hops per call, None for unbounded"
    )
    max_renewals: Optional[int] = Field(
        3, description="Maximum credential renewals per call, None for unbounded"
    )

    # Logging
    log_body_limit: int = Field(
        10_000, description="Response bodies above this size are not logged"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Logging level"
    )

    @field_validator(
        "dial_timeout",
        "keepalive_interval",
        "idle_connection_timeout",
        "tls_handshake_timeout",
        "expect_continue_timeout",
        "call_timeout",
        "fallback_timeout",
    )
    @classmethod
    def validate_positive_timeout(cls, v: float) -> float:
        """Reject zero or negative durations.

        :param v: Duration in seconds
        :type v: float
        :return: The validated duration
        :rtype: float
        :raises ValueError: If the duration is not positive
        """
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("max_redirects", "max_renewals", mode="before")
    @classmethod
    def parse_unbounded_cap(cls, v):
        """Map the string spellings of "no cap" to ``None``.

        Environment variables are always strings, so ``none``, ``null``
        and an empty value stand for an unbounded retry loop.
        """
        if isinstance(v, str) and v.strip().lower() in ("", "none", "null"):
            return None
        return v

    @field_validator("max_redirects", "max_renewals")
    @classmethod
    def validate_retry_cap(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("retry caps must be >= 0 or None")
        return v

    @property
    def connect_timeout(self) -> float:
        """Effective connect timeout.

        httpx covers the TCP dial and the TLS handshake with a single
        connect timeout, so the larger of the two is used.

        :return: Connect timeout in seconds
        :rtype: float
        """
        return max(self.dial_timeout, self.tls_handshake_timeout)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance.

    :return: Cached settings loaded from the environment
    :rtype: Settings
    """
    return Settings()
