"""Log sanitization and secure logging setup.

Outgoing request headers routinely carry bearer tokens. Everything the
executor and parser log goes through the helpers below so credentials
never reach the log stream.
"""

import logging
import re
import sys
from typing import Any, Mapping, Optional, Union

from ..config.settings import get_settings

# Patterns for sensitive data detection
SENSITIVE_PATTERNS = {
    "jwt_token": re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"),
    "bearer_token": re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE),
    "basic_auth": re.compile(r"Basic\s+[A-Za-z0-9+/=]+", re.IGNORECASE),
}

# Headers that should never be logged
SENSITIVE_HEADERS = {
    "authorization",
    "proxy-authorization",
    "x-api-key",
    "x-auth-token",
    "cookie",
    "set-cookie",
    "x-csrf-token",
    "x-access-token",
    "x-refresh-token",
}

BODY_TOO_LARGE = "...(too large to print)"


def sanitize_string(value: str) -> str:
    """Redact tokens embedded in free text.

    :param value: String to sanitize
    :type value: str
    :return: String with each sensitive match replaced by a marker
    :rtype: str
    """
    if not value:
        return value
    for pattern_name, pattern in SENSITIVE_PATTERNS.items():
        value = pattern.sub(f"<{pattern_name}:REDACTED>", value)
    return value


def sanitize_headers(headers: Optional[Mapping[str, Any]]) -> dict:
    """Sanitize HTTP headers for logging.

    :param headers: Mapping of header names to values
    :type headers: Optional[Mapping[str, Any]]
    :return: Copy with sensitive header values redacted
    :rtype: dict
    """
    if not headers:
        return {}
    sanitized = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            if isinstance(value, str) and value:
                sanitized[key] = f"<REDACTED:length={len(value)}>"
            else:
                sanitized[key] = "<REDACTED>"
        elif isinstance(value, str):
            sanitized[key] = sanitize_string(value)
        else:
            sanitized[key] = value
    return sanitized


def format_body(body: Union[bytes, str, None], limit: int) -> str:
    """Render a body for a debug log line.

    Bodies longer than ``limit`` bytes are replaced by a placeholder
    instead of being truncated, so partial JSON never shows up in logs.

    :param body: Raw body
    :type body: Union[bytes, str, None]
    :param limit: Maximum size in bytes that is printed literally
    :type limit: int
    :return: Printable body
    :rtype: str
    """
    if not body:
        return ""
    if isinstance(body, str):
        body = body.encode("utf-8")
    if len(body) > limit:
        return BODY_TOO_LARGE
    return sanitize_string(body.decode("utf-8", errors="replace"))


class SanitizingFormatter(logging.Formatter):
    """Formatter that redacts tokens from every formatted record."""

    def format(self, record: logging.LogRecord) -> str:
        return sanitize_string(super().format(record))


# Global flag to track if logging has been set up
_LOGGING_CONFIGURED = False


def setup_secure_logging(level: Optional[str] = None) -> None:
    """Set up root logging with automatic sanitization.

    Intended for host services and scripts; the library itself only
    creates module loggers. Repeated calls are ignored.

    :param level: Logging level, defaults to ``Settings.log_level``
    :type level: Optional[str]
    """
    global _LOGGING_CONFIGURED

    level = level or get_settings().log_level

    if _LOGGING_CONFIGURED:
        logging.getLogger(__name__).debug(
            "Logging already configured, skipping duplicate setup"
        )
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        SanitizingFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    numeric_level = getattr(logging, level.upper())
    logging.basicConfig(
        level=numeric_level,
        handlers=[handler],
        force=True,
    )

    # httpcore logs every connection event at DEBUG
    logging.getLogger("httpcore").setLevel(max(numeric_level, logging.INFO))

    _LOGGING_CONFIGURED = True
