"""HTTP client factory public API (barrel module).

Recommended import pattern for consumers:
    from outbound_http.utils.http import create_http_client, HTTPClientManager
"""

from .client_manager import (
    HTTPClientManager,
    create_fallback_client,
    create_http_client,
    create_limits,
    create_timeout,
    create_transport,
    keepalive_socket_options,
)

__all__ = [
    "HTTPClientManager",
    "create_http_client",
    "create_fallback_client",
    "create_transport",
    "create_timeout",
    "create_limits",
    "keepalive_socket_options",
]
