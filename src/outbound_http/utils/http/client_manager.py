"""HTTP client factory with connection pooling and lifecycle management.

This module builds the keep-alive, pooled ``httpx.AsyncClient`` the
executor sends through. Redirect following is always disabled on the
clients created here: 307 handling belongs to the executor.

The :class:`HTTPClientManager` caches clients per configuration and
closes them all on shutdown.
"""

import asyncio
import logging
import socket
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ...config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_timeout(
    connect: float = 30.0,
    read: float = 300.0,
    write: float = 300.0,
    pool: float = 300.0,
) -> httpx.Timeout:
    """Create a timeout configuration object.

    :param connect: Connection (dial + TLS) timeout in seconds
    :type connect: float
    :param read: Read timeout in seconds
    :type read: float
    :param write: Write timeout in seconds
    :type write: float
    :param pool: Pool acquisition timeout in seconds
    :type pool: float
    :return: Configured timeout object
    :rtype: httpx.Timeout
    """
    return httpx.Timeout(connect=connect, read=read, write=write, pool=pool)


def create_limits(
    max_keepalive_connections: int = 100,
    max_connections: Optional[int] = None,
    keepalive_expiry: float = 90.0,
) -> httpx.Limits:
    """Create a connection limits configuration object.

    :param max_keepalive_connections: Maximum number of idle connections
    :type max_keepalive_connections: int
    :param max_connections: Maximum total connections (None for no cap)
    :type max_connections: Optional[int]
    :param keepalive_expiry: Idle connection expiry in seconds
    :type keepalive_expiry: float
    :return: Configured limits object
    :rtype: httpx.Limits
    """
    return httpx.Limits(
        max_keepalive_connections=max_keepalive_connections,
        max_connections=max_connections,
        keepalive_expiry=keepalive_expiry,
    )


def keepalive_socket_options(interval: float) -> List[Tuple[int, int, int]]:
    """Socket options enabling TCP keep-alive probes every ``interval`` seconds.

    Platforms that do not expose the idle/interval knobs only get
    ``SO_KEEPALIVE``.

    :param interval: Probe interval in seconds
    :type interval: float
    :return: Options for ``httpx.AsyncHTTPTransport(socket_options=...)``
    :rtype: List[Tuple[int, int, int]]
    """
    seconds = max(1, int(interval))
    options = [(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)]
    if hasattr(socket, "TCP_KEEPIDLE"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, seconds))
    if hasattr(socket, "TCP_KEEPINTVL"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, seconds))
    return options


def create_transport(
    settings: Optional[Settings] = None,
    limits: Optional[httpx.Limits] = None,
) -> httpx.AsyncHTTPTransport:
    """Create the pooled keep-alive transport.

    :param settings: Settings to read from, defaults to the cached ones
    :type settings: Optional[Settings]
    :param limits: Optional custom connection limits
    :type limits: Optional[httpx.Limits]
    :return: Transport with keep-alive socket options
    :rtype: httpx.AsyncHTTPTransport
    """
    settings = settings or get_settings()
    return httpx.AsyncHTTPTransport(
        limits=limits
        or create_limits(
            max_keepalive_connections=settings.max_idle_connections,
            keepalive_expiry=settings.idle_connection_timeout,
        ),
        http2=_http2_available(settings.http2),
        socket_options=keepalive_socket_options(settings.keepalive_interval),
    )


def create_http_client(
    settings: Optional[Settings] = None, **kwargs: Any
) -> httpx.AsyncClient:
    """Create a keep-alive, pooled HTTP client.

    The caller owns the returned client and must close it, unless it
    was obtained through :class:`HTTPClientManager`.

    :param settings: Settings to read from, defaults to the cached ones
    :type settings: Optional[Settings]
    :param kwargs: Extra ``httpx.AsyncClient`` arguments (e.g. ``base_url``)
    :return: Configured client
    :rtype: httpx.AsyncClient
    """
    settings = settings or get_settings()
    client_config: Dict[str, Any] = {
        "timeout": create_timeout(
            connect=settings.connect_timeout,
            read=settings.call_timeout,
            write=settings.call_timeout,
            pool=settings.call_timeout,
        ),
        "transport": create_transport(settings),
        **kwargs,
    }
    client_config["follow_redirects"] = False
    return httpx.AsyncClient(**client_config)


def create_fallback_client(settings: Optional[Settings] = None) -> httpx.AsyncClient:
    """Create the plain client used when a request carries none.

    :param settings: Settings to read from, defaults to the cached ones
    :type settings: Optional[Settings]
    :return: Client with the fallback timeout
    :rtype: httpx.AsyncClient
    """
    settings = settings or get_settings()
    return httpx.AsyncClient(timeout=settings.fallback_timeout, follow_redirects=False)


def _http2_available(requested: bool) -> bool:
    if not requested:
        return False
    try:
        import h2  # type: ignore  # noqa: F401
    except ImportError:
        logger.warning(
            "HTTP/2 requested but 'h2' package not installed; falling back to HTTP/1.1"
        )
        return False
    return True


class HTTPClientManager:
    """Caches shared pooled clients and closes them on shutdown.

    Clients are keyed by ``base_url``; every client shares the settings
    the manager was created with. The manager is not a singleton: a host
    service creates one and closes it when it stops.

    :param settings: Settings used for every client created
    :type settings: Optional[Settings]
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._clients: Dict[str, httpx.AsyncClient] = {}
        self._lock = asyncio.Lock()
        self._is_closing = False

    async def get_client(self, base_url: Optional[str] = None) -> httpx.AsyncClient:
        """Get or create the pooled client for ``base_url``.

        :param base_url: Optional base URL for the client
        :type base_url: Optional[str]
        :return: Shared client instance
        :rtype: httpx.AsyncClient
        """
        cache_key = base_url or "default"
        if cache_key not in self._clients:
            async with self._lock:
                if cache_key not in self._clients:
                    kwargs = {"base_url": base_url} if base_url else {}
                    self._clients[cache_key] = create_http_client(
                        self.settings, **kwargs
                    )
                    logger.debug("Created new HTTP client for %s", cache_key)
        return self._clients[cache_key]

    async def close_all(self) -> None:
        """Close every managed client.

        Errors while closing one client are logged and do not stop the
        others from being closed.
        """
        if self._is_closing:
            logger.debug("Already closing HTTP clients, skipping duplicate call")
            return

        self._is_closing = True
        try:
            if not self._clients:
                logger.debug("No HTTP clients to close")
                return
            logger.info("Closing %d HTTP client(s)...", len(self._clients))
            for cache_key, client in list(self._clients.items()):
                try:
                    await client.aclose()
                    logger.debug("Closed managed HTTP client: %s", cache_key)
                except Exception as e:
                    logger.warning(
                        "Error closing managed HTTP client %s: %s", cache_key, e
                    )
            self._clients.clear()
        finally:
            self._is_closing = False

    async def __aenter__(self) -> "HTTPClientManager":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close_all()
