"""Request descriptor for one logical outbound HTTP call.

A :class:`RequestDescriptor` describes what to send; the executor turns
it into wire requests. The executor works on a copy, so a descriptor
can be reused by the caller after a call that followed redirects or
renewed its bearer token.
"""

import copy
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

import httpx

TokenRenewer = Callable[[], Awaitable[str]]
"""Async callable returning a fresh bearer token, or raising on failure."""


@dataclass
class RequestDescriptor:
    """Description of one outbound HTTP call.

    :param url: Target URL; may contain ``:name`` path placeholders
    :type url: str
    :param method: HTTP method
    :type method: str
    :param headers: Request headers, sent as given
    :type headers: Dict[str, str]
    :param body: Raw request body; never modified
    :type body: bytes
    :param query: Query parameters appended to the URL's query string
    :type query: Dict[str, str]
    :param params: Path placeholder substitutions (``:key`` -> value)
    :type params: Dict[str, str]
    :param http_client: Shared client handle, not owned by the descriptor
    :type http_client: Optional[httpx.AsyncClient]

    .. example::
       >>> req = RequestDescriptor(url="https://api.example.com/users/:id",
       ...                         params={"id": "42"})
       >>> req.with_bearer("token", renewer=refresh_token)
    """

    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    query: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)
    http_client: Optional[httpx.AsyncClient] = None
    _renewer: Optional[TokenRenewer] = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        if self.body is None:
            self.body = b""
        elif isinstance(self.body, (bytearray, memoryview)):
            self.body = bytes(self.body)
        elif isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    def with_bearer(
        self, token: str, renewer: Optional[TokenRenewer] = None
    ) -> "RequestDescriptor":
        """Set the bearer token, optionally with a renewal callback.

        When ``renewer`` is given, a 401 response makes the executor
        await it for a new token and resend the request.

        :param token: Bearer token
        :type token: str
        :param renewer: Optional async callable returning a fresh token
        :type renewer: Optional[TokenRenewer]
        :return: The descriptor itself, for chaining
        :rtype: RequestDescriptor
        """
        self.set_authorization(f"Bearer {token}")
        if renewer is not None:
            self._renewer = renewer
        return self

    def set_authorization(self, value: str) -> None:
        """Replace the ``Authorization`` header, whatever its casing.

        :param value: Full header value, e.g. ``Bearer <token>``
        :type value: str
        """
        if self.headers is None:
            self.headers = {}
        for key in list(self.headers):
            if key.lower() == "authorization":
                del self.headers[key]
        self.headers["Authorization"] = value

    @property
    def renewer(self) -> Optional[TokenRenewer]:
        return self._renewer

    def copy(self) -> "RequestDescriptor":
        """Copy for one execution; mutable mappings are not shared.

        The client handle and the renewer are shared, the body bytes are
        immutable and shared as well.
        """
        clone = copy.copy(self)
        clone.headers = dict(self.headers or {})
        clone.query = dict(self.query or {})
        clone.params = dict(self.params or {})
        return clone
