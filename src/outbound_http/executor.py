"""Request executor: build, send, and retry in place.

The executor turns a :class:`RequestDescriptor` into wire requests and
sends them until it gets a response it can hand back. Exactly two
conditions are retried, both without delay:

- ``307 Temporary Redirect``: the request (method, headers, body) is
  resent to the ``Location`` URL.
- ``401 Unauthorized`` when the descriptor has a token renewer: the
  renewer is awaited and the request is resent with the new bearer.

Transport errors are never retried and propagate unchanged. Every
attempt resends the descriptor's original body bytes.

.. example::
   >>> req = RequestDescriptor(url="https://svc/items/:id",
   ...                         params={"id": "7"})
   >>> response = await execute(req, max_redirects=5)
"""

import asyncio
import logging
from enum import Enum
from typing import Any, List, Optional

import httpx

from .config.settings import Settings, get_settings
from .exceptions import (
    ExecutionTimeout,
    MissingLocationError,
    RetryLimitExceededError,
    TokenRenewalError,
)
from .request import RequestDescriptor
from .utils.buffer_pool import BufferPool, default_buffer_pool, load_body
from .utils.http.client_manager import create_fallback_client
from .utils.security import format_body, sanitize_headers

logger = logging.getLogger(__name__)

# Distinguishes "use the configured cap" from an explicit None (unbounded)
_FROM_SETTINGS: Any = object()


class ExecutionState(str, Enum):
    """States of the send/retry loop."""

    SENDING = "sending"
    REDIRECT_RETRY = "redirect_retry"
    RENEW_RETRY = "renew_retry"
    DONE = "done"
    FAILED = "failed"


class RequestExecutor:
    """Runs the send/retry loop for one descriptor.

    The executor owns a private copy of the descriptor: following a
    redirect rewrites the copy's URL and a renewal rewrites its
    ``Authorization`` header, the caller's descriptor is never touched.

    :param descriptor: What to send
    :type descriptor: RequestDescriptor
    :param buffer_pool: Pool to borrow the body buffer from
    :type buffer_pool: Optional[BufferPool]
    :param max_redirects: Cap on 307 hops, None for unbounded
    :type max_redirects: Optional[int]
    :param max_renewals: Cap on token renewals, None for unbounded
    :type max_renewals: Optional[int]
    :param settings: Settings for caps, fallback client and log limits
    :type settings: Optional[Settings]
    """

    def __init__(
        self,
        descriptor: RequestDescriptor,
        *,
        buffer_pool: Optional[BufferPool] = None,
        max_redirects: Optional[int] = _FROM_SETTINGS,
        max_renewals: Optional[int] = _FROM_SETTINGS,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.request = descriptor.copy()
        self.buffer_pool = (
            buffer_pool if buffer_pool is not None else default_buffer_pool
        )
        self.max_redirects = (
            self.settings.max_redirects
            if max_redirects is _FROM_SETTINGS
            else max_redirects
        )
        self.max_renewals = (
            self.settings.max_renewals
            if max_renewals is _FROM_SETTINGS
            else max_renewals
        )
        self.state = ExecutionState.SENDING
        self.history: List[ExecutionState] = [self.state]
        self.redirects = 0
        self.renewals = 0

    async def run(self) -> httpx.Response:
        """Send until a response other than a handled 307/401 arrives.

        :return: The final response, body already read
        :rtype: httpx.Response
        :raises httpx.HTTPError: On transport failures
        :raises MissingLocationError: If a 307 has no ``Location``
        :raises TokenRenewalError: If the token renewer fails
        :raises RetryLimitExceededError: If a retry cap is exceeded
        """
        client = self.request.http_client
        owns_client = client is None
        if owns_client:
            client = create_fallback_client(self.settings)

        try:
            with self.buffer_pool.borrow() as buffer:
                while True:
                    if self.state is not ExecutionState.SENDING:
                        self._transition(ExecutionState.SENDING)
                    payload = load_body(buffer, self.request.body)
                    wire_request = self.build_request(payload)
                    self._log_request(wire_request, payload)

                    try:
                        response = await client.send(
                            wire_request, follow_redirects=False
                        )
                    except BaseException:
                        self._transition(ExecutionState.FAILED)
                        raise

                    if response.status_code == httpx.codes.TEMPORARY_REDIRECT:
                        await self._follow_redirect(response, wire_request)
                        continue

                    if (
                        response.status_code == httpx.codes.UNAUTHORIZED
                        and self.request.renewer is not None
                    ):
                        await self._renew_bearer(response)
                        continue

                    logger.debug(
                        "HTTP response status from %s is %s %s",
                        self.request.url,
                        response.status_code,
                        response.reason_phrase,
                    )
                    self._transition(ExecutionState.DONE)
                    return response
        finally:
            if owns_client:
                await client.aclose()

    def build_request(self, payload: bytes) -> httpx.Request:
        """Build the wire request for the current URL and headers.

        Query entries are appended to whatever query the URL already
        has. Path placeholders are replaced literally: every ``:key`` in
        the path becomes the value, case-sensitively.

        :param payload: Body for this attempt
        :type payload: bytes
        :return: Request ready to send
        :rtype: httpx.Request
        """
        url = httpx.URL(self.request.url)

        if self.request.query:
            query = url.params
            for key, value in self.request.query.items():
                query = query.add(key, value)
            url = url.copy_with(params=query)

        if self.request.params:
            path = url.path
            for key, value in self.request.params.items():
                path = path.replace(f":{key}", value)
            url = url.copy_with(path=path)

        return httpx.Request(
            self.request.method,
            url,
            headers=list(self.request.headers.items()),
            content=payload or None,
        )

    async def _follow_redirect(
        self, response: httpx.Response, sent: httpx.Request
    ) -> None:
        location = response.headers.get("Location")
        if not location:
            self._transition(ExecutionState.FAILED)
            raise MissingLocationError(response)

        self._check_limit("redirect", self.redirects, self.max_redirects, response)
        self.redirects += 1
        await response.aclose()

        # Relative locations resolve against the URL that was requested
        self.request.url = str(sent.url.join(location))
        logger.debug(
            "got 307 response, following redirect to %s", self.request.url
        )
        self._transition(ExecutionState.REDIRECT_RETRY)

    async def _renew_bearer(self, response: httpx.Response) -> None:
        self._check_limit("renewal", self.renewals, self.max_renewals, response)
        self.renewals += 1
        await response.aclose()

        logger.debug(
            "got 401 response, token renewer function is provided, renewing a token.."
        )
        try:
            token = await self.request.renewer()
        except Exception as e:
            self._transition(ExecutionState.FAILED)
            raise TokenRenewalError(
                f"failed to renew bearer token for {self.request.url}: {e}",
                url=self.request.url,
            ) from e

        self.request.set_authorization(f"Bearer {token}")
        self._transition(ExecutionState.RENEW_RETRY)

    def _check_limit(
        self,
        kind: str,
        count: int,
        limit: Optional[int],
        response: httpx.Response,
    ) -> None:
        if limit is not None and count >= limit:
            self._transition(ExecutionState.FAILED)
            raise RetryLimitExceededError(kind, limit, response)

    def _transition(self, state: ExecutionState) -> None:
        self.state = state
        self.history.append(state)
        if state is not ExecutionState.DONE:
            logger.debug("request to %s -> %s", self.request.url, state.value)

    def _log_request(self, request: httpx.Request, payload: bytes) -> None:
        # Observability only, never affects the send
        if not logger.isEnabledFor(logging.DEBUG):
            return
        logger.debug(
            "making HTTP request to %s headers: %s",
            request.url,
            sanitize_headers(self.request.headers),
        )
        logger.debug(
            "request body to %s is %s",
            request.url,
            format_body(payload, self.settings.log_body_limit),
        )


async def execute(
    descriptor: RequestDescriptor,
    *,
    buffer_pool: Optional[BufferPool] = None,
    max_redirects: Optional[int] = _FROM_SETTINGS,
    max_renewals: Optional[int] = _FROM_SETTINGS,
    timeout: Optional[float] = None,
    settings: Optional[Settings] = None,
) -> httpx.Response:
    """Send ``descriptor``, following 307s and renewing expired bearers.

    A 401 without a renewer is returned like any other response.

    :param descriptor: What to send
    :type descriptor: RequestDescriptor
    :param buffer_pool: Pool to borrow the body buffer from
    :type buffer_pool: Optional[BufferPool]
    :param max_redirects: Cap on 307 hops; defaults to settings, None for unbounded
    :type max_redirects: Optional[int]
    :param max_renewals: Cap on renewals; defaults to settings, None for unbounded
    :type max_renewals: Optional[int]
    :param timeout: Deadline in seconds for the whole loop
    :type timeout: Optional[float]
    :param settings: Settings override
    :type settings: Optional[Settings]
    :return: The final response, body already read
    :rtype: httpx.Response
    :raises httpx.HTTPError: On transport failures (ExecutionTimeout on deadline)
    :raises MissingLocationError: If a 307 has no ``Location``
    :raises TokenRenewalError: If the token renewer fails
    :raises RetryLimitExceededError: If a retry cap is exceeded
    """
    executor = RequestExecutor(
        descriptor,
        buffer_pool=buffer_pool,
        max_redirects=max_redirects,
        max_renewals=max_renewals,
        settings=settings,
    )
    if timeout is None:
        return await executor.run()
    try:
        return await asyncio.wait_for(executor.run(), timeout)
    except asyncio.TimeoutError as e:
        raise ExecutionTimeout(
            f"request to {executor.request.url} did not complete in {timeout}s"
        ) from e
