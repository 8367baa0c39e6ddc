"""Response classification and body decoding.

:func:`parse_into` executes a descriptor, drains the response body and
decodes it into a caller-chosen type according to the status band:

- ``>= 500``: :class:`ServerError`, the body is not decoded.
- ``< 500``: the body is decoded as JSON into the target. Logical error
  payloads (4xx) decode like success payloads; the caller tells them
  apart through :attr:`ParsedResponse.status_code`.

Decoding goes through ``pydantic.TypeAdapter``, so the target can be a
pydantic model, a dataclass, a TypedDict or a plain ``dict``.
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from .config.settings import Settings, get_settings
from .exceptions import DecodeError, ServerError
from .executor import execute
from .request import RequestDescriptor
from .utils.security import format_body

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ParsedResponse(Generic[T]):
    """A drained response together with its decoded body.

    :param response: The final response
    :type response: httpx.Response
    :param body: Raw response body
    :type body: bytes
    :param result: Body decoded into the requested type
    :type result: T
    """

    def __init__(self, response: httpx.Response, body: bytes, result: T):
        self.response = response
        self.body = body
        self.result = result

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    @property
    def url(self) -> httpx.URL:
        """URL of the last request sent, after any redirects."""
        return self.response.url

    @property
    def text(self) -> str:
        return self.body.decode(self.response.encoding or "utf-8", errors="replace")

    def is_success(self) -> bool:
        """Check if the response indicates success (2xx status code).

        :return: True if status code is in 200-299 range
        :rtype: bool
        """
        return 200 <= self.status_code < 300

    def is_client_error(self) -> bool:
        """Check if the response indicates a client error (4xx status code).

        :return: True if status code is in 400-499 range
        :rtype: bool
        """
        return 400 <= self.status_code < 500

    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600

    def __repr__(self) -> str:
        return f"<ParsedResponse [{self.status_code}] {self.url}>"


async def read_body(response: httpx.Response) -> bytes:
    """Drain the response body and release the underlying stream.

    :param response: Response to drain
    :type response: httpx.Response
    :return: The full body
    :rtype: bytes
    """
    try:
        return await response.aread()
    finally:
        await response.aclose()


def classify(
    response: httpx.Response,
    body: bytes,
    target: Type[T],
) -> T:
    """Decode ``body`` into ``target`` according to the status band.

    :param response: The response the body came from
    :type response: httpx.Response
    :param body: Raw response body
    :type body: bytes
    :param target: Type to decode into
    :type target: Type[T]
    :return: Decoded body
    :rtype: T
    :raises ServerError: For status codes >= 500
    :raises DecodeError: If the body does not match ``target``
    """
    if response.status_code >= 500:
        raise ServerError(response, body)

    try:
        return TypeAdapter(target).validate_json(body)
    except ValidationError as e:
        raise DecodeError(response, body, reason=str(e)) from e


async def parse_into(
    descriptor: RequestDescriptor,
    target: Type[T] = Any,
    *,
    settings: Optional[Settings] = None,
    **execute_kwargs: Any,
) -> ParsedResponse[T]:
    """Execute ``descriptor`` and decode the response body into ``target``.

    :param descriptor: What to send
    :type descriptor: RequestDescriptor
    :param target: Type to decode the JSON body into
    :type target: Type[T]
    :param settings: Settings override
    :type settings: Optional[Settings]
    :param execute_kwargs: Passed through to :func:`execute`
    :return: Response, raw body and decoded result
    :rtype: ParsedResponse[T]
    :raises httpx.HTTPError: On transport failures
    :raises ServerError: For status codes >= 500 (carries the raw body)
    :raises DecodeError: If the body does not decode (carries the raw body)

    .. example::
       >>> parsed = await parse_into(req, Profile)
       >>> parsed.result.name
    """
    settings = settings or get_settings()
    response = await execute(descriptor, settings=settings, **execute_kwargs)
    body = await read_body(response)

    logger.debug(
        "response body from %s: status_code=%s body=%s",
        response.url,
        response.status_code,
        format_body(body, settings.log_body_limit),
    )

    result = classify(response, body, target)
    return ParsedResponse(response, body, result)
