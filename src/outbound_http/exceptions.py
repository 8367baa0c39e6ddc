"""Structured exception classes for outbound HTTP calls.

Transport failures (DNS, connect, read timeouts) are not wrapped: the
``httpx.HTTPError`` family propagates to the caller unchanged. The
classes below cover the conditions the executor and the parser detect
themselves.
"""

import json
from typing import Any, Dict, Optional

import httpx


class OutboundHTTPError(Exception):
    """Base exception for all outbound HTTP errors.

    :param message: Human-readable error message
    :param code: Optional error code for programmatic handling
    :param details: Optional dictionary containing additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize the exception with message, code, and details."""
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format.

        :return: Dictionary containing error code, message, and details
        """
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }

    def to_json(self) -> str:
        """Convert exception to JSON string.

        :return: JSON-encoded string representation of the exception
        """
        return json.dumps(self.to_dict())


class ResponseError(OutboundHTTPError):
    """Raised when a response was received but cannot be used as-is.

    The response (and its raw body when it was drained) stays attached
    so the caller can inspect what the server actually sent.

    :param message: Description of the failure
    :param response: The response that triggered the error
    :param body: Raw response body, if it was read
    :param code: Optional error code
    """

    def __init__(
        self,
        message: str,
        response: httpx.Response,
        body: Optional[bytes] = None,
        code: Optional[str] = None,
    ):
        """Initialize response error with the offending response."""
        self.response = response
        self.body = body
        details = {
            "status_code": response.status_code,
            "url": _response_url(response),
        }
        super().__init__(message=message, code=code, details=details)

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def url(self) -> str:
        return self.details["url"]


class MissingLocationError(ResponseError):
    """Raised when a 307 response carries no ``Location`` header."""

    def __init__(self, response: httpx.Response):
        """Initialize with the 307 response."""
        super().__init__(
            f"no Location header found in {response.status_code} response "
            f"from {_response_url(response)}",
            response=response,
            code="MISSING_LOCATION",
        )


class RetryLimitExceededError(ResponseError):
    """Raised when the redirect or renewal loop exceeds its cap.

    :param kind: Which loop hit the cap, ``"redirect"`` or ``"renewal"``
    :param limit: The configured cap
    :param response: The last response received
    """

    def __init__(self, kind: str, limit: int, response: httpx.Response):
        """Initialize with the loop kind, its cap and the last response."""
        super().__init__(
            f"{kind} limit of {limit} exceeded for {_response_url(response)}",
            response=response,
            code="RETRY_LIMIT_EXCEEDED",
        )
        self.kind = kind
        self.limit = limit
        self.details.update({"kind": kind, "limit": limit})


class ServerError(ResponseError):
    """Raised for responses with status >= 500. The body is not decoded."""

    def __init__(self, response: httpx.Response, body: bytes):
        """Initialize with the response and its raw body."""
        super().__init__(
            f"(unexpected 5xx) got {response.status_code} response from "
            f"{_response_url(response)} is {_preview(body)}",
            response=response,
            body=body,
            code="SERVER_ERROR",
        )


class DecodeError(ResponseError):
    """Raised when a response body does not decode into the target.

    The label is derived from the actual status band, so an undecodable
    200 is reported as ``undecodable 2xx`` rather than as a client error.

    :param response: The response whose body failed to decode
    :param body: Raw response body
    :param reason: Optional decoder message
    """

    def __init__(
        self,
        response: httpx.Response,
        body: bytes,
        reason: Optional[str] = None,
    ):
        """Initialize with the response, its raw body and decoder reason."""
        self.label = status_label(response.status_code)
        super().__init__(
            f"({self.label}) got {response.status_code} response from "
            f"{_response_url(response)} is {_preview(body)}",
            response=response,
            body=body,
            code="DECODE_ERROR",
        )
        self.details["label"] = self.label
        if reason:
            self.details["reason"] = reason


class TokenRenewalError(OutboundHTTPError):
    """Raised when the credential renewal callback fails.

    The original exception is available as ``__cause__``.

    :param message: Description of the renewal failure
    :param url: URL of the request that got the 401
    """

    def __init__(self, message: str, url: Optional[str] = None):
        """Initialize renewal error with message and request URL."""
        details = {}
        if url:
            details["url"] = url
        super().__init__(message=message, code="TOKEN_RENEWAL_ERROR", details=details)


class ExecutionTimeout(httpx.TimeoutException):
    """Raised when the executor-level deadline expires.

    Subclasses the httpx timeout family so callers handle it like any
    other transport timeout.
    """


def status_label(status_code: int) -> str:
    """Describe a decode failure by the status band it happened in.

    :param status_code: HTTP status code
    :type status_code: int
    :return: Label such as ``unexpected 4xx`` or ``undecodable 2xx``
    :rtype: str
    """
    band = f"{status_code // 100}xx"
    if 400 <= status_code < 500:
        return f"unexpected {band}"
    return f"undecodable {band}"


def _response_url(response: httpx.Response) -> str:
    try:
        return str(response.url)
    except RuntimeError:
        # Responses built without a request have no URL
        return ""


def _preview(body: Optional[bytes], limit: int = 1000) -> str:
    if not body:
        return ""
    text = body.decode("utf-8", errors="replace")
    if len(text) > limit:
        return text[:limit] + "..."
    return text
