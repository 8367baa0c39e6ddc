"""Outbound HTTP request executor.

Sends requests described by a :class:`RequestDescriptor`, follows 307
temporary redirects and renews expired bearer tokens in place, then
classifies and decodes the response body.

:var __version__: Current package version
:type __version__: str
"""

from .exceptions import (
    DecodeError,
    ExecutionTimeout,
    MissingLocationError,
    OutboundHTTPError,
    ResponseError,
    RetryLimitExceededError,
    ServerError,
    TokenRenewalError,
)
from .executor import ExecutionState, RequestExecutor, execute
from .parser import ParsedResponse, parse_into
from .request import RequestDescriptor, TokenRenewer
from .utils.security import setup_secure_logging

__version__ = "0.1.0"

__all__ = [
    "RequestDescriptor",
    "TokenRenewer",
    "RequestExecutor",
    "ExecutionState",
    "execute",
    "ParsedResponse",
    "parse_into",
    "OutboundHTTPError",
    "ResponseError",
    "MissingLocationError",
    "RetryLimitExceededError",
    "ServerError",
    "DecodeError",
    "TokenRenewalError",
    "ExecutionTimeout",
    "setup_secure_logging",
]
