# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Error hierarchy for declarative HTTP services.

Three families are kept apart so callers can tell them apart:

- definition errors surface when a service definition is compiled
- build errors surface when the transport client is constructed
- call errors surface per invocation (encode, transport, status, decode)

Classification flags (``retryable``) are informational only. Nothing in
this package retries a request.
"""

from __future__ import annotations

from typing import Any, ClassVar

__all__ = (
    "RetrofitError",
    "DefinitionError",
    "BuildError",
    "CallError",
    "EncodeError",
    "TransportError",
    "TimeoutError",
    "DecodeError",
    "HTTPStatusError",
    "ClientError",
    "RateLimitError",
    "ServerError",
)


class RetrofitError(Exception):
    """Base for all retrofit errors.

    Carries a message, machine-readable ``code``, optional ``details`` about
    the offending value and a ``context`` mapping describing where the error
    happened.
    """

    default_message: ClassVar[str] = "retrofit error"
    retryable: ClassVar[bool] = False
    code: ClassVar[str] = "retrofit_error"
    severity: ClassVar[str] = "error"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message or self.default_message)
        if cause is not None:
            self.__cause__ = cause
        self.message = message or self.default_message
        self.details = details or {}
        self.context = context or {}

    def to_dict(self, *, include_cause: bool = False) -> dict[str, Any]:
        """Serialize error to a structured dictionary for logging."""
        data = {
            "error": self.__class__.__name__,
            "code": type(self).code,
            "message": self.message,
            "retryable": type(self).retryable,
            "severity": type(self).severity,
            **({"details": self.details} if self.details else {}),
            **({"context": self.context} if self.context else {}),
        }
        if include_cause and (cause := self.__cause__) is not None:
            data["cause"] = repr(cause)
        return data


class DefinitionError(RetrofitError):
    """Service or method metadata is invalid; raised at compile time."""

    default_message = "Invalid service definition"
    code = "definition_error"


class BuildError(RetrofitError):
    """The transport client could not be constructed."""

    default_message = "Failed to build transport client"
    code = "build_error"


class CallError(RetrofitError):
    """Base for errors raised while executing a single call.

    ``method`` and ``url`` are always part of the message so a failure can be
    diagnosed without re-running the call.
    """

    default_message = "Call failed"
    code = "call_error"

    def __init__(
        self,
        message: str | None = None,
        *,
        method: str | None = None,
        url: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.method = method
        self.url = url
        if method is not None:
            self.context.setdefault("method", method)
        if url is not None:
            self.context.setdefault("url", url)

    def __str__(self) -> str:
        if self.method and self.url:
            return f"{self.method} {self.url}: {self.message}"
        return self.message


class EncodeError(CallError):
    """Request arguments could not be bound or encoded."""

    default_message = "Failed to encode request"
    code = "encode_error"


class TransportError(CallError):
    """Transport-level failure (network, TLS, protocol), reported verbatim."""

    retryable = True
    severity = "warning"
    default_message = "Transport error"
    code = "transport_error"


class TimeoutError(TransportError):
    """The transport gave up waiting on the server."""

    default_message = "Request timed out"
    code = "timeout"


class DecodeError(CallError):
    """The server responded but the payload could not be decoded."""

    default_message = "Failed to decode response"
    code = "decode_error"


class HTTPStatusError(CallError):
    """The server answered with a non-success status code."""

    default_message = "Unexpected HTTP status"
    code = "http_status_error"

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int,
        response_preview: str = "",
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.response_preview = response_preview
        self.context.setdefault("status_code", status_code)


class ClientError(HTTPStatusError):
    """4xx response other than 429."""

    code = "client_error"


class RateLimitError(HTTPStatusError):
    """429 response."""

    retryable = True
    severity = "warning"
    code = "rate_limited"

    def __init__(self, message: str | None = None, *, retry_after: float | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ServerError(HTTPStatusError):
    """5xx response."""

    retryable = True
    severity = "warning"
    code = "server_error"
