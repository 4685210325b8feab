# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""HTTP IO boundary.

All network IO happens here, through httpx clients owned by a
:class:`~retrofit.client.ClientHandle`. Transport failures are wrapped once,
with the original httpx exception kept as ``__cause__``, and never retried.
"""

from __future__ import annotations

import logging

import httpx

from . import errors as _err
from .binder import OutboundRequest
from .client import ClientHandle
from .decoding import decode_text
from .settings import RetrofitSettings

__all__ = ("HTTPXTransport", "check_response_status")

logger = logging.getLogger(__name__)


def _build_request(client: httpx.Client | httpx.AsyncClient, request: OutboundRequest) -> httpx.Request:
    kwargs = {}
    if request.timeout is not None:
        kwargs["timeout"] = request.timeout
    if request.multipart is not None:
        kwargs["files"] = request.multipart.parts
    elif request.content is not None:
        kwargs["content"] = request.content
    try:
        return client.build_request(
            request.method,
            request.url,
            headers=request.headers.items(),
            **kwargs,
        )
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
        raise _err.EncodeError(
            f"Invalid request URL: {e}", method=request.method, url=request.url, cause=e
        ) from e


def _wrap_transport_error(e: httpx.HTTPError, request: OutboundRequest) -> _err.TransportError:
    if isinstance(e, httpx.TimeoutException):
        return _err.TimeoutError(
            f"Request timed out: {e}",
            method=request.method,
            url=request.url,
            context={"timeout_s": request.timeout},
            cause=e,
        )
    return _err.TransportError(
        f"{type(e).__name__}: {e}",
        method=request.method,
        url=request.url,
        cause=e,
    )


def check_response_status(
    response: httpx.Response,
    *,
    method: str | None = None,
    url: str | None = None,
    preview_chars: int | None = None,
) -> None:
    """Raise the matching :class:`~retrofit.errors.HTTPStatusError` for non-2xx responses.

    ``preview_chars`` bounds the body kept on the error; it defaults to the
    process-wide ``ERROR_PREVIEW_CHARS`` setting.
    """
    if response.is_success:
        return

    method = method or response.request.method
    url = url or str(response.url)
    limit = (
        preview_chars
        if preview_chars is not None
        else RetrofitSettings.get_instance().ERROR_PREVIEW_CHARS
    )
    text = decode_text(response.content, response.charset_encoding)
    preview = text[:limit]
    if len(text) > limit:
        preview += "... [truncated]"

    status = response.status_code
    common = {
        "method": method,
        "url": url,
        "status_code": status,
        "response_preview": preview,
        "context": {"headers": dict(response.headers)},
    }

    if status == 429:
        retry_after = response.headers.get("retry-after")
        try:
            retry_after = float(retry_after) if retry_after is not None else None
        except ValueError:
            retry_after = None
        raise _err.RateLimitError(
            f"Rate limited: {status}", retry_after=retry_after, **common
        )
    elif 500 <= status < 600:
        raise _err.ServerError(f"Server error: {status} {response.reason_phrase}", **common)
    elif 400 <= status < 500:
        raise _err.ClientError(f"Client error: {status} {response.reason_phrase}", **common)
    else:
        raise _err.HTTPStatusError(f"HTTP error: {status} {response.reason_phrase}", **common)


class HTTPXTransport:
    """Sends outbound requests through the handle's sync or async client."""

    def __init__(self, handle: ClientHandle):
        self._handle = handle

    @property
    def handle(self) -> ClientHandle:
        return self._handle

    def send(self, request: OutboundRequest) -> httpx.Response:
        client = self._handle.get()
        http_request = _build_request(client, request)
        logger.debug(f"-> {request.method} {request.url}")
        try:
            response = client.send(http_request)
        except httpx.HTTPError as e:
            raise _wrap_transport_error(e, request) from e
        logger.debug(f"<- {response.status_code} {request.method} {request.url}")
        return response

    async def asend(self, request: OutboundRequest) -> httpx.Response:
        client = self._handle.get_async()
        http_request = _build_request(client, request)
        logger.debug(f"-> {request.method} {request.url}")
        try:
            response = await client.send(http_request)
        except httpx.HTTPError as e:
            raise _wrap_transport_error(e, request) from e
        logger.debug(f"<- {response.status_code} {request.method} {request.url}")
        return response
