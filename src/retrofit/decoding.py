# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Turn a received response into the method's result."""

from __future__ import annotations

import codecs
import logging
import typing
from collections.abc import Callable
from typing import Any

import httpx
import msgspec
import pydantic
from pydantic import BaseModel, TypeAdapter

from .errors import DecodeError
from .model import DecodeSpec

__all__ = (
    "DEFAULT_CHARSET",
    "charset_from_content_type",
    "decode_text",
    "decode_json",
    "decode_response",
)

logger = logging.getLogger(__name__)

DEFAULT_CHARSET = "utf-8"

_BOMS = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)


def charset_from_content_type(content_type: str | None) -> str | None:
    """Extract the ``charset`` parameter of a content-type header, if any."""
    if not content_type:
        return None
    for param in content_type.split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset":
            value = value.strip().strip('"').strip("'")
            return value or None
    return None


def _lookup(charset: str | None) -> str:
    if charset:
        try:
            return codecs.lookup(charset).name
        except LookupError:
            logger.debug(f"Unknown charset {charset!r}, falling back to {DEFAULT_CHARSET}")
    return DEFAULT_CHARSET


def decode_text(content: bytes, charset: str | None = None) -> str:
    """Decode bytes to text.

    A byte-order mark wins over ``charset`` and is stripped. Unknown charsets
    fall back to UTF-8 and malformed sequences become U+FFFD.
    """
    for bom, encoding in _BOMS:
        if content.startswith(bom):
            return content[len(bom):].decode(encoding, errors="replace")
    return content.decode(_lookup(charset), errors="replace")


def _is_model(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, BaseModel)


def _contains_model(tp: Any) -> bool:
    if _is_model(tp):
        return True
    return any(_contains_model(arg) for arg in typing.get_args(tp))


def decode_json(content: bytes, returns: Any = Any) -> Any:
    """Decode a JSON document into ``returns``.

    Pydantic models validate themselves; everything else goes through
    msgspec, falling back to a pydantic ``TypeAdapter`` for types msgspec
    does not support. Types containing a model anywhere (e.g.
    ``list[SomeModel]``) go to the ``TypeAdapter`` directly.
    """
    if _is_model(returns):
        return returns.model_validate_json(content)
    if _contains_model(returns):
        return TypeAdapter(returns).validate_json(content)
    try:
        return msgspec.json.decode(content, type=returns)
    except TypeError:
        return TypeAdapter(returns).validate_json(content)


def _preview(response: httpx.Response, size: int = 200) -> str:
    return decode_text(response.content[:size], response.charset_encoding)


def _custom(spec: DecodeSpec, response: httpx.Response) -> Any:
    custom = spec.custom
    if isinstance(custom, str):
        attr = getattr(response, custom)
        return attr() if callable(attr) else attr
    return custom(response)


_DECODE_FAILURES = (msgspec.DecodeError, pydantic.ValidationError, UnicodeError, ValueError)

DECODERS: dict[str, Callable[[DecodeSpec, httpx.Response, Any], Any]] = {
    "json": lambda spec, response, returns: decode_json(response.content, returns),
    "text": lambda spec, response, returns: decode_text(
        response.content, charset_from_content_type(response.headers.get("content-type"))
    ),
    "text_with_charset": lambda spec, response, returns: decode_text(
        response.content, spec.charset
    ),
    "bytes": lambda spec, response, returns: response.content,
    "custom": lambda spec, response, returns: _custom(spec, response),
}


def decode_response(
    spec: DecodeSpec,
    response: httpx.Response,
    returns: Any = Any,
    *,
    method: str | None = None,
    url: str | None = None,
) -> Any:
    """Apply ``spec`` to ``response``; failures become :class:`DecodeError`.

    Any exception raised by a custom decoder counts as a decode failure.
    """
    expected = Exception if spec.kind == "custom" else _DECODE_FAILURES
    try:
        return DECODERS[spec.kind](spec, response, returns)
    except DecodeError:
        raise
    except expected as e:
        raise DecodeError(
            f"Invalid {spec.kind} response: {e}",
            method=method,
            url=url,
            context={
                "status_code": response.status_code,
                "content_preview": _preview(response),
            },
            cause=e,
        ) from e
