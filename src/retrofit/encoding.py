# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Payload encoders, one per encode strategy.

Each encoder turns the value of the target parameter into an
:class:`EncodedPayload`; the binder attaches it to the outbound request.
"""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import AsyncIterable, Callable, Iterable, Mapping
from typing import Any

import httpx
import msgspec
from pydantic import BaseModel

__all__ = (
    "JSON_CONTENT_TYPE",
    "FORM_CONTENT_TYPE",
    "Multipart",
    "EncodedPayload",
    "to_pairs",
    "encode_query",
    "encode_json",
    "encode",
)

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class Multipart:
    """A ``multipart/form-data`` body built from text fields and files.

    Parts keep insertion order and names may repeat::

        form = Multipart().text("username", "octo").file("photo", fh, "me.png")
    """

    __slots__ = ("_parts",)

    def __init__(self) -> None:
        self._parts: list[tuple[str, tuple[Any, ...]]] = []

    def text(self, name: str, value: Any) -> Multipart:
        self._parts.append((name, (None, str(value))))
        return self

    def file(
        self,
        name: str,
        content: Any,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> Multipart:
        if filename is None:
            filename = getattr(content, "name", None) or name
            filename = str(filename).rsplit("/", 1)[-1]
        if content_type is None:
            self._parts.append((name, (filename, content)))
        else:
            self._parts.append((name, (filename, content, content_type)))
        return self

    @property
    def parts(self) -> list[tuple[str, tuple[Any, ...]]]:
        return list(self._parts)

    def __len__(self) -> int:
        return len(self._parts)

    def __repr__(self) -> str:
        return f"Multipart({[name for name, _ in self._parts]!r})"


class EncodedPayload(msgspec.Struct, frozen=True, kw_only=True):
    """What an encoder contributes to a request."""

    query: str | None = None
    content: Any = None
    content_type: str | None = None
    multipart: Multipart | None = None


def _is_structured(value: Any) -> bool:
    return (
        isinstance(value, (Mapping, msgspec.Struct, BaseModel))
        or (dataclasses.is_dataclass(value) and not isinstance(value, type))
    )


def _to_builtins(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return msgspec.to_builtins(value)


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return _scalar(value.value)
    if isinstance(value, (str, int, float)):
        return str(value)
    builtin = msgspec.to_builtins(value)
    if isinstance(builtin, (dict, list)):
        raise TypeError(f"cannot encode nested value {value!r} as a query parameter")
    return _scalar(builtin)


def to_pairs(value: Any) -> list[tuple[str, str]]:
    """Flatten a mapping, struct or sequence of pairs into name/value pairs.

    ``None`` values are dropped and sequence values repeat their key.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if not isinstance(item, (list, tuple)) or len(item) != 2:
                raise TypeError(f"expected (name, value) pairs, got {item!r}")
            items.append((item[0], item[1]))
    else:
        builtin = value if isinstance(value, Mapping) else _to_builtins(value)
        if not isinstance(builtin, Mapping):
            raise TypeError(
                f"expected a mapping, struct or sequence of pairs, got {type(value).__name__}"
            )
        items = list(builtin.items())

    pairs: list[tuple[str, str]] = []
    for name, item in items:
        if item is None:
            continue
        if isinstance(item, (list, tuple)):
            pairs.extend((str(name), _scalar(v)) for v in item if v is not None)
        else:
            pairs.append((str(name), _scalar(item)))
    return pairs


def encode_query(value: Any) -> str:
    """URL-encode ``value`` as a query string; repeated keys are kept in order."""
    return str(httpx.QueryParams(to_pairs(value)))


def encode_json(value: Any) -> bytes:
    if isinstance(value, BaseModel):
        return value.model_dump_json(by_alias=True).encode("utf-8")
    return msgspec.json.encode(value)


def _encode_none(value: Any, capabilities: Any) -> EncodedPayload:
    return EncodedPayload()


def _encode_query(value: Any, capabilities: Any) -> EncodedPayload:
    return EncodedPayload(query=encode_query(value))


def _encode_json(value: Any, capabilities: Any) -> EncodedPayload:
    return EncodedPayload(content=encode_json(value), content_type=JSON_CONTENT_TYPE)


def _encode_form(value: Any, capabilities: Any) -> EncodedPayload:
    return EncodedPayload(
        content=encode_query(value).encode("ascii"), content_type=FORM_CONTENT_TYPE
    )


def _encode_body(value: Any, capabilities: Any) -> EncodedPayload:
    if isinstance(value, capabilities.body_types):
        content = bytes(value) if isinstance(value, (bytearray, memoryview)) else value
        return EncodedPayload(content=content)
    if hasattr(value, "read") or (
        isinstance(value, (Iterable, AsyncIterable)) and not _is_structured(value)
    ):
        return EncodedPayload(content=value)
    if _is_structured(value):
        return EncodedPayload(content=encode_json(value))
    raise TypeError(f"cannot use {type(value).__name__} as a request body")


def _encode_multipart(value: Any, capabilities: Any) -> EncodedPayload:
    if not isinstance(value, capabilities.form_type):
        raise TypeError(
            f"multipart body must be {capabilities.form_type.__name__}, "
            f"got {type(value).__name__}"
        )
    if isinstance(value, Multipart) and not len(value):
        raise ValueError("multipart body has no parts")
    return EncodedPayload(multipart=value)


ENCODERS: dict[str, Callable[[Any, Any], EncodedPayload]] = {
    "none": _encode_none,
    "query": _encode_query,
    "json": _encode_json,
    "form": _encode_form,
    "body": _encode_body,
    "multipart": _encode_multipart,
}


def encode(kind: str, value: Any, capabilities: Any) -> EncodedPayload:
    """Apply the encoder for ``kind``.

    Raises ``TypeError`` or ``msgspec.EncodeError`` for values the strategy
    cannot represent; the binder turns those into call errors.
    """
    return ENCODERS[kind](value, capabilities)
