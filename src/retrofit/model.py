# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Immutable metadata describing a service interface and its methods.

These structs carry no behavior beyond small helpers; compilation into
request templates happens in :mod:`retrofit.binder`.
"""

from __future__ import annotations

import inspect
from collections.abc import Iterable, Mapping
from typing import Any, Literal

import msgspec

from .encoding import Multipart
from .errors import DefinitionError, RetrofitError

__all__ = (
    "STANDARD_VERBS",
    "Binding",
    "Arg",
    "HeaderSpec",
    "EncodeSpec",
    "DecodeSpec",
    "ClientOptions",
    "CallOptions",
    "MethodDefinition",
    "ServiceDefinition",
    "ServiceCapabilities",
    "header_specs",
    "text_with_charset",
)

STANDARD_VERBS = frozenset(
    {"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "TRACE", "OPTIONS"}
)

EncodeKind = Literal["none", "query", "json", "form", "body", "multipart"]
DecodeKind = Literal["json", "text", "text_with_charset", "bytes", "custom"]

ENCODE_KINDS: frozenset[str] = frozenset(
    {"none", "query", "json", "form", "body", "multipart"}
)
DECODE_KINDS: frozenset[str] = frozenset(
    {"json", "text", "text_with_charset", "bytes", "custom"}
)


class Binding(msgspec.Struct, frozen=True):
    """A literal value or an expression over method parameters.

    Expressions are callables; the names of their parameters select which
    method parameters they receive, e.g. ``lambda owner: owner.lower()``.
    """

    value: Any = None
    func: Any = None
    params: tuple[str, ...] = ()

    @classmethod
    def of(cls, source: Any) -> Binding:
        if isinstance(source, Binding):
            return source
        if callable(source) and not isinstance(source, type):
            try:
                signature = inspect.signature(source)
            except (TypeError, ValueError) as e:
                raise DefinitionError(
                    f"Cannot inspect binding expression {source!r}", cause=e
                ) from e
            params = []
            for param in signature.parameters.values():
                if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                    raise DefinitionError(
                        f"Binding expression {source!r} must name its parameters explicitly"
                    )
                params.append(param.name)
            return cls(func=source, params=tuple(params))
        return cls(value=source)

    @property
    def is_literal(self) -> bool:
        return self.func is None

    def evaluate(self, arguments: Mapping[str, Any]) -> Any:
        if self.func is None:
            return self.value
        return self.func(**{name: arguments[name] for name in self.params})


class Arg(msgspec.Struct, frozen=True):
    """Explicit path argument: placeholder name bound to a value or expression."""

    name: str
    binding: Binding


class HeaderSpec(msgspec.Struct, frozen=True):
    name: str
    binding: Binding


class EncodeSpec(msgspec.Struct, frozen=True):
    """How a call's payload is attached to the request.

    ``target`` names the parameter supplying the payload. When omitted the
    sole parameter left unbound by the path and headers is used.
    """

    kind: EncodeKind = "none"
    target: str | None = None


class DecodeSpec(msgspec.Struct, frozen=True):
    """How a response becomes the method's result."""

    kind: DecodeKind = "json"
    charset: str | None = None
    custom: Any = None


def text_with_charset(name: str) -> DecodeSpec:
    """Decode the response as text using a forced charset."""
    return DecodeSpec(kind="text_with_charset", charset=name)


class ClientOptions(msgspec.Struct, frozen=True, kw_only=True):
    """Interface-level transport client options.

    ``None`` means "not declared here", so a lower-precedence layer applies.
    """

    timeout: float | None = None
    connect_timeout: float | None = None
    user_agent: str | None = None
    gzip: bool | None = None
    follow_redirects: bool | None = None
    verify: bool | None = None
    max_connections: int | None = None
    max_keepalive_connections: int | None = None

    def merged(self, other: ClientOptions | None) -> ClientOptions:
        """Return a copy with every option declared in ``other`` applied on top."""
        if other is None:
            return self
        updates = {
            field: value
            for field in other.__struct_fields__
            if (value := getattr(other, field)) is not None
        }
        return msgspec.structs.replace(self, **updates)


class CallOptions(msgspec.Struct, frozen=True, kw_only=True):
    """Per-call request options.

    A method parameter annotated with this type never reaches the request
    payload; its headers are composed after the interface and method layers.
    """

    headers: Any = ()
    timeout: float | None = None

    def header_pairs(self) -> list[tuple[str, str]]:
        headers = self.headers
        if isinstance(headers, Mapping):
            return [(str(k), str(v)) for k, v in headers.items()]
        return [(str(k), str(v)) for k, v in headers]


class MethodDefinition(msgspec.Struct, frozen=True, kw_only=True):
    """One declared method of a service.

    ``parameters`` lists the runtime parameter names in call order (without
    ``self``). ``signature`` is used to bind call arguments; when absent a
    signature of required positional-or-keyword parameters is assumed.
    ``returns_void`` skips the decode step.
    """

    name: str
    verb: str
    path: str
    parameters: tuple[str, ...] = ()
    args: tuple[Arg, ...] = ()
    headers: tuple[HeaderSpec, ...] = ()
    encode: EncodeSpec = msgspec.field(default_factory=EncodeSpec)
    decode: DecodeSpec = msgspec.field(default_factory=DecodeSpec)
    returns: Any = Any
    returns_void: bool = False
    options_param: str | None = None
    is_async: bool = False
    signature: Any = None

    def call_signature(self) -> inspect.Signature:
        if self.signature is not None:
            return self.signature
        return inspect.Signature(
            [
                inspect.Parameter(name, inspect.Parameter.POSITIONAL_OR_KEYWORD)
                for name in self.parameters
            ]
        )


class ServiceDefinition(msgspec.Struct, frozen=True, kw_only=True):
    """Declarative description of a whole HTTP interface."""

    name: str
    methods: tuple[MethodDefinition, ...] = ()
    default_headers: tuple[HeaderSpec, ...] = ()
    client_options: ClientOptions = msgspec.field(default_factory=ClientOptions)
    base_url: str | None = None

    def method(self, name: str) -> MethodDefinition:
        for method in self.methods:
            if method.name == name:
                return method
        raise KeyError(name)


def header_specs(pairs: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> tuple[HeaderSpec, ...]:
    """Build header specs from a mapping or an iterable of ``(name, value)`` pairs."""
    items = pairs.items() if isinstance(pairs, Mapping) else pairs
    return tuple(HeaderSpec(name=name, binding=Binding.of(value)) for name, value in items)


class ServiceCapabilities(msgspec.Struct, frozen=True, kw_only=True):
    """What a service façade raises and which payload types it accepts.

    ``body_types`` are sent verbatim by the ``body`` strategy and
    ``form_type`` is the only value the ``multipart`` strategy accepts.
    """

    error_type: type = RetrofitError
    body_types: tuple[type, ...] = (bytes, bytearray, memoryview, str)
    form_type: type = Multipart
