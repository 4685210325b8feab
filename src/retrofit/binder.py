# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Compile method definitions into request templates and bind calls to them.

Compilation runs once per service and validates everything that does not
depend on call arguments. Binding runs per call and is pure: it produces an
:class:`OutboundRequest` without doing any IO.
"""

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

import httpx
import msgspec

from .encoding import EncodedPayload, Multipart, encode
from .errors import DefinitionError, EncodeError, RetrofitError
from .headers import HeaderSet, compose, to_dashed, validate_header
from .model import (
    DECODE_KINDS,
    ENCODE_KINDS,
    STANDARD_VERBS,
    CallOptions,
    DecodeSpec,
    HeaderSpec,
    MethodDefinition,
    ServiceCapabilities,
    ServiceDefinition,
)
from .path import PathTemplate, compile_path, resolve

__all__ = (
    "RequestTemplate",
    "ServiceTemplates",
    "OutboundRequest",
    "compile_method",
    "compile_service",
    "join_url",
    "bind",
)

logger = logging.getLogger(__name__)

_VERB_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_RESPONSE_ATTRS = frozenset(
    name
    for name in (*dir(httpx.Response), *vars(httpx.Response(200)))
    if not name.startswith("_")
)


class OutboundRequest(msgspec.Struct, kw_only=True):
    """Everything the transport needs to send one request."""

    method: str
    url: str
    headers: HeaderSet
    content: Any = None
    multipart: Multipart | None = None
    timeout: float | None = None


class RequestTemplate(msgspec.Struct, frozen=True, kw_only=True):
    """The call-independent part of a request, shared by every call."""

    name: str
    verb: str
    path: PathTemplate
    arg_bindings: tuple[tuple[str, Any], ...]
    method_headers: tuple[tuple[str, Any], ...]
    encode: str
    encode_target: str | None
    decode: DecodeSpec
    returns: Any
    returns_void: bool
    options_param: str | None
    signature: inspect.Signature
    is_async: bool = False

    def bind_arguments(self, args: tuple, kwargs: dict) -> dict[str, Any]:
        """Map positional and keyword call arguments onto parameter names."""
        bound = self.signature.bind(*args, **kwargs)
        bound.apply_defaults()
        return dict(bound.arguments)


class ServiceTemplates(msgspec.Struct, frozen=True, kw_only=True):
    """Compiled service: templates indexed by method name."""

    name: str
    templates: Mapping[str, RequestTemplate]
    default_headers: tuple[tuple[str, str], ...]
    definition: ServiceDefinition

    def __getitem__(self, name: str) -> RequestTemplate:
        return self.templates[name]

    def __contains__(self, name: object) -> bool:
        return name in self.templates

    def __iter__(self):
        return iter(self.templates)


def _check_verb(method: MethodDefinition) -> None:
    if not method.verb:
        raise DefinitionError(f"method `{method.name}` has no HTTP verb")
    if method.verb.upper() in STANDARD_VERBS:
        return
    if not _VERB_TOKEN.match(method.verb):
        raise DefinitionError(
            f"method `{method.name}` has an invalid HTTP verb {method.verb!r}"
        )


def _literal_header(owner: str, spec: HeaderSpec) -> tuple[str, str]:
    if not spec.binding.is_literal:
        raise DefinitionError(f"{owner} header `{spec.name}` must be a literal value")
    name = to_dashed(spec.name)
    value = spec.binding.value
    if value is None:
        raise DefinitionError(f"{owner} header `{spec.name}` has no value")
    try:
        validate_header(name, str(value))
    except ValueError as e:
        raise DefinitionError(f"{owner} header `{spec.name}`: {e}", cause=e) from e
    return name, str(value)


def _check_params(owner: str, used: tuple[str, ...], parameters: frozenset[str]) -> None:
    for name in used:
        if name not in parameters:
            raise DefinitionError(f"{owner} refers to unknown parameter `{name}`")


def compile_method(method: MethodDefinition) -> RequestTemplate:
    """Validate one method definition and compile it into a template."""
    _check_verb(method)
    where = f"method `{method.name}`"
    parameters = frozenset(method.parameters)
    if len(parameters) != len(method.parameters):
        raise DefinitionError(f"{where} declares a parameter twice")

    arg_names: set[str] = set()
    consumed: set[str] = set()
    for arg in method.args:
        if arg.name in arg_names:
            raise DefinitionError(
                f"{where}: path placeholder `{arg.name}` is bound more than once"
            )
        arg_names.add(arg.name)
        _check_params(f"{where} arg `{arg.name}`", arg.binding.params, parameters)
        consumed.update(arg.binding.params)

    path = compile_path(method.path, args=arg_names, parameters=parameters)
    unused = arg_names - path.names
    if unused:
        raise DefinitionError(
            f"{where}: arg `{sorted(unused)[0]}` is not used by path {method.path!r}"
        )
    consumed.update(path.implicit)

    method_headers: list[tuple[str, Any]] = []
    for spec in method.headers:
        if spec.binding.is_literal:
            method_headers.append(_literal_header(where, spec))
            continue
        _check_params(f"{where} header `{spec.name}`", spec.binding.params, parameters)
        consumed.update(spec.binding.params)
        method_headers.append((to_dashed(spec.name), spec.binding))

    if method.options_param is not None:
        _check_params(where, (method.options_param,), parameters)
        consumed.add(method.options_param)

    encode_kind = method.encode.kind
    if encode_kind not in ENCODE_KINDS:
        raise DefinitionError(f"{where} has unknown encode strategy {encode_kind!r}")
    target = None
    if encode_kind != "none":
        target = method.encode.target
        remaining = [p for p in method.parameters if p not in consumed]
        if target is not None:
            _check_params(f"{where} {encode_kind} payload", (target,), parameters)
        elif len(remaining) == 1:
            target = remaining[0]
        else:
            raise DefinitionError(
                f"{where}: cannot tell which parameter supplies the {encode_kind} payload; "
                f"name it explicitly"
            )
        consumed.add(target)

    unbound = [p for p in method.parameters if p not in consumed]
    if unbound:
        raise DefinitionError(
            f"{where}: parameter `{unbound[0]}` is not bound to the path, "
            f"a header or the request payload"
        )

    if method.decode.kind not in DECODE_KINDS:
        raise DefinitionError(f"{where} has unknown decode strategy {method.decode.kind!r}")
    if method.decode.kind == "text_with_charset" and not method.decode.charset:
        raise DefinitionError(f"{where}: text_with_charset needs a charset name")
    if method.decode.kind == "custom" and method.decode.custom is None:
        raise DefinitionError(f"{where}: custom decoding needs a decoder")
    if isinstance(method.decode.custom, str) and method.decode.custom not in _RESPONSE_ATTRS:
        raise DefinitionError(
            f"{where}: custom decoder {method.decode.custom!r} is not an httpx.Response attribute"
        )

    verb = method.verb.upper() if method.verb.upper() in STANDARD_VERBS else method.verb
    return RequestTemplate(
        name=method.name,
        verb=verb,
        path=path,
        arg_bindings=tuple((arg.name, arg.binding) for arg in method.args),
        method_headers=tuple(method_headers),
        encode=encode_kind,
        encode_target=target,
        decode=method.decode,
        returns=method.returns,
        returns_void=method.returns_void,
        options_param=method.options_param,
        signature=method.call_signature(),
        is_async=method.is_async,
    )


def compile_service(definition: ServiceDefinition) -> ServiceTemplates:
    """Compile every method of ``definition``; raises :class:`DefinitionError`."""
    default_headers = tuple(
        _literal_header(f"service `{definition.name}` default", spec)
        for spec in definition.default_headers
    )
    templates: dict[str, RequestTemplate] = {}
    for method in definition.methods:
        if method.name in templates:
            raise DefinitionError(
                f"service `{definition.name}` declares method `{method.name}` twice"
            )
        templates[method.name] = compile_method(method)

    logger.debug(
        f"Compiled service {definition.name} with {len(templates)} method(s)"
    )
    return ServiceTemplates(
        name=definition.name,
        templates=MappingProxyType(templates),
        default_headers=default_headers,
        definition=definition,
    )


def join_url(base_url: str, path: str) -> str:
    """Concatenate base URL and path without doubling the joining slash."""
    if base_url.endswith("/") and path.startswith("/"):
        return base_url + path[1:]
    return base_url + path


def bind(
    template: RequestTemplate,
    arguments: Mapping[str, Any],
    *,
    base_url: str,
    default_headers: tuple[tuple[str, str], ...] = (),
    capabilities: ServiceCapabilities | None = None,
) -> OutboundRequest:
    """Build the outbound request for one call.

    ``arguments`` maps every parameter name to its value. Failures are local
    and raised as :class:`EncodeError`.
    """
    capabilities = capabilities or ServiceCapabilities()
    url = join_url(base_url, template.path.template)
    try:
        values = {name: arguments[name] for name in template.path.implicit}
        for name, binding in template.arg_bindings:
            values[name] = binding.evaluate(arguments)
        url = join_url(base_url, resolve(template.path, values))

        method_layer: list[tuple[str, Any]] = []
        for name, value in template.method_headers:
            if not isinstance(value, str):
                value = value.evaluate(arguments)
                if value is None:
                    continue
            method_layer.append((name, value))

        options = arguments.get(template.options_param) if template.options_param else None
        if options is not None and not isinstance(options, CallOptions):
            raise TypeError(
                f"`{template.options_param}` must be CallOptions, got {type(options).__name__}"
            )
        headers = compose(
            default_headers,
            method_layer,
            options.header_pairs() if options is not None else None,
        )

        payload = EncodedPayload()
        if template.encode_target is not None:
            payload = encode(template.encode, arguments[template.encode_target], capabilities)
    except RetrofitError:
        raise
    except Exception as e:
        raise EncodeError(
            f"Failed to build request: {e}",
            method=template.verb,
            url=url,
            context={"method_name": template.name},
            cause=e,
        ) from e

    if payload.query:
        url = f"{url}{'&' if '?' in url else '?'}{payload.query}"
    if payload.content_type and "content-type" not in headers:
        headers.add("content-type", payload.content_type)

    return OutboundRequest(
        method=template.verb,
        url=url,
        headers=headers,
        content=payload.content,
        multipart=payload.multipart,
        timeout=options.timeout if options is not None else None,
    )
