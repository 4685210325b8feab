# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Declarative HTTP services on top of httpx."""

from .binder import OutboundRequest, RequestTemplate, ServiceTemplates, bind, compile_service
from .client import BuildState, ClientHandle
from .declare import (
    args,
    client,
    default_headers,
    definition_of,
    delete,
    get,
    head,
    headers,
    http,
    options,
    patch,
    post,
    put,
    request,
    response,
    service,
    service_of,
    trace,
)
from .encoding import Multipart
from .errors import (
    BuildError,
    CallError,
    ClientError,
    DecodeError,
    DefinitionError,
    EncodeError,
    HTTPStatusError,
    RateLimitError,
    RetrofitError,
    ServerError,
    TimeoutError,
    TransportError,
)
from .headers import HeaderSet
from .model import (
    Arg,
    Binding,
    CallOptions,
    ClientOptions,
    DecodeSpec,
    EncodeSpec,
    HeaderSpec,
    MethodDefinition,
    ServiceCapabilities,
    ServiceDefinition,
    text_with_charset,
)
from .service import Service
from .settings import RetrofitSettings
from .version import __version__

__all__ = [
    "__version__",
    # declarative front end
    "service",
    "client",
    "default_headers",
    "get",
    "head",
    "post",
    "put",
    "patch",
    "delete",
    "trace",
    "options",
    "http",
    "args",
    "headers",
    "request",
    "response",
    "text_with_charset",
    "definition_of",
    "service_of",
    # metadata model
    "Arg",
    "Binding",
    "CallOptions",
    "ClientOptions",
    "DecodeSpec",
    "EncodeSpec",
    "HeaderSpec",
    "MethodDefinition",
    "ServiceCapabilities",
    "ServiceDefinition",
    # runtime
    "Service",
    "ServiceTemplates",
    "RequestTemplate",
    "OutboundRequest",
    "ClientHandle",
    "BuildState",
    "HeaderSet",
    "Multipart",
    "RetrofitSettings",
    "bind",
    "compile_service",
    # errors
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
]
