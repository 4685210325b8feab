# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Decorators that describe a service as an annotated Python class.

Method decorators only record metadata on the stub function. ``@service``
collects it into a :class:`~retrofit.model.ServiceDefinition`, compiles it,
and replaces every stub with a method that delegates to a
:class:`~retrofit.service.Service`::

    @service(base_url="https://api.github.com")
    @client(timeout=5.0, user_agent="gh/1.0")
    @default_headers(accept="application/vnd.github.v3+json")
    class Github:
        @get("/repos/{owner}/{repo}")
        def get_repo(self, owner: str, repo: str) -> Repo: ...

``client`` and ``default_headers`` must be listed beneath ``service``.
"""

from __future__ import annotations

import functools
import inspect
import logging
import typing
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from .binder import compile_service
from .errors import DefinitionError
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
)
from .service import Service

__all__ = (
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
    "client",
    "default_headers",
    "service",
    "definition_of",
    "service_of",
)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
C = TypeVar("C", bound=type)

_METHOD_ATTR = "__retrofit_method__"
_RESERVED = frozenset(
    {"configure_client", "close", "aclose", "__enter__", "__exit__", "__aenter__", "__aexit__"}
)


class _MethodSpec:
    """Metadata accumulated by method decorators before compilation."""

    __slots__ = ("verb", "path", "args", "headers", "encode", "decode")

    def __init__(self) -> None:
        self.verb: str | None = None
        self.path: str | None = None
        self.args: list[Arg] = []
        self.headers: list[HeaderSpec] = []
        self.encode: EncodeSpec | None = None
        self.decode: DecodeSpec | None = None


def _spec(func: Callable[..., Any]) -> _MethodSpec:
    spec = func.__dict__.get(_METHOD_ATTR)
    if spec is None:
        spec = _MethodSpec()
        setattr(func, _METHOD_ATTR, spec)
    return spec


def _make_verb(verb: str) -> Callable[[str], Callable[[F], F]]:
    def verb_decorator(path: str) -> Callable[[F], F]:
        return http(verb, path)

    verb_decorator.__name__ = verb.lower()
    verb_decorator.__doc__ = f"Make a {verb} request to ``path``."
    return verb_decorator


def http(verb: str, path: str) -> Callable[[F], F]:
    """Use an arbitrary HTTP verb, e.g. ``@http("PURGE", "/cache/{key}")``."""

    def decorator(func: F) -> F:
        spec = _spec(func)
        if spec.verb is not None:
            raise DefinitionError(
                f"`{func.__qualname__}` declares both {spec.verb} and {verb}"
            )
        spec.verb = verb
        spec.path = path
        return func

    return decorator


get = _make_verb("GET")
head = _make_verb("HEAD")
post = _make_verb("POST")
put = _make_verb("PUT")
patch = _make_verb("PATCH")
delete = _make_verb("DELETE")
trace = _make_verb("TRACE")
options = _make_verb("OPTIONS")


def args(**bindings: Any) -> Callable[[F], F]:
    """Bind path placeholders to literals or expressions over parameters.

    ``@args(kind=lambda kind: kind.value)`` substitutes ``{kind}`` with the
    enum's value instead of the parameter itself.
    """

    def decorator(func: F) -> F:
        new = [Arg(name=name, binding=Binding.of(value)) for name, value in bindings.items()]
        _spec(func).args[:0] = new
        return func

    return decorator


def headers(pairs: Mapping[str, Any] | None = None, /, **named: Any) -> Callable[[F], F]:
    """Add method headers. Headers never overwrite each other.

    Values may be literals or expressions over parameters. Names are
    dashed, so ``cache_control`` is sent as ``cache-control``; pass a mapping
    for names that are not identifiers.
    """
    items = [*(pairs or {}).items(), *named.items()]

    def decorator(func: F) -> F:
        new = [HeaderSpec(name=name, binding=Binding.of(value)) for name, value in items]
        _spec(func).headers[:0] = new
        return func

    return decorator


def request(kind: str | None = None, /, **target: Any) -> Callable[[F], F]:
    """Select how the payload is attached.

    ``@request("query")`` uses the sole parameter not bound elsewhere;
    ``@request(json="data")`` names the parameter explicitly.
    """
    if kind is not None and target:
        raise DefinitionError("request() takes a strategy name or one keyword, not both")
    if kind is not None:
        encode = EncodeSpec(kind=kind)
    elif len(target) == 1:
        ((kind, name),) = target.items()
        encode = EncodeSpec(kind=kind, target=None if name is True else name)
    else:
        raise DefinitionError("request() needs exactly one encode strategy")

    def decorator(func: F) -> F:
        spec = _spec(func)
        if spec.encode is not None:
            raise DefinitionError(f"`{func.__qualname__}` declares more than one request encoding")
        spec.encode = encode
        return func

    return decorator


def response(decoder: str | DecodeSpec | Callable[[Any], Any] = "json") -> Callable[[F], F]:
    """Select how the response is decoded.

    Accepts ``"json"``, ``"text"``, ``"bytes"``, a
    :func:`~retrofit.model.text_with_charset` spec, a callable taking the
    response, or the name of a response attribute.
    """
    if isinstance(decoder, DecodeSpec):
        decode = decoder
    elif decoder in ("json", "text", "bytes"):
        decode = DecodeSpec(kind=decoder)
    else:
        decode = DecodeSpec(kind="custom", custom=decoder)

    def decorator(func: F) -> F:
        spec = _spec(func)
        if spec.decode is not None:
            raise DefinitionError(f"`{func.__qualname__}` declares more than one response decoder")
        spec.decode = decode
        return func

    return decorator


def _check_uncompiled(cls: type, what: str) -> None:
    if "__retrofit_definition__" in cls.__dict__:
        raise DefinitionError(f"@{what} must be applied beneath @service on `{cls.__name__}`")


def client(**option_values: Any) -> Callable[[C], C]:
    """Interface-level transport client options (see :class:`ClientOptions`)."""
    try:
        declared = ClientOptions(**option_values)
    except TypeError as e:
        raise DefinitionError(f"invalid client option: {e}", cause=e) from e

    def decorator(cls: C) -> C:
        _check_uncompiled(cls, "client")
        current = cls.__dict__.get("__retrofit_client_options__", ClientOptions())
        # decorators apply bottom-up, so the upper declaration wins
        cls.__retrofit_client_options__ = current.merged(declared)
        return cls

    return decorator


def default_headers(pairs: Mapping[str, Any] | None = None, /, **named: Any) -> Callable[[C], C]:
    """Headers sent with every request of the service."""
    items = [*(pairs or {}).items(), *named.items()]

    def decorator(cls: C) -> C:
        _check_uncompiled(cls, "default_headers")
        current = list(cls.__dict__.get("__retrofit_default_headers__", ()))
        new = [HeaderSpec(name=name, binding=Binding.of(value)) for name, value in items]
        cls.__retrofit_default_headers__ = tuple(new + current)
        return cls

    return decorator


def _is_options(annotation: Any) -> bool:
    if annotation is CallOptions:
        return True
    if isinstance(annotation, str):
        return annotation.replace(" ", "").split("|")[0].rsplit(".", 1)[-1] == "CallOptions"
    return CallOptions in typing.get_args(annotation)


def _hints(func: Callable[..., Any]) -> dict[str, Any]:
    try:
        return typing.get_type_hints(func)
    except Exception:
        # unresolved forward references: fall back to the raw annotations
        logger.debug(f"Could not resolve annotations of {func.__qualname__}")
        return dict(getattr(func, "__annotations__", {}))


def _method_definition(name: str, func: Callable[..., Any], spec: _MethodSpec) -> MethodDefinition:
    if spec.verb is None or spec.path is None:
        raise DefinitionError(f"method `{name}` has no HTTP verb")

    signature = inspect.signature(func)
    params = list(signature.parameters.values())
    if not params or params[0].kind not in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        raise DefinitionError(f"method `{name}` must take `self`")
    params = params[1:]
    for param in params:
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise DefinitionError(f"method `{name}` cannot take *args or **kwargs")

    hints = _hints(func)
    options_param = None
    for param in params:
        if _is_options(hints.get(param.name, param.annotation)):
            if options_param is not None:
                raise DefinitionError(f"method `{name}` takes more than one CallOptions")
            options_param = param.name

    returns = hints.get("return", None)
    returns_void = returns in (None, type(None), "None")

    return MethodDefinition(
        name=name,
        verb=spec.verb,
        path=spec.path,
        parameters=tuple(p.name for p in params),
        args=tuple(spec.args),
        headers=tuple(spec.headers),
        encode=spec.encode or EncodeSpec(),
        decode=spec.decode or DecodeSpec(),
        returns=Any if returns_void else returns,
        returns_void=returns_void,
        options_param=options_param,
        is_async=inspect.iscoroutinefunction(func),
        signature=signature.replace(parameters=params),
    )


def _delegate(name: str, func: Callable[..., Any], is_async: bool) -> Callable[..., Any]:
    if is_async:

        @functools.wraps(func)
        async def async_method(self, *args: Any, **kwargs: Any) -> Any:
            return await self.__retrofit_service__.acall(name, *args, **kwargs)

        return async_method

    @functools.wraps(func)
    def method(self, *args: Any, **kwargs: Any) -> Any:
        return self.__retrofit_service__.call(name, *args, **kwargs)

    return method


def _compile_class(cls: C, base_url: str | None, capabilities: ServiceCapabilities | None) -> C:
    if "__init__" in cls.__dict__:
        raise DefinitionError(f"service `{cls.__name__}` must not define __init__")

    methods: list[MethodDefinition] = []
    for name, member in list(cls.__dict__.items()):
        if not callable(member) or _METHOD_ATTR not in getattr(member, "__dict__", {}):
            continue
        if name in _RESERVED:
            raise DefinitionError(f"service `{cls.__name__}` cannot declare reserved method `{name}`")
        methods.append(_method_definition(name, member, member.__dict__[_METHOD_ATTR]))

    definition = ServiceDefinition(
        name=cls.__name__,
        methods=tuple(methods),
        default_headers=tuple(cls.__dict__.get("__retrofit_default_headers__", ())),
        client_options=cls.__dict__.get("__retrofit_client_options__", ClientOptions()),
        base_url=base_url,
    )
    templates = compile_service(definition)
    capabilities = capabilities or ServiceCapabilities()

    for method in methods:
        setattr(cls, method.name, _delegate(method.name, cls.__dict__[method.name], method.is_async))

    def __init__(
        self,
        base_url: str | None = None,
        *,
        capabilities: ServiceCapabilities | None = None,
        settings: Any = None,
        eager: bool = False,
    ) -> None:
        self.__retrofit_service__ = Service(
            templates,
            base_url=base_url,
            capabilities=capabilities or cls.__retrofit_capabilities__,
            settings=settings,
            eager=eager,
        )

    def configure_client(self, customizer: Callable[[dict[str, Any]], Any]) -> Any:
        self.__retrofit_service__.configure_client(customizer)
        return self

    def close(self) -> None:
        self.__retrofit_service__.close()

    async def aclose(self) -> None:
        await self.__retrofit_service__.aclose()

    def __enter__(self):
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    for func in (__init__, configure_client, close, aclose, __enter__, __exit__, __aenter__, __aexit__):
        func.__qualname__ = f"{cls.__qualname__}.{func.__name__}"
        setattr(cls, func.__name__, func)

    cls.__retrofit_definition__ = definition
    cls.__retrofit_templates__ = templates
    cls.__retrofit_capabilities__ = capabilities
    logger.debug(f"Declared service {cls.__name__} with {len(methods)} method(s)")
    return cls


def service(
    target: type | str | None = None,
    /,
    *,
    base_url: str | None = None,
    capabilities: ServiceCapabilities | None = None,
) -> Any:
    """Compile a decorated class into a service.

    Usable bare (``@service``) or with a base URL, positionally or by
    keyword. A service without a static base URL takes one at construction.
    """
    if isinstance(target, str):
        base_url, target = target, None

    def decorator(cls: C) -> C:
        return _compile_class(cls, base_url, capabilities)

    if target is None:
        return decorator
    return decorator(target)


def definition_of(service_cls: type | object) -> ServiceDefinition:
    """The compiled definition behind a ``@service`` class or instance."""
    cls = service_cls if isinstance(service_cls, type) else type(service_cls)
    try:
        return cls.__retrofit_definition__
    except AttributeError:
        raise TypeError(f"{cls.__name__} is not a @service class") from None


def service_of(instance: object) -> Service:
    """The :class:`Service` façade behind a ``@service`` instance."""
    try:
        return instance.__retrofit_service__
    except AttributeError:
        raise TypeError(f"{type(instance).__name__} is not a @service instance") from None
