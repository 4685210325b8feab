# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Service façade: dispatch calls through binder, transport and decoder."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .binder import OutboundRequest, RequestTemplate, ServiceTemplates, bind, compile_service
from .client import ClientCustomizer, ClientHandle
from .decoding import decode_response
from .errors import DefinitionError, RetrofitError
from .model import ServiceCapabilities, ServiceDefinition
from .settings import RetrofitSettings
from .transport import HTTPXTransport, check_response_status

__all__ = ("Service",)

logger = logging.getLogger(__name__)


class Service:
    """Runtime object executing the methods of one service definition.

    Construction compiles the definition (unless already compiled), so
    definition errors surface here rather than on the first call. The
    transport client is built on first use, or immediately with
    ``eager=True``.

    Example::

        svc = Service(definition, base_url="https://api.example.com")
        repos = svc.call("list_repos", "octo")
    """

    def __init__(
        self,
        definition: ServiceDefinition | ServiceTemplates,
        *,
        base_url: str | None = None,
        capabilities: ServiceCapabilities | None = None,
        settings: RetrofitSettings | None = None,
        eager: bool = False,
    ):
        if isinstance(definition, ServiceDefinition):
            templates = compile_service(definition)
        else:
            templates = definition
        self._templates = templates
        base_url = base_url or templates.definition.base_url
        if not base_url:
            raise DefinitionError(f"service `{templates.name}` has no base URL")
        self.capabilities = capabilities or ServiceCapabilities()
        if not (
            isinstance(self.capabilities.error_type, type)
            and issubclass(self.capabilities.error_type, RetrofitError)
        ):
            raise DefinitionError(
                f"service `{templates.name}` error type must subclass RetrofitError"
            )
        self._handle = ClientHandle(
            base_url,
            templates.definition.client_options,
            settings=settings,
            eager=eager,
        )
        self._transport = HTTPXTransport(self._handle)

    @property
    def name(self) -> str:
        return self._templates.name

    @property
    def templates(self) -> ServiceTemplates:
        return self._templates

    @property
    def handle(self) -> ClientHandle:
        return self._handle

    @property
    def base_url(self) -> str:
        return self._handle.base_url

    def configure_client(self, customizer: ClientCustomizer) -> Service:
        """Install a client builder customization; see :meth:`ClientHandle.configure`."""
        self._handle.configure(customizer)
        return self

    def _template(self, name: str) -> RequestTemplate:
        try:
            return self._templates[name]
        except KeyError:
            raise AttributeError(f"service `{self.name}` has no method `{name}`") from None

    def prepare(self, name: str, *args: Any, **kwargs: Any) -> OutboundRequest:
        """Bind a call to its outbound request without sending it."""
        template = self._template(name)
        return self._bind(template, args, kwargs)

    def _bind(self, template: RequestTemplate, args: tuple, kwargs: dict) -> OutboundRequest:
        arguments = template.bind_arguments(args, kwargs)
        return bind(
            template,
            arguments,
            base_url=self._handle.base_url,
            default_headers=self._templates.default_headers,
            capabilities=self.capabilities,
        )

    def _finish(self, template: RequestTemplate, request: OutboundRequest, response: httpx.Response) -> Any:
        check_response_status(
            response,
            method=request.method,
            url=request.url,
            preview_chars=self._handle.settings.ERROR_PREVIEW_CHARS,
        )
        if template.returns_void:
            return None
        return decode_response(
            template.decode,
            response,
            template.returns,
            method=request.method,
            url=request.url,
        )

    def _as_service_error(self, error: RetrofitError) -> RetrofitError:
        error_type = self.capabilities.error_type
        if isinstance(error, error_type):
            return error
        return error_type(
            str(error),
            details=dict(error.details),
            context={**error.context, "error": type(error).__name__},
            cause=error,
        )

    def call(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke method ``name`` synchronously.

        Failures are raised as the service's ``capabilities.error_type``;
        the original error is kept as ``__cause__`` when it had to be wrapped.
        """
        template = self._template(name)
        try:
            request = self._bind(template, args, kwargs)
            response = self._transport.send(request)
            return self._finish(template, request, response)
        except RetrofitError as e:
            error = self._as_service_error(e)
            if error is e:
                raise
            raise error from e

    async def acall(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke method ``name`` on the async client."""
        template = self._template(name)
        try:
            request = self._bind(template, args, kwargs)
            response = await self._transport.asend(request)
            return self._finish(template, request, response)
        except RetrofitError as e:
            error = self._as_service_error(e)
            if error is e:
                raise
            raise error from e

    def close(self) -> None:
        self._handle.close()

    async def aclose(self) -> None:
        await self._handle.aclose()

    def __enter__(self) -> Service:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    async def __aenter__(self) -> Service:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"Service(name={self.name!r}, base_url={self.base_url!r})"
