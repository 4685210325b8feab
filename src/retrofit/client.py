# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Lazy, build-once transport clients.

A :class:`ClientHandle` owns the httpx clients of one service instance. Each
client moves ``UNBUILT -> BUILDING -> BUILT`` at most once. Concurrent first
callers wait on a lock for that single build. A failed build is remembered
and re-raised; it is not retried.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable
from typing import Any, Generic, TypeVar

import httpx

from .errors import BuildError
from .model import ClientOptions
from .settings import RetrofitSettings

__all__ = ("BuildState", "Lazy", "ClientHandle", "ClientCustomizer")

logger = logging.getLogger(__name__)

T = TypeVar("T")

ClientCustomizer = Callable[[dict[str, Any]], "dict[str, Any] | None"]


class BuildState(str, enum.Enum):
    UNBUILT = "unbuilt"
    BUILDING = "building"
    BUILT = "built"
    FAILED = "failed"


class Lazy(Generic[T]):
    """A value built by ``builder`` on first :meth:`get`, exactly once."""

    def __init__(self, builder: Callable[[], T], *, name: str = "client"):
        self._builder = builder
        self._name = name
        self._lock = threading.Lock()
        self._value: T | None = None
        self._error: BuildError | None = None
        self._state = BuildState.UNBUILT

    @property
    def state(self) -> BuildState:
        return self._state

    @property
    def lock(self) -> threading.Lock:
        """Lock held for the whole build."""
        return self._lock

    def peek(self) -> T | None:
        """The built value, or ``None`` without triggering a build."""
        return self._value if self._state is BuildState.BUILT else None

    def get(self) -> T:
        if self._state is BuildState.BUILT:
            return self._value  # type: ignore[return-value]
        with self._lock:
            if self._state is BuildState.BUILT:
                return self._value  # type: ignore[return-value]
            if self._state is BuildState.FAILED:
                raise self._error  # type: ignore[misc]
            self._state = BuildState.BUILDING
            try:
                value = self._builder()
            except BuildError as e:
                self._fail(e)
                raise
            except Exception as e:
                error = BuildError(f"Failed to build {self._name}: {e}", cause=e)
                self._fail(error)
                raise error from e
            self._value = value
            self._state = BuildState.BUILT
            logger.debug(f"Built {self._name}")
            return value

    def _fail(self, error: BuildError) -> None:
        self._error = error
        self._state = BuildState.FAILED
        logger.debug(f"Building {self._name} failed: {error}")


class ClientHandle:
    """Base URL plus the lazily built sync and async httpx clients.

    Client configuration is layered, lowest precedence first: library
    settings, interface :class:`ClientOptions`, then customizers installed
    with :meth:`configure` before first use.
    """

    def __init__(
        self,
        base_url: str,
        options: ClientOptions | None = None,
        *,
        settings: RetrofitSettings | None = None,
        eager: bool = False,
    ):
        self._base_url = base_url
        self._options = options or ClientOptions()
        self._settings = settings
        self._customizers: list[ClientCustomizer] = []
        self._sync: Lazy[httpx.Client] = Lazy(
            lambda: self._build(httpx.Client), name="httpx.Client"
        )
        self._async: Lazy[httpx.AsyncClient] = Lazy(
            lambda: self._build(httpx.AsyncClient), name="httpx.AsyncClient"
        )
        if eager:
            self._sync.get()

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def options(self) -> ClientOptions:
        return self._options

    @property
    def settings(self) -> RetrofitSettings:
        """Settings this handle builds from; the process-wide ones unless given."""
        return self._settings or RetrofitSettings.get_instance()

    @property
    def state(self) -> BuildState:
        """State of the sync client."""
        return self._sync.state

    @property
    def async_state(self) -> BuildState:
        return self._async.state

    def configure(self, customizer: ClientCustomizer) -> None:
        """Install a builder customization.

        ``customizer`` receives the httpx client keyword arguments and may
        mutate them in place or return a replacement dict. It must be
        installed before any client is built.
        """
        with self._sync.lock, self._async.lock:
            if (
                self._sync.state is not BuildState.UNBUILT
                or self._async.state is not BuildState.UNBUILT
            ):
                raise BuildError("Client customizations must be installed before first use")
            self._customizers.append(customizer)

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for the httpx client constructor."""
        settings = self.settings
        defaults = ClientOptions(
            timeout=settings.TIMEOUT,
            connect_timeout=settings.CONNECT_TIMEOUT,
            user_agent=settings.USER_AGENT,
            follow_redirects=settings.FOLLOW_REDIRECTS,
            verify=settings.VERIFY_SSL,
        )
        options = defaults.merged(self._options)

        headers = {"user-agent": options.user_agent}
        if options.gzip is False:
            headers["accept-encoding"] = "identity"
        kwargs: dict[str, Any] = {
            "headers": headers,
            "timeout": httpx.Timeout(options.timeout, connect=options.connect_timeout)
            if options.connect_timeout is not None
            else httpx.Timeout(options.timeout),
            "follow_redirects": bool(options.follow_redirects),
            "verify": bool(options.verify),
        }
        if options.max_connections is not None or options.max_keepalive_connections is not None:
            default_limits = httpx.Limits()
            kwargs["limits"] = httpx.Limits(
                max_connections=options.max_connections
                if options.max_connections is not None
                else default_limits.max_connections,
                max_keepalive_connections=options.max_keepalive_connections
                if options.max_keepalive_connections is not None
                else default_limits.max_keepalive_connections,
            )

        for customizer in self._customizers:
            result = customizer(kwargs)
            if result is not None:
                kwargs = result
        return kwargs

    def _build(self, factory: Callable[..., T]) -> T:
        kwargs = self.client_kwargs()
        logger.debug(f"Building {factory.__name__} for {self._base_url}")
        try:
            return factory(**kwargs)
        except (TypeError, ValueError) as e:
            raise BuildError(f"Invalid client configuration: {e}", cause=e) from e

    def get(self) -> httpx.Client:
        return self._sync.get()

    def get_async(self) -> httpx.AsyncClient:
        return self._async.get()

    def close(self) -> None:
        client = self._sync.peek()
        if client is not None:
            client.close()

    async def aclose(self) -> None:
        client = self._async.peek()
        if client is not None:
            await client.aclose()
        self.close()
