# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Tests for lazy, build-once client construction."""

import threading
import time

import httpx
import pytest

from retrofit.client import BuildState, ClientHandle, Lazy
from retrofit.errors import BuildError
from retrofit.model import ClientOptions
from retrofit.settings import RetrofitSettings


class TestLazy:
    def test_starts_unbuilt(self):
        lazy = Lazy(object)

        assert lazy.state is BuildState.UNBUILT
        assert lazy.peek() is None

    def test_concurrent_first_use_builds_once(self):
        builds = []

        def builder():
            builds.append(threading.get_ident())
            time.sleep(0.05)
            return object()

        lazy = Lazy(builder)
        barrier = threading.Barrier(8)
        results = []

        def worker():
            barrier.wait()
            results.append(lazy.get())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(builds) == 1
        assert len(results) == 8
        assert all(result is results[0] for result in results)
        assert lazy.state is BuildState.BUILT

    def test_failure_is_remembered_and_not_retried(self):
        attempts = []

        def builder():
            attempts.append(1)
            raise RuntimeError("no sockets")

        lazy = Lazy(builder, name="test client")

        with pytest.raises(BuildError) as first:
            lazy.get()
        with pytest.raises(BuildError) as second:
            lazy.get()

        assert len(attempts) == 1
        assert second.value is first.value
        assert isinstance(first.value.__cause__, RuntimeError)
        assert lazy.state is BuildState.FAILED


class TestClientHandle:
    def test_defaults_come_from_settings(self):
        kwargs = ClientHandle("https://api.example.com").client_kwargs()

        assert kwargs["headers"]["user-agent"] == RetrofitSettings.get_instance().USER_AGENT
        assert kwargs["timeout"] == httpx.Timeout(30.0)
        assert kwargs["follow_redirects"] is True
        assert "limits" not in kwargs

    def test_precedence_settings_then_options_then_customizer(self):
        settings = RetrofitSettings(TIMEOUT=5.0, USER_AGENT="from-settings")
        handle = ClientHandle(
            "https://api.example.com",
            ClientOptions(timeout=10.0),
            settings=settings,
        )

        assert handle.client_kwargs()["timeout"] == httpx.Timeout(10.0)
        assert handle.client_kwargs()["headers"]["user-agent"] == "from-settings"

        def customize(kwargs):
            kwargs["timeout"] = httpx.Timeout(1.0)

        handle.configure(customize)

        assert handle.client_kwargs()["timeout"] == httpx.Timeout(1.0)

    def test_customizer_may_return_replacement(self):
        handle = ClientHandle("https://api.example.com")
        handle.configure(lambda kwargs: {**kwargs, "http2": False})

        assert handle.client_kwargs()["http2"] is False

    def test_gzip_disabled_asks_for_identity(self):
        handle = ClientHandle("https://api.example.com", ClientOptions(gzip=False))

        assert handle.client_kwargs()["headers"]["accept-encoding"] == "identity"

    def test_connect_timeout(self):
        handle = ClientHandle(
            "https://api.example.com", ClientOptions(timeout=5.0, connect_timeout=1.0)
        )

        timeout = handle.client_kwargs()["timeout"]

        assert timeout.connect == 1.0
        assert timeout.read == 5.0

    def test_connection_limits(self):
        handle = ClientHandle("https://api.example.com", ClientOptions(max_connections=5))

        limits = handle.client_kwargs()["limits"]

        assert limits.max_connections == 5
        assert limits.max_keepalive_connections == httpx.Limits().max_keepalive_connections

    def test_client_is_built_on_first_use_only(self):
        handle = ClientHandle("https://api.example.com")
        assert handle.state is BuildState.UNBUILT

        client = handle.get()

        assert isinstance(client, httpx.Client)
        assert handle.get() is client
        assert handle.state is BuildState.BUILT
        assert handle.async_state is BuildState.UNBUILT
        handle.close()

    def test_eager_build(self):
        handle = ClientHandle("https://api.example.com", eager=True)

        assert handle.state is BuildState.BUILT
        handle.close()

    def test_configure_after_build_is_rejected(self):
        handle = ClientHandle("https://api.example.com")
        handle.get()

        with pytest.raises(BuildError, match="before first use"):
            handle.configure(lambda kwargs: None)
        handle.close()

    def test_invalid_configuration_is_a_build_error(self):
        handle = ClientHandle("https://api.example.com")
        handle.configure(lambda kwargs: {**kwargs, "no_such_option": 1})

        with pytest.raises(BuildError, match="Invalid client configuration") as first:
            handle.get()
        with pytest.raises(BuildError) as second:
            handle.get()

        assert second.value is first.value
        assert handle.state is BuildState.FAILED

    def test_customizer_failure_is_a_build_error(self):
        handle = ClientHandle("https://api.example.com")

        def broken(kwargs):
            raise KeyError("proxy")

        handle.configure(broken)

        with pytest.raises(BuildError):
            handle.get()

    def test_configure_during_build_is_rejected(self):
        handle = ClientHandle("https://api.example.com")
        entered = threading.Event()
        release = threading.Event()
        outcome = []

        def slow(kwargs):
            entered.set()
            release.wait(timeout=5)

        def late(kwargs):
            kwargs["late"] = True

        def configure_late():
            try:
                handle.configure(late)
            except BuildError as e:
                outcome.append(e)

        handle.configure(slow)
        builder = threading.Thread(target=handle.get)
        builder.start()
        assert entered.wait(timeout=5)
        assert handle.state is BuildState.BUILDING

        configurer = threading.Thread(target=configure_late)
        configurer.start()
        time.sleep(0.05)
        release.set()
        builder.join()
        configurer.join()

        assert len(outcome) == 1
        assert handle.state is BuildState.BUILT
        assert "late" not in handle.client_kwargs()
        handle.close()

    def test_settings_given_to_the_handle(self):
        settings = RetrofitSettings(ERROR_PREVIEW_CHARS=3)

        assert ClientHandle("https://api.example.com", settings=settings).settings is settings
        assert ClientHandle("https://api.example.com").settings is RetrofitSettings.get_instance()

    @pytest.mark.anyio
    async def test_async_client(self):
        handle = ClientHandle("https://api.example.com")

        client = handle.get_async()

        assert isinstance(client, httpx.AsyncClient)
        assert handle.get_async() is client
        assert handle.state is BuildState.UNBUILT
        await handle.aclose()
