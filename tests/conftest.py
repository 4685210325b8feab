# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures: a recording mock transport and settings isolation."""

from __future__ import annotations

import os
from collections.abc import Callable

import httpx
import pytest

from retrofit.settings import RetrofitSettings


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Isolate every test from RETROFIT_* variables and the settings singleton."""
    for key in list(os.environ):
        if key.upper().startswith("RETROFIT_"):
            monkeypatch.delenv(key, raising=False)
    RetrofitSettings.reset_instance()
    yield
    RetrofitSettings.reset_instance()


class Recorder:
    """Mock transport handler that records requests and replays a response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.respond: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"ok": True}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        return self.respond(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def reply(self, *args, **kwargs) -> None:
        self.respond = lambda request: httpx.Response(*args, **kwargs)

    def install(self, kwargs: dict) -> None:
        """Client customizer routing the service through this recorder."""
        kwargs["transport"] = httpx.MockTransport(self)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
