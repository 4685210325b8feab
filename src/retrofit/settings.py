# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Library defaults with environment variable support."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .version import __version__

__all__ = ("RetrofitSettings",)


class RetrofitSettings(BaseSettings, frozen=True):
    """Defaults applied when building a transport client.

    These are the lowest-precedence layer: interface-level client options
    and call-site builder customizations both override them.
    """

    model_config = SettingsConfigDict(
        env_prefix="RETROFIT_",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    USER_AGENT: str = Field(
        default=f"retrofit/{__version__}",
        description="User-Agent sent when a service declares none",
    )
    TIMEOUT: float | None = Field(
        default=30.0, description="Default request timeout in seconds"
    )
    CONNECT_TIMEOUT: float | None = None
    FOLLOW_REDIRECTS: bool = True
    VERIFY_SSL: bool = True
    ERROR_PREVIEW_CHARS: int = Field(
        default=500,
        ge=0,
        description="How much of an error response body to keep on status errors",
    )

    _instance: ClassVar[Any] = None

    @classmethod
    def get_instance(cls) -> RetrofitSettings:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None
