# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

"""Tests for library settings."""

import pytest
from pydantic import ValidationError

from retrofit import __version__
from retrofit.client import ClientHandle
from retrofit.settings import RetrofitSettings


class TestRetrofitSettings:
    """Tests for RetrofitSettings."""

    def test_default_values(self):
        """Test settings defaults."""
        settings = RetrofitSettings()
        assert settings.USER_AGENT == f"retrofit/{__version__}"
        assert settings.TIMEOUT == 30.0
        assert settings.CONNECT_TIMEOUT is None
        assert settings.FOLLOW_REDIRECTS is True
        assert settings.VERIFY_SSL is True
        assert settings.ERROR_PREVIEW_CHARS == 500

    def test_environment_override(self, monkeypatch):
        """Test RETROFIT_ prefixed variables override defaults."""
        monkeypatch.setenv("RETROFIT_TIMEOUT", "5")
        monkeypatch.setenv("retrofit_follow_redirects", "false")
        settings = RetrofitSettings()
        assert settings.TIMEOUT == 5.0
        assert settings.FOLLOW_REDIRECTS is False

    def test_singleton(self):
        """Test get_instance returns one shared object until reset."""
        first = RetrofitSettings.get_instance()
        assert RetrofitSettings.get_instance() is first
        RetrofitSettings.reset_instance()
        assert RetrofitSettings.get_instance() is not first

    def test_frozen(self):
        """Test settings cannot be mutated."""
        settings = RetrofitSettings()
        with pytest.raises(ValidationError):
            settings.TIMEOUT = 1.0

    def test_preview_chars_must_be_non_negative(self, monkeypatch):
        """Test invalid values are rejected."""
        monkeypatch.setenv("RETROFIT_ERROR_PREVIEW_CHARS", "-1")
        with pytest.raises(ValidationError):
            RetrofitSettings()

    def test_environment_reaches_client(self, monkeypatch):
        """Test environment defaults feed client construction."""
        monkeypatch.setenv("RETROFIT_USER_AGENT", "env-agent/2")
        kwargs = ClientHandle("https://api.example.com").client_kwargs()
        assert kwargs["headers"]["user-agent"] == "env-agent/2"

    def test_no_import_time_instance(self):
        """Test importing the module does not read the environment."""
        import retrofit.settings as settings_module

        assert settings_module.__all__ == ("RetrofitSettings",)
        assert not hasattr(settings_module, "settings")
