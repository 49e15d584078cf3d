"""Tests for command and application configuration."""

import math

import pytest

from chorus.config import AppConfig, CommandConfig
from chorus.exceptions import CommandConfigError


class TestCommandConfig:
    """Tests for CommandConfig dataclass."""

    def test_default_values(self):
        """Config has the documented defaults."""
        config = CommandConfig()
        assert config.authority == 1
        assert config.max_usage == math.inf
        assert config.min_interval == 0
        assert config.show_warning is True
        assert not config.check_arg_count
        assert not config.check_unknown
        assert not config.check_required
        assert config.disable is False

    def test_with_overrides(self):
        """Overrides return a new config and keep the original intact."""
        config = CommandConfig(authority=2)
        updated = config.with_overrides(max_usage=10, description="Roll dice")
        assert updated.authority == 2
        assert updated.max_usage == 10
        assert updated.description == "Roll dice"
        assert config.max_usage == math.inf

    def test_unknown_keys(self):
        with pytest.raises(CommandConfigError) as exc_info:
            CommandConfig().with_overrides(authority=2, maxUsage=3, colour="red")
        assert exc_info.value.keys == ["colour", "maxUsage"]

    def test_frozen(self):
        with pytest.raises(AttributeError):
            CommandConfig().authority = 5

    def test_callable_values(self):
        config = CommandConfig(max_usage=lambda user: 3)
        assert callable(config.max_usage)


class TestAppConfig:
    """Tests for AppConfig dataclass."""

    def test_default_values(self):
        config = AppConfig()
        assert config.command_prefixes == ("/",)
        assert config.nicknames == ()
        assert config.require_prefix_in_groups
        assert config.base_user_fields == ("id",)
        assert config.sender_endpoint is None

    def test_validation_nicknames(self):
        with pytest.raises(ValueError, match="nicknames must not be blank"):
            AppConfig(nicknames=("bot", " "))

    def test_validation_prefixes(self):
        with pytest.raises(ValueError, match="command_prefixes must be strings"):
            AppConfig(command_prefixes=("/", 1))

    def test_validation_endpoint(self):
        with pytest.raises(ValueError, match="sender_endpoint must be an http"):
            AppConfig(sender_endpoint="ftp://example.com")

    def test_with_overrides(self):
        config = AppConfig().with_overrides(nicknames=("bot",))
        assert config.nicknames == ("bot",)
        with pytest.raises(ValueError):
            AppConfig().with_overrides(nicknames=("",))


class TestAppConfigFromEnv:
    """Tests for environment overrides."""

    def test_defaults_without_env(self, monkeypatch):
        for name in (
            "CHORUS_COMMAND_PREFIXES",
            "CHORUS_NICKNAMES",
            "CHORUS_REQUIRE_PREFIX_IN_GROUPS",
            "CHORUS_SENDER_ENDPOINT",
            "CHORUS_SENDER_TOKEN",
        ):
            monkeypatch.delenv(name, raising=False)
        assert AppConfig.from_env() == AppConfig()

    def test_reads_env(self, monkeypatch):
        monkeypatch.setenv("CHORUS_COMMAND_PREFIXES", "!, .")
        monkeypatch.setenv("CHORUS_NICKNAMES", "chorus,bot")
        monkeypatch.setenv("CHORUS_REQUIRE_PREFIX_IN_GROUPS", "false")
        monkeypatch.setenv("CHORUS_SENDER_ENDPOINT", "http://localhost:5700/send")
        monkeypatch.setenv("CHORUS_SENDER_TOKEN", "secret")
        config = AppConfig.from_env()
        assert config.command_prefixes == ("!", ".")
        assert config.nicknames == ("chorus", "bot")
        assert config.require_prefix_in_groups is False
        assert config.sender_endpoint == "http://localhost:5700/send"
        assert config.sender_token == "secret"

    def test_invalid_env_endpoint(self, monkeypatch):
        monkeypatch.setenv("CHORUS_SENDER_ENDPOINT", "localhost:5700")
        with pytest.raises(ValueError):
            AppConfig.from_env()
