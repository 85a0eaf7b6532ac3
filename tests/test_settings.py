"""
Tests for the pydantic-settings configuration.
"""

import pytest

from shared.config.settings import Settings


def _settings(**overrides):
    return Settings(_env_file=None, **overrides)


class TestDefaults:
    """Tests for the default values."""

    def test_liveness_defaults(self):
        config = _settings()

        assert config.ws_probe_interval == 30.0
        assert config.ws_sweep_interval == 35.0
        assert config.ws_stale_threshold == 65.0

    def test_server_defaults(self):
        config = _settings()

        assert config.port == 3000
        assert config.ws_path == "/ws"
        assert config.channel_namespace == "chat"
        assert config.channel_kind == "user"

    def test_defaults_are_valid(self):
        assert _settings().validate_configuration() == []


class TestEnvironment:
    """Tests for environment variable overrides."""

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("WS_PROBE_INTERVAL", "10")
        monkeypatch.setenv("CHANNEL_NAMESPACE", "im")
        monkeypatch.setenv("PORT", "8080")

        config = _settings()

        assert config.ws_probe_interval == 10.0
        assert config.channel_namespace == "im"
        assert config.port == 8080

    def test_cors_origins_default_to_wildcard(self):
        assert _settings().cors_origins == ["*"]

    def test_cors_origins_are_split(self):
        config = _settings(allowed_origins="http://a.test, http://b.test,,")
        assert config.cors_origins == ["http://a.test", "http://b.test"]


class TestValidateConfiguration:
    """Tests for cross-field validation."""

    @pytest.mark.parametrize(
        "overrides,fragment",
        [
            ({"ws_probe_interval": 0}, "must be positive"),
            ({"ws_stale_threshold": 20.0}, "WS_STALE_THRESHOLD"),
            ({"channel_kind": ""}, "must not be empty"),
            ({"channel_namespace": "a.b"}, "must not contain dots"),
            ({"ws_path": "ws"}, "WS_PATH"),
            ({"environment": "production", "debug": True}, "DEBUG"),
        ],
    )
    def test_invalid_combinations(self, overrides, fragment):
        errors = _settings(**overrides).validate_configuration()

        assert any(fragment in error for error in errors)

    def test_production_without_debug_is_valid(self):
        config = _settings(environment="production", debug=False)
        assert config.validate_configuration() == []
