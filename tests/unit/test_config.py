"""
Unit tests for pubky_messenger.config module.

Tests defaults, TOML loading, environment overrides and saving.
"""

import pytest

from pubky_messenger.config import DEFAULT_CONFIG, Config
from pubky_messenger.errors import ConfigError, ErrorCode


class TestConfig:
    """Test configuration loading and merging."""

    def test_defaults(self, temp_dir):
        config = Config(temp_dir / "missing.toml")
        assert config.get("store", "homeserver") == DEFAULT_CONFIG["store"]["homeserver"]
        assert config.get("messaging", "notifications") is True
        assert config.get("nope", "nothing", "fallback") == "fallback"

    def test_file_overrides_defaults(self, temp_dir):
        path = temp_dir / "config.toml"
        path.write_text('[store]\nhomeserver = "https://hs.example"\n')

        config = Config(path)

        assert config.get("store", "homeserver") == "https://hs.example"
        assert config.get("store", "timeout") == DEFAULT_CONFIG["store"]["timeout"]

    def test_parse_error(self, temp_dir):
        path = temp_dir / "config.toml"
        path.write_text("[store\n")
        with pytest.raises(ConfigError) as exc_info:
            Config(path)
        assert exc_info.value.code == ErrorCode.E704_CONFIG_PARSE_ERROR

    def test_env_overrides(self, temp_dir, monkeypatch):
        monkeypatch.setenv("PUBKY_MESSENGER_STORE_HOMESERVER", "https://env.example")
        monkeypatch.setenv("PUBKY_MESSENGER_STORE_TIMEOUT", "5")
        monkeypatch.setenv("PUBKY_MESSENGER_MESSAGING_NOTIFICATIONS", "false")
        monkeypatch.setenv("PUBKY_MESSENGER_VAULT_REMEMBER_SESSION", "not-a-bool")

        config = Config(temp_dir / "config.toml")

        assert config.get("store", "homeserver") == "https://env.example"
        assert config.get("store", "timeout") == 5
        assert config.get("messaging", "notifications") is False
        assert config.get("vault", "remember_session") is False

    def test_invalid_numeric_env_is_ignored(self, temp_dir, monkeypatch):
        monkeypatch.setenv("PUBKY_MESSENGER_STORE_TIMEOUT", "soon")
        config = Config(temp_dir / "config.toml")
        assert config.get("store", "timeout") == DEFAULT_CONFIG["store"]["timeout"]

    def test_defaults_are_not_shared(self, temp_dir):
        config = Config(temp_dir / "config.toml")
        config.set("store", "homeserver", "https://changed.example")
        assert DEFAULT_CONFIG["store"]["homeserver"] != "https://changed.example"

    def test_save_and_reload(self, temp_dir):
        path = temp_dir / "sub" / "config.toml"
        config = Config(path)
        config.set("store", "timeout", 12)
        config.set("logging", "file_logging", True)
        config.save()

        reloaded = Config(path)
        assert reloaded.get("store", "timeout") == 12
        assert reloaded.get("logging", "file_logging") is True

    def test_session_file_is_expanded(self, temp_dir):
        config = Config(temp_dir / "config.toml")
        assert "~" not in str(config.session_file())

    def test_create_example(self, temp_dir):
        path = temp_dir / "example.toml"
        Config.create_example(path)
        assert Config(path).to_dict()["vault"] == DEFAULT_CONFIG["vault"]
