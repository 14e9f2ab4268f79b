"""Tests for configuration loading and precedence resolution."""

import pytest

from magnus_tool.core.config import (
    AppConfig,
    ResolvedConfig,
    ServerProfile,
    load_config,
    resolve_config,
)
from magnus_tool.core.exceptions import ConfigError
from magnus_tool.core.session import DEFAULT_API_PREFIX, DEFAULT_REQUEST_TIMEOUT


@pytest.mark.unit
class TestModels:
    def test_profile_defaults(self):
        profile = ServerProfile()
        assert profile.server is None
        assert profile.api_prefix == DEFAULT_API_PREFIX
        assert profile.cookie_name == ".ROCK"

    def test_api_prefix_must_be_absolute(self):
        with pytest.raises(ValueError, match="Must start with '/'"):
            ServerProfile(api_prefix="api/Magnus")

    def test_api_prefix_trailing_slash_stripped(self):
        assert ServerProfile(api_prefix="/api/Magnus/").api_prefix == "/api/Magnus"

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError, match="request_timeout"):
            AppConfig(request_timeout=0)

    def test_poll_interval_may_be_zero(self):
        assert AppConfig(poll_interval=0).poll_interval == 0

    def test_poll_interval_not_negative(self):
        with pytest.raises(ValueError, match="poll_interval"):
            AppConfig(poll_interval=-1)


@pytest.mark.unit
class TestLoadConfig:
    def test_missing_file_gives_defaults(self, temp_dir):
        config = load_config(temp_dir / "missing.toml")
        assert config.profiles == {}
        assert config.request_timeout == DEFAULT_REQUEST_TIMEOUT

    def test_profiles(self, temp_dir):
        path = temp_dir / "config.toml"
        path.write_text(
            'default_profile = "prod"\n'
            "poll_interval = 1.5\n"
            "\n"
            "[profiles.prod]\n"
            'server = "rock.example.org"\n'
            'user = "admin"\n'
        )
        config = load_config(path)
        assert config.default_profile == "prod"
        assert config.poll_interval == 1.5
        assert config.profiles["prod"].server == "rock.example.org"

    def test_malformed_toml(self, temp_dir):
        path = temp_dir / "config.toml"
        path.write_text("[profiles\n")
        with pytest.raises(ConfigError, match="Malformed TOML"):
            load_config(path)

    def test_invalid_values(self, temp_dir):
        path = temp_dir / "config.toml"
        path.write_text("request_timeout = -5\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)


@pytest.mark.unit
class TestResolveConfig:
    def test_defaults_only(self):
        resolved = resolve_config(AppConfig())
        assert resolved.server is None
        assert resolved.api_prefix == DEFAULT_API_PREFIX
        assert resolved.sources["server"] == "default"
        assert resolved.active_profile is None

    def test_config_file_globals(self):
        config = AppConfig(request_timeout=30.0)
        resolved = resolve_config(config)
        assert resolved.request_timeout == 30.0
        assert resolved.sources["request_timeout"] == "config"
        assert resolved.sources["poll_interval"] == "default"

    def test_profile_overrides_defaults(self):
        config = AppConfig(
            profiles={"prod": ServerProfile(server="rock.example.org", api_prefix="/api/M")}
        )
        resolved = resolve_config(config, profile_name="prod")
        assert resolved.server == "rock.example.org"
        assert resolved.api_prefix == "/api/M"
        assert resolved.sources["server"] == "profile: prod"
        assert resolved.sources["cookie_name"] == "default"
        assert resolved.active_profile == "prod"

    def test_default_profile_used(self):
        config = AppConfig(
            default_profile="dev", profiles={"dev": ServerProfile(server="localhost:6229")}
        )
        assert resolve_config(config).server == "localhost:6229"

    def test_profile_env_var(self, monkeypatch):
        monkeypatch.setenv("MAGNUS_PROFILE", "dev")
        config = AppConfig(profiles={"dev": ServerProfile(user="dev-user")})
        resolved = resolve_config(config)
        assert resolved.user == "dev-user"
        assert resolved.active_profile == "dev"

    def test_unknown_profile(self):
        config = AppConfig(profiles={"prod": ServerProfile()})
        with pytest.raises(ConfigError, match="Unknown profile: 'nope'. Available profiles: prod"):
            resolve_config(config, profile_name="nope")

    def test_env_overrides_profile(self, monkeypatch):
        monkeypatch.setenv("MAGNUS_SERVER", "env.example.org")
        config = AppConfig(profiles={"prod": ServerProfile(server="rock.example.org")})
        resolved = resolve_config(config, profile_name="prod")
        assert resolved.server == "env.example.org"
        assert resolved.sources["server"] == "env: MAGNUS_SERVER"

    def test_cli_overrides_everything(self, monkeypatch):
        monkeypatch.setenv("MAGNUS_USER", "env-user")
        config = AppConfig(profiles={"prod": ServerProfile(user="profile-user")})
        resolved = resolve_config(
            config, profile_name="prod", user="cli-user", timeout=5.0, poll_interval=0.1
        )
        assert resolved.user == "cli-user"
        assert resolved.sources["user"] == "cli: --user"
        assert resolved.request_timeout == 5.0
        assert resolved.sources["request_timeout"] == "cli: --timeout"
        assert resolved.sources["poll_interval"] == "cli: --poll-interval"


@pytest.mark.unit
class TestResolvedConfig:
    def test_session_settings(self):
        resolved = ResolvedConfig(api_prefix="/api/M", cookie_name=".AUTH", request_timeout=9.0)
        settings = resolved.session_settings()
        assert settings.api_prefix == "/api/M"
        assert settings.cookie_name == ".AUTH"
        assert settings.request_timeout == 9.0
        assert settings.transport is None

    def test_require_credentials(self):
        resolved = ResolvedConfig(server="s", user="u", password="p")  # pragma: allowlist secret
        assert resolved.require_credentials() == ("s", "u", "p")

    def test_missing_credentials_listed(self):
        with pytest.raises(ConfigError, match="Missing connection settings: user, password"):
            ResolvedConfig(server="s").require_credentials()

    def test_empty_credentials_are_missing(self):
        resolved = ResolvedConfig(server="", user="u", password="p")  # pragma: allowlist secret
        with pytest.raises(ConfigError, match=r"Missing connection settings: server\. "):
            resolved.require_credentials()
