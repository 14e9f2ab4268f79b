"""Tests for the config sub-commands."""

import pytest

PROFILES_TOML = """\
default_profile = "prod"

[profiles.prod]
server = "rock.example.org"
user = "admin"

[profiles.dev]
server = "http://localhost:6229"
api_prefix = "/api/Magnus"
"""


@pytest.fixture
def config_file(temp_dir):
    path = temp_dir / "config.toml"
    path.write_text(PROFILES_TOML)
    return path


@pytest.mark.unit
class TestConfigShow:
    def test_defaults(self, cli_runner, temp_dir):
        result = cli_runner("--config", str(temp_dir / "none.toml"), "config", "show")
        assert result.exit_code == 0
        assert "server: not set (default)" in result.stdout
        assert "password: not set (default)" in result.stdout
        assert "api_prefix: /api/TriumphTech/Magnus (default)" in result.stdout
        assert "Active Profile: none" in result.stdout

    def test_sources(self, cli_runner, config_file, monkeypatch):
        monkeypatch.setenv("MAGNUS_USER", "env-user")
        result = cli_runner(
            "--config", str(config_file), "--password", "hunter2", "config", "show"
        )
        assert result.exit_code == 0
        assert "server: rock.example.org (profile: prod)" in result.stdout
        assert "user: env-user (env: MAGNUS_USER)" in result.stdout
        assert "password: *** (cli: --password)" in result.stdout
        assert "hunter2" not in result.stdout
        assert "Active Profile: prod" in result.stdout

    def test_unknown_profile(self, cli_runner, config_file):
        result = cli_runner("--config", str(config_file), "-P", "qa", "config", "show")
        assert result.exit_code != 0
        assert "Unknown profile" in str(result.exception)


@pytest.mark.unit
class TestConfigProfiles:
    def test_lists_profiles(self, cli_runner, config_file):
        result = cli_runner("--config", str(config_file), "config", "profiles")
        assert result.exit_code == 0
        assert "* prod (active)" in result.stdout
        assert "  dev" in result.stdout
        assert "api_prefix: /api/Magnus" in result.stdout

    def test_profile_flag_marks_active(self, cli_runner, config_file):
        result = cli_runner("--config", str(config_file), "-P", "dev", "config", "profiles")
        assert "* dev (active)" in result.stdout

    def test_no_profiles(self, cli_runner, temp_dir):
        result = cli_runner("--config", str(temp_dir / "none.toml"), "config", "profiles")
        assert result.exit_code == 0
        assert "No profiles configured." in result.stdout
