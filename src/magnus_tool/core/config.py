"""Configuration management for Magnus Tool.

Handles TOML config files, environment variables, named profiles,
and configuration precedence resolution.

Precedence order (highest to lowest):
1. CLI flags (--server, --user, etc.)
2. Environment variables (MAGNUS_SERVER, MAGNUS_USER, MAGNUS_PASSWORD)
3. Named profile (--profile or MAGNUS_PROFILE env var)
4. Config file defaults
5. Built-in defaults
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, field_validator

from magnus_tool.core.exceptions import ConfigError
from magnus_tool.core.query_runner import DEFAULT_POLL_INTERVAL
from magnus_tool.core.session import (
    DEFAULT_API_PREFIX,
    DEFAULT_COOKIE_NAME,
    DEFAULT_REQUEST_TIMEOUT,
    SessionSettings,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "magnus-tool" / "config.toml"

PROFILE_ENV_VAR = "MAGNUS_PROFILE"

_ENV_VARS: dict[str, str] = {
    "MAGNUS_SERVER": "server",
    "MAGNUS_USER": "user",
    "MAGNUS_PASSWORD": "password",  # pragma: allowlist secret
}

_PROFILE_DEFAULTS: dict[str, Any] = {
    "server": None,
    "user": None,
    "password": None,
    "api_prefix": DEFAULT_API_PREFIX,
    "cookie_name": DEFAULT_COOKIE_NAME,
}


def _validate_positive(name: str, v: float) -> float:
    if v <= 0:
        msg = f"Invalid {name}: {v}. Must be greater than 0"
        raise ValueError(msg)
    return v


class ServerProfile(BaseModel):
    server: str | None = None
    user: str | None = None
    password: str | None = None
    api_prefix: str = DEFAULT_API_PREFIX
    cookie_name: str = DEFAULT_COOKIE_NAME

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        if not v.startswith("/"):
            msg = f"Invalid api_prefix: '{v}'. Must start with '/'"
            raise ValueError(msg)
        return v.rstrip("/")


class AppConfig(BaseModel):
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    default_profile: str | None = None
    profiles: dict[str, ServerProfile] = {}

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        return _validate_positive("request_timeout", v)

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        if v < 0:
            msg = f"Invalid poll_interval: {v}. Must be 0 or greater"
            raise ValueError(msg)
        return v


class ResolvedConfig(BaseModel):
    server: str | None = None
    user: str | None = None
    password: str | None = None
    api_prefix: str = DEFAULT_API_PREFIX
    cookie_name: str = DEFAULT_COOKIE_NAME
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    active_profile: str | None = None
    sources: dict[str, str] = {}

    def session_settings(self) -> SessionSettings:
        return SessionSettings(
            api_prefix=self.api_prefix,
            cookie_name=self.cookie_name,
            request_timeout=self.request_timeout,
        )

    def require_credentials(self) -> tuple[str, str, str]:
        """Return (server, user, password) or raise ConfigError naming what is missing."""
        server, user, password = self.server or "", self.user or "", self.password or ""
        missing = [
            name
            for name, value in (("server", server), ("user", user), ("password", password))
            if not value
        ]
        if missing:
            msg = (
                f"Missing connection settings: {', '.join(missing)}. "
                "Use --server/--user/--password, MAGNUS_* environment variables, "
                "or a profile."
            )
            raise ConfigError(msg)
        return server, user, password


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from TOML file.

    Returns default AppConfig if file doesn't exist.
    Raises ConfigError on malformed TOML or invalid config.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return AppConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Malformed TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        return AppConfig.model_validate(data)
    except Exception as e:
        msg = f"Invalid configuration in {config_path}: {e}"
        raise ConfigError(msg) from e


def resolve_config(
    config: AppConfig,
    profile_name: str | None = None,
    **cli_overrides: Any,
) -> ResolvedConfig:
    """Resolve configuration using precedence chain.

    CLI > env > profile > config defaults > built-in defaults.
    """
    sources: dict[str, str] = {}
    resolved: dict[str, Any] = {}

    # Layer 1: Built-in defaults
    resolved.update(_PROFILE_DEFAULTS)
    resolved["request_timeout"] = DEFAULT_REQUEST_TIMEOUT
    resolved["poll_interval"] = DEFAULT_POLL_INTERVAL
    for key in resolved:
        sources[key] = "default"

    # Layer 2: Config file global defaults
    for key in ("request_timeout", "poll_interval"):
        if key in config.model_fields_set:
            resolved[key] = getattr(config, key)
            sources[key] = "config"

    # Layer 3: Named profile
    effective_profile = profile_name
    if not effective_profile:
        effective_profile = os.environ.get(PROFILE_ENV_VAR)
    if not effective_profile:
        effective_profile = config.default_profile

    if effective_profile:
        if effective_profile not in config.profiles:
            available = (
                ", ".join(sorted(config.profiles.keys())) if config.profiles else "none"
            )
            msg = f"Unknown profile: '{effective_profile}'. Available profiles: {available}"
            raise ConfigError(msg)
        profile = config.profiles[effective_profile]
        for key in profile.model_fields_set:
            if key in resolved:
                resolved[key] = getattr(profile, key)
                sources[key] = f"profile: {effective_profile}"

    # Layer 4: Environment variables
    for env_var, field_name in _ENV_VARS.items():
        value = os.environ.get(env_var)
        if value:
            resolved[field_name] = value
            sources[field_name] = f"env: {env_var}"

    # Layer 5: CLI flags (highest priority)
    cli_to_field = {
        "server": "server",
        "user": "user",
        "password": "password",  # pragma: allowlist secret
        "timeout": "request_timeout",
        "poll_interval": "poll_interval",
    }
    for cli_name, field_name in cli_to_field.items():
        value = cli_overrides.get(cli_name)
        if value is not None:
            resolved[field_name] = value
            sources[field_name] = f"cli: --{cli_name.replace('_', '-')}"

    resolved["active_profile"] = effective_profile
    resolved["sources"] = sources
    return ResolvedConfig(**resolved)
