"""Configuration management CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from magnus_tool.cli.commands._shared import get_config
from magnus_tool.core.config import DEFAULT_CONFIG_PATH, load_config

if TYPE_CHECKING:
    from pathlib import Path

config_app = typer.Typer(help="Configuration management commands")


@config_app.callback(invoke_without_command=True)
def config_callback(ctx: typer.Context) -> None:
    if not ctx.invoked_subcommand:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _mask_password(value: str | None) -> str:
    if value is None:
        return "not set"
    return "***"


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Display resolved configuration with source attribution."""
    resolved = get_config(ctx)
    config_path: Path | None = ctx.obj.get("config_file")
    sources = resolved.sources

    typer.echo("Connection Settings (resolved):")
    connection_fields = [
        ("server", resolved.server or "not set"),
        ("user", resolved.user or "not set"),
        ("password", _mask_password(resolved.password)),
        ("api_prefix", resolved.api_prefix),
        ("cookie_name", resolved.cookie_name),
    ]
    for field_name, value in connection_fields:
        source = sources.get(field_name, "default")
        typer.echo(f"  {field_name}: {value} ({source})")

    typer.echo("")
    typer.echo("General:")
    timeout_source = sources.get("request_timeout", "default")
    typer.echo(f"  request_timeout: {resolved.request_timeout}s ({timeout_source})")
    poll_source = sources.get("poll_interval", "default")
    typer.echo(f"  poll_interval: {resolved.poll_interval}s ({poll_source})")

    typer.echo("")
    if resolved.active_profile:
        typer.echo(f"Active Profile: {resolved.active_profile}")
    else:
        typer.echo("Active Profile: none")

    display_path = config_path or DEFAULT_CONFIG_PATH
    typer.echo(f"Config File: {display_path}")


@config_app.command("profiles")
def config_profiles(ctx: typer.Context) -> None:
    """List available connection profiles."""
    config_path: Path | None = ctx.obj.get("config_file")
    app_config = load_config(config_path)
    active_profile = ctx.obj.get("profile") or app_config.default_profile

    if not app_config.profiles:
        typer.echo("No profiles configured.")
        display_path = config_path or DEFAULT_CONFIG_PATH
        typer.echo(f"Add profiles to: {display_path}")
        return

    typer.echo("Available Profiles:")
    typer.echo("")
    for name, profile in sorted(app_config.profiles.items()):
        is_active = name == active_profile
        marker = "* " if is_active else "  "
        label = " (active)" if is_active else ""
        typer.echo(f"{marker}{name}{label}")

        display_fields = [("server", profile.server or "not set")]
        if profile.user:
            display_fields.append(("user", profile.user))
        if "api_prefix" in profile.model_fields_set:
            display_fields.append(("api_prefix", profile.api_prefix))

        for field_name, value in display_fields:
            typer.echo(f"      {field_name}: {value}")
        typer.echo("")
