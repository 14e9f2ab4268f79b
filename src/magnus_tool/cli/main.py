"""Magnus Tool main entry point and command registration."""

from __future__ import annotations

import atexit
from pathlib import Path  # noqa: TC003
from typing import Annotated

import sentry_sdk
import typer

from magnus_tool.__about__ import __version__
from magnus_tool.cli.commands.browse import browse_command, columns_command
from magnus_tool.cli.commands.config import config_app
from magnus_tool.cli.commands.query import query_command, select_top_command
from magnus_tool.core.exceptions import MagnusError
from magnus_tool.core.logging import setup_logging
from magnus_tool.core.monitoring import setup_sentry

app = typer.Typer(
    help="Magnus Tool - query and browse a Rock RMS database over the Magnus API",
    no_args_is_help=True,
)

app.add_typer(config_app, name="config")
app.command("query")(query_command)
app.command("select-top")(select_top_command)
app.command("browse")(browse_command)
app.command("columns")(columns_command)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"magnus-tool {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable verbose logging"),
    ] = False,
    profile: Annotated[
        str | None,
        typer.Option("--profile", "-P", help="Named connection profile"),
    ] = None,
    server: Annotated[
        str | None,
        typer.Option("--server", "-S", help="Server address"),
    ] = None,
    user: Annotated[
        str | None,
        typer.Option("--user", "-U", help="User name"),
    ] = None,
    password: Annotated[
        str | None,
        typer.Option("--password", "-W", help="Password"),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config file"),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="HTTP request timeout in seconds"),
    ] = None,
    poll_interval: Annotated[
        float | None,
        typer.Option("--poll-interval", help="Seconds between query status polls"),
    ] = None,
) -> None:
    """Magnus Tool - query and browse a Rock RMS database over the Magnus API."""
    setup_logging(verbose)
    setup_sentry()

    transaction = sentry_sdk.start_transaction(
        op="cli", name=ctx.invoked_subcommand or "magnus-tool"
    )
    transaction.__enter__()

    def cleanup() -> None:
        transaction.__exit__(None, None, None)
        sentry_sdk.flush(timeout=2)

    atexit.register(cleanup)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["profile"] = profile
    ctx.obj["server"] = server
    ctx.obj["user"] = user
    ctx.obj["password"] = password
    ctx.obj["config_file"] = config_file
    ctx.obj["timeout"] = timeout
    ctx.obj["poll_interval"] = poll_interval


def run() -> None:
    """Entry point with global error handling."""
    try:
        app()
    except MagnusError as e:
        sentry_sdk.capture_exception(e)
        typer.echo(f"Error: {e.message}", err=True)
        raise SystemExit(e.exit_code) from None
    except SystemExit:
        raise
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except Exception as e:
        sentry_sdk.capture_exception(e)
        typer.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from None
