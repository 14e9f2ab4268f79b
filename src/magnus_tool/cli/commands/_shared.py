"""Shared CLI plumbing for command modules.

Config resolution, session creation and query execution helpers.
Distinct from cli.output which only renders data.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from magnus_tool.cli.output import write_messages, write_result_sets
from magnus_tool.core.config import load_config, resolve_config
from magnus_tool.core.logging import get_logger
from magnus_tool.core.models import SaveResultsRequest
from magnus_tool.core.query_runner import QueryRunner
from magnus_tool.core.session import Session

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import typer

    from magnus_tool.core.config import ResolvedConfig


def get_config(ctx: typer.Context) -> ResolvedConfig:
    obj = ctx.ensure_object(dict)
    config = load_config(obj.get("config_file"))

    cli_overrides: dict[str, Any] = {}
    for key in ("server", "user", "password", "timeout", "poll_interval"):
        val = obj.get(key)
        if val is not None:
            cli_overrides[key] = val

    return resolve_config(config, profile_name=obj.get("profile"), **cli_overrides)


async def open_session(resolved: ResolvedConfig) -> Session:
    server, user, password = resolved.require_credentials()
    return await Session.authenticate(server, user, password, resolved.session_settings())


def run_with_session(
    ctx: typer.Context, action: Callable[[Session, ResolvedConfig], Awaitable[None]]
) -> None:
    """Authenticate, run action, and close the session on the way out."""
    resolved = get_config(ctx)

    async def main() -> None:
        session = await open_session(resolved)
        async with session:
            await action(session, resolved)

    asyncio.run(main())


async def execute_and_output(
    session: Session,
    resolved: ResolvedConfig,
    sql: str,
    *,
    width: int = 40,
    export: SaveResultsRequest | None = None,
) -> None:
    """Run sql, stream its messages to stderr, then print or export the results."""
    # Import here to trigger registry population from serializer modules.
    import magnus_tool.serializers  # noqa: F401
    from magnus_tool.serializers.base import registry, write_result_set

    log = get_logger(__name__)
    runner = QueryRunner(session, sql, poll_interval=resolved.poll_interval)
    try:
        await runner.execute(write_messages)
    finally:
        await runner.flush()

    store = runner.result_store
    log.debug("query finished", duration_ms=f"{runner.duration_millis:.1f}")

    if export is None:
        write_result_sets(store.result_sets, width)
        return

    result_set = store.get_result_set(export.result_set_index)
    serializer = registry.get(export.result_format, export)
    await write_result_set(serializer, result_set)
    log.info("results exported", path=export.file_path, rows=result_set.row_count)
