"""Object explorer commands: list child nodes and table columns."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

import typer

from magnus_tool.cli.commands._shared import run_with_session
from magnus_tool.cli.output import render_nodes

if TYPE_CHECKING:
    from magnus_tool.core.config import ResolvedConfig
    from magnus_tool.core.session import Session


def browse_command(
    ctx: typer.Context,
    node_id: Annotated[
        str | None,
        typer.Argument(help="Node to expand; omit for the root"),
    ] = None,
) -> None:
    """List the child nodes of an object explorer node."""

    async def action(session: Session, resolved: ResolvedConfig) -> None:
        nodes = await session.get_child_nodes(node_id)
        typer.echo(render_nodes(nodes))

    run_with_session(ctx, action)


def columns_command(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
) -> None:
    """List the column names of a table."""

    async def action(session: Session, resolved: ResolvedConfig) -> None:
        for name in await session.get_column_names(table):
            typer.echo(name)

    run_with_session(ctx, action)
