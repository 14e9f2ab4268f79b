from __future__ import annotations

import sys
from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING, Annotated

import typer

from magnus_tool.cli.commands._shared import execute_and_output, run_with_session
from magnus_tool.cli.output import ExportFormat
from magnus_tool.core.exceptions import InputError
from magnus_tool.core.exit_codes import ExitCode
from magnus_tool.core.explorer import DEFAULT_SELECT_LIMIT, select_top_query
from magnus_tool.core.models import SaveResultsRequest
from magnus_tool.core.query_source import resolve_query_source

if TYPE_CHECKING:
    from magnus_tool.core.config import ResolvedConfig
    from magnus_tool.core.session import Session


_FORMATS_BY_SUFFIX: dict[str, ExportFormat] = {
    ".csv": ExportFormat.CSV,
    ".json": ExportFormat.JSON,
    ".xlsx": ExportFormat.EXCEL,
}


def _export_request(
    output: Path | None,
    export_format: ExportFormat | None,
    headers: bool,
    delimiter: str,
    result_set: int,
) -> SaveResultsRequest | None:
    if output is None:
        return None
    fmt = export_format or _FORMATS_BY_SUFFIX.get(output.suffix.lower(), ExportFormat.CSV)
    return SaveResultsRequest(
        owner_uri="cli",
        result_set_index=result_set,
        file_path=str(output),
        result_format=fmt.value,
        include_headers=headers,
        delimiter=delimiter,
    )


OutputOption = Annotated[
    Path | None,
    typer.Option("--output", "-o", help="Export a result set to this file"),
]
ExportFormatOption = Annotated[
    ExportFormat | None,
    typer.Option("--export-format", help="Export format: csv|json|excel (default from extension)"),
]
HeadersOption = Annotated[
    bool,
    typer.Option("--headers", help="Write a header row in CSV exports"),
]
DelimiterOption = Annotated[
    str,
    typer.Option("--delimiter", help="Field delimiter for CSV exports"),
]
ResultSetOption = Annotated[
    int,
    typer.Option("--result-set", help="Index of the result set to export"),
]
WidthOption = Annotated[
    int,
    typer.Option("--width", help="Column width for table output"),
]


def query_command(
    ctx: typer.Context,
    file: Annotated[
        str | None,
        typer.Argument(help="SQL file to execute"),
    ] = None,
    execute: Annotated[
        str | None,
        typer.Option("--execute", "-e", help="Execute inline SQL query"),
    ] = None,
    output: OutputOption = None,
    export_format: ExportFormatOption = None,
    headers: HeadersOption = False,
    delimiter: DelimiterOption = ",",
    result_set: ResultSetOption = 0,
    width: WidthOption = 40,
) -> None:
    """Execute a SQL query on the remote server from file, inline (-e), or stdin."""
    try:
        is_tty = sys.stdin.isatty()
    except (ValueError, AttributeError):
        is_tty = False
    if execute is None and file is None and is_tty:
        typer.echo(ctx.get_help())
        raise typer.Exit()

    try:
        sql = resolve_query_source(inline=execute, file_path=file)
    except InputError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(ExitCode.INPUT_ERROR) from exc

    export = _export_request(output, export_format, headers, delimiter, result_set)

    async def action(session: Session, resolved: ResolvedConfig) -> None:
        await execute_and_output(session, resolved, sql, width=width, export=export)

    run_with_session(ctx, action)


def select_top_command(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of rows to select"),
    ] = DEFAULT_SELECT_LIMIT,
    print_only: Annotated[
        bool,
        typer.Option("--print", help="Print the generated query instead of running it"),
    ] = False,
    output: OutputOption = None,
    export_format: ExportFormatOption = None,
    headers: HeadersOption = False,
    delimiter: DelimiterOption = ",",
    width: WidthOption = 40,
) -> None:
    """Select the first rows of a table, listing every column explicitly."""
    export = _export_request(output, export_format, headers, delimiter, 0)

    async def action(session: Session, resolved: ResolvedConfig) -> None:
        sql = await select_top_query(session, table, limit)
        if print_only:
            typer.echo(sql)
            return
        await execute_and_output(session, resolved, sql, width=width, export=export)

    run_with_session(ctx, action)
