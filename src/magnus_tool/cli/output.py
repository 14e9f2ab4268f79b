"""Terminal rendering of messages, result sets and explorer nodes."""

from __future__ import annotations

import shutil
import sys
from enum import StrEnum
from io import StringIO
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.table import Table

from magnus_tool.core.explorer import is_leaf
from magnus_tool.core.result_store import format_row

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from magnus_tool.core.models import ObjectExplorerNode, QueryMessage, QueryResultSet

_NO_RESULTS = "No results"
_NULL_MARKER = "NULL"


class ExportFormat(StrEnum):
    CSV = "csv"
    JSON = "json"
    EXCEL = "excel"


def _truncate(value: str, width: int) -> str:
    if len(value) <= width:
        return value
    return value[: width - 1] + "…"


def _render(table: Table) -> str:
    buf = StringIO()
    term_width = shutil.get_terminal_size((120, 24)).columns
    console = Console(file=buf, force_terminal=sys.stdout.isatty(), width=term_width)
    console.print(table)
    return buf.getvalue().rstrip("\n")


def render_result_set(result_set: QueryResultSet, width: int = 40) -> str:
    if not result_set.rows:
        return _NO_RESULTS

    table = Table(show_edge=True, pad_edge=True)
    for col in result_set.columns:
        table.add_column(col.name, no_wrap=True)

    for row in result_set.rows:
        table.add_row(
            *(
                _NULL_MARKER if cell.is_null else _truncate(cell.display_value, width)
                for cell in format_row(result_set.columns, row)
            )
        )
    return _render(table)


def render_nodes(nodes: Sequence[ObjectExplorerNode]) -> str:
    if not nodes:
        return _NO_RESULTS

    table = Table(show_edge=True, pad_edge=True)
    for name in ("id", "type", "name", "leaf"):
        table.add_column(name, no_wrap=True)
    for node in nodes:
        table.add_row(
            node.id,
            node.type.name.lower(),
            node.name,
            "yes" if is_leaf(node.type) else "no",
        )
    return _render(table)


def write_messages(messages: Iterable[QueryMessage]) -> None:
    """Echo server messages to stderr so stdout stays clean for data."""
    for message in messages:
        prefix = "Error: " if message.is_error else ""
        typer.echo(f"{prefix}{message.text}", err=True)


def write_result_sets(result_sets: Sequence[QueryResultSet], width: int = 40) -> None:
    for index, result_set in enumerate(result_sets):
        if index:
            sys.stdout.write("\n")
        sys.stdout.write(render_result_set(result_set, width) + "\n")
