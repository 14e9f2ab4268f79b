"""Object explorer helpers: node classification and select-top query text."""

from __future__ import annotations

from typing import TYPE_CHECKING

from magnus_tool.core.exceptions import InputError
from magnus_tool.core.models import NodeType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from magnus_tool.core.session import Session

DEFAULT_SELECT_LIMIT = 1000

_FOLDER_TYPES = (NodeType.DATABASES_FOLDER, NodeType.TABLES_FOLDER, NodeType.COLUMNS_FOLDER)

_ICONS: dict[NodeType, str] = {
    NodeType.DATABASES_FOLDER: "folder",
    NodeType.TABLES_FOLDER: "folder",
    NodeType.COLUMNS_FOLDER: "folder",
    NodeType.DATABASE: "database",
    NodeType.TABLE: "table",
    NodeType.COLUMN: "column",
}


def is_leaf(node_type: NodeType) -> bool:
    """Columns are the only nodes without children."""
    return node_type not in (*_FOLDER_TYPES, NodeType.DATABASE, NodeType.TABLE)


def node_icon(node_type: NodeType) -> str | None:
    return _ICONS.get(node_type)


def quote_identifier(name: str) -> str:
    return "[" + name.replace("]", "]]") + "]"


def build_select_top_query(
    table_name: str, columns: Sequence[str], limit: int = DEFAULT_SELECT_LIMIT
) -> str:
    """Build a ``SELECT TOP`` statement listing every column on its own line."""
    if not columns:
        msg = f"Table {table_name!r} has no columns."
        raise InputError(msg)
    column_list = "\n    ,".join(quote_identifier(c) for c in columns)
    return f"SELECT TOP {limit}\n    {column_list}\nFROM {quote_identifier(table_name)}"


async def select_top_query(
    session: Session, table_name: str, limit: int = DEFAULT_SELECT_LIMIT
) -> str:
    columns = await session.get_column_names(table_name)
    return build_select_top_query(table_name, columns, limit)
