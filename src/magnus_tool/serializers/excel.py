"""Spreadsheet serializer built on openpyxl. The workbook is saved on close."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from magnus_tool.core.formatting import format_cell_value, parse_timestamp
from magnus_tool.core.models import ColumnType
from magnus_tool.serializers.base import registry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from magnus_tool.core.models import QueryColumn, QueryResultSet, SaveResultsRequest

SHEET_TITLE = "Query Results"


def _cell_value(column: QueryColumn, value: Any) -> Any:
    if value is None:
        return None
    if column.type == ColumnType.DATETIME:
        parsed = parse_timestamp(value)
        if parsed is not None:
            # Spreadsheet cells carry no zone.
            return parsed.replace(tzinfo=None)
    if isinstance(value, (bool, int, float, datetime)):
        return value
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return format_cell_value(column.type, value)


class ExcelSerializer:
    def __init__(self, request: SaveResultsRequest) -> None:
        self.file_path = request.file_path
        now = datetime.now()
        self.workbook = Workbook()
        self.workbook.properties.created = now
        self.workbook.properties.modified = now
        self.worksheet = self.workbook.active
        self.worksheet.title = SHEET_TITLE

    async def open(self, result_set: QueryResultSet) -> None:
        self.worksheet.append([c.name for c in result_set.columns])

    async def write_row(self, columns: Sequence[QueryColumn], row: Sequence[Any]) -> None:
        self.worksheet.append(
            [_cell_value(column, value) for column, value in zip(columns, row, strict=False)]
        )

    async def close(self) -> None:
        await asyncio.to_thread(self.workbook.save, self.file_path)


registry.register("excel", ExcelSerializer)
registry.register("xlsx", ExcelSerializer)
