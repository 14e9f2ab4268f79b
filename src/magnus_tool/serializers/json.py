"""JSON serializer. Collects every record and writes one document on close.

Rows are held in memory until close(), so this format suits the result
sizes a person exports from an editor rather than unbounded extracts.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import aiofiles

from magnus_tool.core.formatting import format_cell_value
from magnus_tool.serializers.base import registry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from magnus_tool.core.models import QueryColumn, QueryResultSet, SaveResultsRequest


class JSONSerializer:
    def __init__(self, request: SaveResultsRequest) -> None:
        self.file_path = request.file_path
        self._column_names: list[str] = []
        self._records: list[dict[str, Any]] = []
        self._opened = False

    async def open(self, result_set: QueryResultSet) -> None:
        self._column_names = [c.name for c in result_set.columns]
        self._records = []
        # Truncate up front so an unwritable destination fails before any rows.
        async with aiofiles.open(self.file_path, "w", encoding="utf-8"):
            pass
        self._opened = True

    async def write_row(self, columns: Sequence[QueryColumn], row: Sequence[Any]) -> None:
        record: dict[str, Any] = {}
        for name, column, value in zip(self._column_names, columns, row, strict=False):
            record[name] = None if value is None else format_cell_value(column.type, value)
        self._records.append(record)

    async def close(self) -> None:
        if not self._opened:
            return
        async with aiofiles.open(self.file_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(self._records, indent=2, ensure_ascii=False))
        self._opened = False
        self._records = []


registry.register("json", JSONSerializer)
