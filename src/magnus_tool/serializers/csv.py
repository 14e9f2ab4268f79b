"""Delimited-text serializer. Streams one line per row to disk."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import aiofiles

from magnus_tool.core.exceptions import QueryStateError
from magnus_tool.core.formatting import format_cell_value
from magnus_tool.serializers.base import registry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from aiofiles.threadpool.binary import AsyncBufferedIOBase

    from magnus_tool.core.models import QueryColumn, QueryResultSet, SaveResultsRequest

NULL_TEXT = "NULL"

_ENCODINGS: dict[str, str] = {
    "ascii": "ascii",
    "utf8": "utf-8",
    "utf-8": "utf-8",
    "utf16le": "utf-16-le",
    "utf-16le": "utf-16-le",
}


def resolve_encoding(name: str | None) -> str:
    """Map a requested encoding onto a codec name; unknown names fall back to UTF-8."""
    return _ENCODINGS.get((name or "").lower(), "utf-8")


def encode_field(value: str | None, delimiter: str = ",", quote: str = '"') -> str:
    """Quote a field when it would otherwise be ambiguous.

    A field is wrapped in quote characters, with inner quotes doubled, if
    it contains the delimiter, CR, LF or the quote character, or starts or
    ends with a space or tab. None becomes an unquoted NULL.
    """
    if value is None:
        return NULL_TEXT

    needs_wrap = (
        delimiter in value
        or "\r" in value
        or "\n" in value
        or quote in value
        or value.startswith((" ", "\t"))
        or value.endswith((" ", "\t"))
    )
    if not needs_wrap:
        return value
    escaped = value.replace(quote, quote + quote)
    return f"{quote}{escaped}{quote}"


class CSVSerializer:
    def __init__(self, request: SaveResultsRequest) -> None:
        self.file_path = request.file_path
        self.include_headers = request.include_headers
        self.delimiter = request.delimiter or ","
        self.line_separator = request.line_separator
        self.quote = request.text_identifier or '"'
        self.encoding = resolve_encoding(request.encoding)
        self._file: AsyncBufferedIOBase | None = None

    async def open(self, result_set: QueryResultSet) -> None:
        self._file = await aiofiles.open(self.file_path, "wb")
        if self.include_headers:
            await self._write_line([c.name for c in result_set.columns])

    async def write_row(self, columns: Sequence[QueryColumn], row: Sequence[Any]) -> None:
        fields = [
            None if value is None else format_cell_value(column.type, value)
            for column, value in zip(columns, row, strict=False)
        ]
        await self._write_line(fields)

    async def close(self) -> None:
        if self._file is not None:
            await self._file.close()
            self._file = None

    async def _write_line(self, fields: Sequence[str | None]) -> None:
        if self._file is None:
            raise QueryStateError("Export file is not open.")
        line = self.delimiter.join(
            encode_field(f, self.delimiter, self.quote) for f in fields
        )
        await self._file.write((line + self.line_separator).encode(self.encoding, "replace"))


registry.register("csv", CSVSerializer)
