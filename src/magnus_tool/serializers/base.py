"""Export serializer protocol and registry."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from magnus_tool.core.exceptions import UnsupportedFormat

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from magnus_tool.core.models import QueryColumn, QueryResultSet, SaveResultsRequest


@runtime_checkable
class ExportSerializer(Protocol):
    """Protocol for export serializers.

    open() is called once, then write_row() for every row in order, then
    close(), which finalizes and releases the destination file.
    """

    async def open(self, result_set: QueryResultSet) -> None: ...

    async def write_row(self, columns: Sequence[QueryColumn], row: Sequence[Any]) -> None: ...

    async def close(self) -> None: ...


class SerializerRegistry:
    """Registry for looking up serializers by format tag."""

    def __init__(self) -> None:
        self._serializers: dict[str, Callable[[SaveResultsRequest], ExportSerializer]] = {}

    def register(
        self, name: str, factory: Callable[[SaveResultsRequest], ExportSerializer]
    ) -> None:
        self._serializers[name] = factory

    def get(self, name: str, request: SaveResultsRequest) -> ExportSerializer:
        """Return a serializer instance for the format tag.

        Raises UnsupportedFormat if the tag is not registered.
        """
        key = name.lower()
        if key not in self._serializers:
            available = ", ".join(sorted(self._serializers))
            msg = f"Unknown format {name!r}. Available: {available}"
            raise UnsupportedFormat(msg)
        return self._serializers[key](request)

    @property
    def available(self) -> list[str]:
        return sorted(self._serializers)


async def write_result_set(serializer: ExportSerializer, result_set: QueryResultSet) -> None:
    """Stream every row of result_set through serializer."""
    await serializer.open(result_set)
    try:
        for row in result_set.rows:
            await serializer.write_row(result_set.columns, row)
    finally:
        await serializer.close()


# Global registry instance populated by serializer modules.
registry = SerializerRegistry()
