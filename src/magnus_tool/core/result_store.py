"""In-memory store for the result sets of a completed query.

Supports random-access row windows so a viewer can page through large
results without copying them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from magnus_tool.core.exceptions import IndexOutOfRange
from magnus_tool.core.formatting import format_cell_value
from magnus_tool.core.models import DbCellValue, ResultSetSummary, ResultSubset

if TYPE_CHECKING:
    from collections.abc import Sequence

    from magnus_tool.core.models import QueryColumn, QueryResultSet


def format_row(columns: Sequence[QueryColumn], row: Sequence[Any]) -> list[DbCellValue]:
    """Format a raw row into display cells; None becomes a null-flagged empty cell."""
    cells: list[DbCellValue] = []
    for column, value in zip(columns, row, strict=False):
        if value is None:
            cells.append(
                DbCellValue(display_value="", is_null=True, invariant_culture_display_value="")
            )
        else:
            text = format_cell_value(column.type, value)
            cells.append(
                DbCellValue(display_value=text, is_null=False, invariant_culture_display_value=text)
            )
    return cells


class ResultStore:
    """Holds result sets in server order. Read-only once constructed.

    Index rule, applied everywhere: a result set index is valid when
    ``0 <= index < len(result_sets)``.
    """

    def __init__(self, result_sets: Sequence[QueryResultSet]) -> None:
        self._result_sets = list(result_sets)

    def __len__(self) -> int:
        return len(self._result_sets)

    @property
    def result_sets(self) -> list[QueryResultSet]:
        return list(self._result_sets)

    def get_summaries(self) -> list[ResultSetSummary]:
        return [
            ResultSetSummary(
                id=summary_id,
                row_count=result_set.row_count,
                columns=list(result_set.columns),
            )
            for summary_id, result_set in enumerate(self._result_sets)
        ]

    def get_result_set(self, result_set_index: int) -> QueryResultSet:
        if not 0 <= result_set_index < len(self._result_sets):
            msg = (
                f"Result set {result_set_index} was not found "
                f"({len(self._result_sets)} available)."
            )
            raise IndexOutOfRange(msg)
        return self._result_sets[result_set_index]

    def get_rows(self, result_set_index: int, start_row: int, count: int) -> ResultSubset:
        """Return formatted rows ``[start_row, start_row + count)`` of one result set."""
        result_set = self.get_result_set(result_set_index)

        if start_row < 0 or count < 0 or start_row + count > result_set.row_count:
            msg = (
                f"Requested rows {start_row}..{start_row + count} do not exist "
                f"(result set has {result_set.row_count} rows)."
            )
            raise IndexOutOfRange(msg)

        rows = [
            format_row(result_set.columns, row)
            for row in result_set.rows[start_row : start_row + count]
        ]
        return ResultSubset(row_count=count, rows=rows)
