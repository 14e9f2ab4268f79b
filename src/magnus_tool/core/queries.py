"""Active query handles and result access keyed by connection owner URI.

QueryManager is the surface an editor integration talks to: it runs a
query for an owner, relays progress through event channels, and serves
row windows and exports from the owner's latest completed query.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from magnus_tool.core.events import EventChannel
from magnus_tool.core.exceptions import MagnusError, QueryStateError, UnsupportedFormat
from magnus_tool.core.formatting import format_elapsed
from magnus_tool.core.logging import get_logger
from magnus_tool.core.models import (
    BatchEvent,
    BatchSummary,
    QueryCompleteEvent,
    QueryMessageEvent,
    ResultSetAvailableEvent,
    SaveResultsResult,
)
from magnus_tool.core.query_runner import DEFAULT_POLL_INTERVAL, QueryRunner

if TYPE_CHECKING:
    from magnus_tool.core.connections import ConnectionManager
    from magnus_tool.core.models import (
        QueryMessage,
        ResultSetSummary,
        ResultSubset,
        SaveResultsRequest,
    )

CANCELLED_MESSAGE = "Cancelled the query."
UNSUPPORTED_FORMAT_MESSAGE = "Format is not supported."


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class QueryManager:
    """At most one active QueryRunner per owner URI.

    Starting a query for an owner first cancels and discards the previous
    handle, so results are always replaced wholesale.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.connections = connections
        self.poll_interval = poll_interval
        self.on_batch_start: EventChannel[BatchEvent] = EventChannel("batch_start")
        self.on_message: EventChannel[QueryMessageEvent] = EventChannel("message")
        self.on_result_set_available: EventChannel[ResultSetAvailableEvent] = EventChannel(
            "result_set_available"
        )
        self.on_batch_complete: EventChannel[BatchEvent] = EventChannel("batch_complete")
        self.on_query_complete: EventChannel[QueryCompleteEvent] = EventChannel("query_complete")
        self._active: dict[str, QueryRunner] = {}

    def get_runner(self, owner_uri: str) -> QueryRunner | None:
        return self._active.get(owner_uri)

    def connection_uri_changed(self, new_uri: str, old_uri: str) -> None:
        self.connections.rename_uri(new_uri, old_uri)
        runner = self._active.pop(old_uri, None)
        if runner is not None:
            self._active[new_uri] = runner

    async def run_query(self, owner_uri: str, query_text: str) -> QueryRunner:
        """Execute query_text for owner_uri and relay its progress.

        Server and network failures are reported as one error message and a
        batch with has_error set; they are not raised. Raises
        NotConnectedError if the owner has no session.
        """
        log = get_logger(__name__)
        session = self.connections.require_session(owner_uri)
        self._retire(owner_uri)

        runner = QueryRunner(session, query_text, poll_interval=self.poll_interval)
        self._active[owner_uri] = runner

        batch = BatchSummary(id=0, execution_start=_now_iso())
        self.on_batch_start.emit(BatchEvent(owner_uri=owner_uri, batch=batch))

        def forward(messages: list[QueryMessage]) -> None:
            for message in messages:
                self.on_message.emit(
                    QueryMessageEvent(
                        owner_uri=owner_uri,
                        batch_id=batch.id,
                        is_error=message.is_error,
                        message=message.text,
                    )
                )

        try:
            progress = await runner.execute(forward)
        except MagnusError as e:
            if self._active.get(owner_uri) is not runner:
                return runner
            log.warning("query failed", owner_uri=owner_uri, error=e.message)
            batch.has_error = True
            self.on_message.emit(
                QueryMessageEvent(
                    owner_uri=owner_uri, batch_id=batch.id, is_error=True, message=e.message
                )
            )
        else:
            if progress is None or self._active.get(owner_uri) is not runner:
                return runner
            summaries = runner.result_store.get_summaries()
            for summary in summaries:
                self.on_result_set_available.emit(
                    ResultSetAvailableEvent(owner_uri=owner_uri, summary=summary)
                )
            batch.result_set_summaries = summaries

        batch.execution_end = _now_iso()
        batch.execution_elapsed = format_elapsed(runner.duration_millis)
        self.on_batch_complete.emit(BatchEvent(owner_uri=owner_uri, batch=batch))
        self.on_query_complete.emit(QueryCompleteEvent(owner_uri=owner_uri, batch_summaries=[batch]))
        return runner

    def cancel_query(self, owner_uri: str) -> str:
        """Cancel and retire the owner's query; reported as an empty completion."""
        self._retire(owner_uri)
        self.on_query_complete.emit(QueryCompleteEvent(owner_uri=owner_uri, batch_summaries=[]))
        return CANCELLED_MESSAGE

    def get_summaries(self, owner_uri: str) -> list[ResultSetSummary]:
        return self._require(owner_uri).result_store.get_summaries()

    def get_query_rows(
        self, owner_uri: str, result_set_index: int, start_row: int, count: int
    ) -> ResultSubset:
        return self._require(owner_uri).result_store.get_rows(result_set_index, start_row, count)

    def dispose_query(self, owner_uri: str) -> None:
        self._retire(owner_uri)

    async def save_results(self, request: SaveResultsRequest) -> SaveResultsResult:
        """Export one result set through the serializer for its format tag.

        An unknown tag is reported in the result messages; nothing is written.
        """
        # Import here to trigger registry population from serializer modules.
        import magnus_tool.serializers  # noqa: F401
        from magnus_tool.serializers.base import registry, write_result_set

        log = get_logger(__name__)
        result_set = self._require(request.owner_uri).result_store.get_result_set(
            request.result_set_index
        )

        try:
            serializer = registry.get(request.result_format, request)
        except UnsupportedFormat:
            log.info("export format not supported", format=request.result_format)
            return SaveResultsResult(messages=UNSUPPORTED_FORMAT_MESSAGE)

        await write_result_set(serializer, result_set)
        log.debug(
            "results saved",
            path=request.file_path,
            format=request.result_format,
            rows=result_set.row_count,
        )
        return SaveResultsResult(messages="")

    async def shutdown(self) -> None:
        """Cancel every active query and wait for server cancels to go out."""
        runners = list(self._active.values())
        self._active.clear()
        for runner in runners:
            runner.cancel()
        for runner in runners:
            await runner.flush()

    def _require(self, owner_uri: str) -> QueryRunner:
        runner = self._active.get(owner_uri)
        if runner is None:
            raise QueryStateError("Query was not found.")
        return runner

    def _retire(self, owner_uri: str) -> None:
        runner = self._active.pop(owner_uri, None)
        if runner is not None:
            runner.cancel()
