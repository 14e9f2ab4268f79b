"""Submit/poll/cancel protocol for one remote query execution.

The server accepts a query, assigns it an identifier and keeps running
it after the submit request returns. The runner then polls the status
endpoint, one request at a time, forwarding each batch of new messages
to the caller before issuing the next poll, until the server reports the
execution complete.
"""

from __future__ import annotations

import asyncio
import time
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import sentry_sdk

from magnus_tool.core.exceptions import MagnusError, ProtocolError, QueryStateError
from magnus_tool.core.logging import get_logger
from magnus_tool.core.result_store import ResultStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from magnus_tool.core.models import QueryMessage, QueryProgress
    from magnus_tool.core.session import Session

    MessageCallback = Callable[[list[QueryMessage]], None]

DEFAULT_POLL_INTERVAL = 0.5


class QueryState(StrEnum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


_TERMINAL_STATES = (QueryState.COMPLETED, QueryState.CANCELLED, QueryState.FAILED)


class QueryRunner:
    """Drives one query from submission to a terminal state.

    execute() is the driving loop; cancel() may be called at any time
    from any coroutine on the same event loop. Once cancel() returns no
    message callback fires and no results are stored.
    """

    def __init__(
        self,
        session: Session,
        query_text: str,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.query_text = query_text
        self.poll_interval = poll_interval
        self.state = QueryState.PENDING
        self.identifier: str | None = None
        self.messages: list[QueryMessage] = []
        self.error: MagnusError | None = None
        self._session = session
        self._cancelled = False
        self._cancel_sent = False
        self._inflight: asyncio.Future[Any] | None = None
        self._background: set[asyncio.Task[None]] = set()
        self._started_at: float | None = None
        self._finished_at: float | None = None
        self._server_duration: float | None = None
        self._result_store: ResultStore | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def duration_millis(self) -> float:
        """Server-reported execution time when known, else client wall time."""
        if self._server_duration is not None:
            return self._server_duration
        if self._started_at is None:
            return 0.0
        end = self._finished_at if self._finished_at is not None else time.monotonic()
        return (end - self._started_at) * 1000

    @property
    def result_store(self) -> ResultStore:
        if self._result_store is None or self.state != QueryState.COMPLETED:
            msg = f"Query has not completed (state: {self.state})."
            raise QueryStateError(msg)
        return self._result_store

    async def execute(self, on_message: MessageCallback | None = None) -> QueryProgress | None:
        """Run the query to completion.

        Returns the final progress, or None if the query was cancelled.
        Raises QueryExecutionError, NetworkError or ProtocolError on failure,
        after moving to the FAILED state.
        """
        log = get_logger(__name__)
        if self._cancelled:
            return self._finish_cancelled()
        if self.state != QueryState.PENDING:
            msg = f"Query cannot be executed from state {self.state}."
            raise QueryStateError(msg)

        self._started_at = time.monotonic()
        sql_normalized = " ".join(self.query_text.split())
        log.debug("submitting query", sql=sql_normalized)
        with sentry_sdk.start_span(op="db.query", description=sql_normalized[:100]) as span:
            try:
                # Submit is never aborted locally: its response carries the
                # identifier needed to cancel the execution on the server.
                progress = await self._call(
                    self._session.execute_query(self.query_text), abortable=False
                )
                self.identifier = progress.identifier
                if self._cancelled:
                    # Cancel raced ahead of the submit response.
                    self._send_cancel()
                    return self._finish_cancelled()
                if not progress.is_complete and not progress.identifier:
                    raise ProtocolError("Server did not assign an identifier to the query.")

                self.state = QueryState.SUBMITTED
                log.debug("query submitted", identifier=self.identifier)

                while True:
                    self._deliver(progress, on_message)
                    if self._cancelled:
                        return self._finish_cancelled()
                    if progress.is_complete:
                        break

                    self.state = QueryState.POLLING
                    if self.poll_interval > 0:
                        await self._call(asyncio.sleep(self.poll_interval))
                        if self._cancelled:
                            return self._finish_cancelled()

                    if self.identifier is None:
                        raise ProtocolError("Server did not assign an identifier to the query.")
                    progress = await self._call(self._session.get_query_status(self.identifier))
                    if progress is None or self._cancelled:
                        return self._finish_cancelled()

            except MagnusError as e:
                if self._cancelled:
                    return self._finish_cancelled()
                self.error = e
                self.state = QueryState.FAILED
                self._finished_at = time.monotonic()
                span.set_status("internal_error")
                log.error(
                    "query failed",
                    identifier=self.identifier,
                    error=e.message,
                    duration_ms=f"{self.duration_millis:.1f}",
                )
                raise
            except asyncio.CancelledError:
                self.cancel()
                self._finished_at = time.monotonic()
                raise

            self._complete(progress)
            span.set_data("result_sets", len(self._result_store or ()))
            span.set_data("duration_ms", self.duration_millis)
            log.debug(
                "query complete",
                identifier=self.identifier,
                result_sets=len(self._result_store or ()),
                duration_ms=f"{self.duration_millis:.1f}",
            )
            return progress

    def cancel(self) -> None:
        """Cancel locally, abort the in-flight call and ask the server to stop.

        Idempotent. A no-op once the query has completed or failed.
        """
        if self._cancelled or self.state in (QueryState.COMPLETED, QueryState.FAILED):
            return

        get_logger(__name__).debug("cancelling query", identifier=self.identifier)
        self._cancelled = True
        self.state = QueryState.CANCELLED
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._send_cancel()

    async def flush(self) -> None:
        """Wait for outstanding server cancel requests to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _call(self, awaitable: Awaitable[Any], abortable: bool = True) -> Any:
        """Await one step as a task; None means cancel() aborted it."""
        task = asyncio.ensure_future(awaitable)
        if abortable:
            self._inflight = task
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            outer_cancelled = current is not None and current.cancelling() > 0
            if self._cancelled and task.cancelled() and not outer_cancelled:
                return None
            raise
        finally:
            self._inflight = None

    def _deliver(self, progress: QueryProgress, on_message: MessageCallback | None) -> None:
        if not progress.messages:
            return
        batch = list(progress.messages)
        self.messages.extend(batch)
        if on_message is not None:
            on_message(batch)

    def _complete(self, progress: QueryProgress) -> None:
        self._server_duration = progress.duration_millis
        self._finished_at = time.monotonic()
        self._result_store = ResultStore(progress.result_sets or [])
        self.state = QueryState.COMPLETED

    def _finish_cancelled(self) -> None:
        self.state = QueryState.CANCELLED
        self._finished_at = time.monotonic()
        return None

    def _send_cancel(self) -> None:
        if self.identifier is None or self._cancel_sent:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            get_logger(__name__).warning(
                "no event loop, server cancel skipped", identifier=self.identifier
            )
            return

        self._cancel_sent = True
        task = loop.create_task(self._cancel_remote(self.identifier))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _cancel_remote(self, identifier: str) -> None:
        log = get_logger(__name__)
        try:
            await self._session.cancel_query(identifier)
        except MagnusError as e:
            log.warning("server cancel failed", identifier=identifier, error=e.message)
        else:
            log.debug("server cancel sent", identifier=identifier)
