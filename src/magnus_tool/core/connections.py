"""Registry of authenticated sessions keyed by connection owner URI."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from magnus_tool.core.events import EventChannel
from magnus_tool.core.exceptions import MagnusError, NotConnectedError
from magnus_tool.core.logging import get_logger
from magnus_tool.core.models import ConnectionCompleteEvent, ConnectionSummary
from magnus_tool.core.session import Session

if TYPE_CHECKING:
    from magnus_tool.core.session import SessionSettings


@dataclass
class _Connection:
    session: Session | None = None
    cancelled: bool = False


class ConnectionManager:
    """Owns every Session; one per owner URI.

    A connect in progress is registered immediately so it can be
    cancelled; it only gains a Session once login and negotiation
    both succeed.
    """

    def __init__(self, settings: SessionSettings | None = None) -> None:
        self.settings = settings
        self.on_connection_complete: EventChannel[ConnectionCompleteEvent] = EventChannel(
            "connection_complete"
        )
        self._connections: dict[str, _Connection] = {}

    def __contains__(self, owner_uri: str) -> bool:
        return self.get_session(owner_uri) is not None

    async def connect(self, owner_uri: str, server: str, user: str, password: str) -> bool:
        """Authenticate and register a Session for owner_uri.

        Emits on_connection_complete with either the server details or the
        error message. Returns False on failure or if cancelled meanwhile.
        """
        log = get_logger(__name__)
        connection = _Connection()
        previous = self._connections.get(owner_uri)
        self._connections[owner_uri] = connection
        if previous is not None:
            # A connect still in flight for this key must drop its session.
            previous.cancelled = True
            if previous.session is not None:
                await previous.session.close()

        try:
            session = await Session.authenticate(server, user, password, self.settings)
        except MagnusError as e:
            if self._connections.get(owner_uri) is connection:
                del self._connections[owner_uri]
            log.warning("connect failed", owner_uri=owner_uri, server=server, error=e.message)
            self.on_connection_complete.emit(
                ConnectionCompleteEvent(owner_uri=owner_uri, error_message=e.message)
            )
            return False

        if connection.cancelled:
            log.debug("connect cancelled, discarding session", owner_uri=owner_uri)
            await session.close()
            return False

        connection.session = session
        details = session.server_details
        self.on_connection_complete.emit(
            ConnectionCompleteEvent(
                owner_uri=owner_uri,
                connection_id=str(uuid.uuid4()),
                summary=ConnectionSummary(
                    server_name=server,
                    database_name=details.database_name if details else "",
                    user_name=user,
                ),
                server_details=details,
            )
        )
        return True

    def cancel_connect(self, owner_uri: str) -> bool:
        connection = self._connections.pop(owner_uri, None)
        if connection is not None:
            connection.cancelled = True
        return True

    async def disconnect(self, owner_uri: str) -> bool:
        connection = self._connections.pop(owner_uri, None)
        if connection is not None:
            connection.cancelled = True
            if connection.session is not None:
                await connection.session.close()
        return True

    def rename_uri(self, new_uri: str, old_uri: str) -> None:
        """Re-key a connection without touching its Session."""
        connection = self._connections.pop(old_uri, None)
        if connection is None:
            return
        self._connections[new_uri] = connection

    def get_session(self, owner_uri: str) -> Session | None:
        connection = self._connections.get(owner_uri)
        return connection.session if connection is not None else None

    def require_session(self, owner_uri: str) -> Session:
        session = self.get_session(owner_uri)
        if session is None:
            raise NotConnectedError("Not connected to server.")
        return session

    def list_databases(self, owner_uri: str) -> list[str]:
        session = self.get_session(owner_uri)
        if session is None or session.server_details is None:
            return []
        return [session.server_details.database_name]

    async def close_all(self) -> None:
        connections = list(self._connections.values())
        self._connections.clear()
        for connection in connections:
            connection.cancelled = True
            if connection.session is not None:
                await connection.session.close()
