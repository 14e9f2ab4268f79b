"""Authenticated HTTP session against a remote Magnus server.

Wraps an httpx.AsyncClient with login, session negotiation, the query
endpoints and the object-explorer endpoints, mapping transport and
status failures onto the MagnusError hierarchy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import sentry_sdk
from pydantic import ValidationError

from magnus_tool.core.exceptions import (
    AuthError,
    InvalidCredentials,
    MagnusError,
    NegotiationError,
    NetworkError,
    ProtocolError,
    QueryExecutionError,
    RemoteRequestError,
    TimeoutError,
)
from magnus_tool.core.logging import get_logger
from magnus_tool.core.models import ObjectExplorerNode, QueryProgress, ServerDetails

LOGIN_PATH = "/api/Auth/Login"
DEFAULT_API_PREFIX = "/api/TriumphTech/Magnus"
DEFAULT_COOKIE_NAME = ".ROCK"
# Bounds pathological hangs only; long queries are driven by polling.
DEFAULT_REQUEST_TIMEOUT = 60 * 60.0

_SUCCESS_CODES = (200, 204)


@dataclass
class SessionSettings:
    api_prefix: str = DEFAULT_API_PREFIX
    cookie_name: str = DEFAULT_COOKIE_NAME
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    transport: httpx.AsyncBaseTransport | None = None


def normalize_keys(value: Any) -> Any:
    """Lowercase the first character of every object key, recursively."""
    if isinstance(value, dict):
        return {
            (key[0].lower() + key[1:] if key and key[0].isupper() else key): normalize_keys(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [normalize_keys(item) for item in value]
    return value


def normalize_address(address: str) -> str:
    """Use an explicit scheme verbatim, otherwise assume https."""
    address = address.strip()
    if "://" not in address:
        address = f"https://{address}"
    return address.rstrip("/")


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return normalize_keys(response.json())
    except ValueError:
        return None


def error_message(response: httpx.Response, fallback: str) -> str:
    """Pick the server supplied reason out of an error response."""
    body = _parse_body(response)
    if isinstance(body, dict):
        for key in ("exceptionMessage", "message"):
            text = body.get(key)
            if isinstance(text, str) and text:
                return text
    return fallback


def _transport_error(e: httpx.RequestError, url: str) -> NetworkError:
    if isinstance(e, httpx.TimeoutException):
        return TimeoutError(f"Request to {url} timed out: {e}")
    return NetworkError(f"Unable to reach {url}: {e}")


class Session:
    """One authenticated handle to a remote server.

    Instances are only created by authenticate(); the credential is
    attached to every later call and never re-derived.
    """

    def __init__(
        self,
        base_address: str,
        credential: str,
        client: httpx.AsyncClient,
        settings: SessionSettings,
    ) -> None:
        self.base_address = base_address
        self.credential = credential
        self.settings = settings
        self.server_details: ServerDetails | None = None
        self._client = client

    @classmethod
    async def authenticate(
        cls,
        address: str,
        username: str,
        password: str,
        settings: SessionSettings | None = None,
    ) -> Session:
        """Log in and negotiate connection details.

        Raises InvalidCredentials, AuthError, ProtocolError, NetworkError or
        NegotiationError. No Session is returned unless both steps succeed.
        """
        log = get_logger(__name__)
        settings = settings or SessionSettings()
        base_address = normalize_address(address)
        client = httpx.AsyncClient(
            base_url=base_address,
            timeout=settings.request_timeout,
            transport=settings.transport,
            headers={"Content-Type": "application/json"},
        )

        try:
            credential = await cls._login(client, base_address, username, password, settings)
            # The credential travels in an explicit header from here on.
            client.cookies.clear()
            session = cls(base_address, credential, client, settings)
            await session._negotiate()
        except BaseException:
            await client.aclose()
            raise

        log.debug(
            "session established",
            server=base_address,
            database=session.server_details.database_name if session.server_details else None,
        )
        return session

    @staticmethod
    async def _login(
        client: httpx.AsyncClient,
        base_address: str,
        username: str,
        password: str,
        settings: SessionSettings,
    ) -> str:
        log = get_logger(__name__)
        with sentry_sdk.start_span(op="http.client", description=f"POST {LOGIN_PATH}"):
            try:
                response = await client.post(
                    LOGIN_PATH, json={"username": username, "password": password}
                )
            except httpx.RequestError as e:
                log.error("login transport failure", server=base_address, error=str(e))
                raise _transport_error(e, base_address) from e

        if response.status_code == 401:
            log.warning("login rejected", server=base_address, user=username)
            raise InvalidCredentials("Invalid username or password.")
        if response.status_code not in _SUCCESS_CODES:
            raise AuthError(
                error_message(response, "Unable to login, unknown error occurred.")
            )

        prefix = f"{settings.cookie_name}="
        for cookie in response.headers.get_list("set-cookie"):
            if cookie.startswith(prefix):
                return cookie.split(";", 1)[0]

        raise ProtocolError("Invalid response received from the server.")

    async def _negotiate(self) -> None:
        try:
            data = await self._request("POST", "/Sql/Connect", json={})
        except MagnusError as e:
            raise NegotiationError(f"Unable to negotiate connection details: {e.message}") from e

        if not isinstance(data, dict):
            raise NegotiationError("Invalid connection details received from the server.")
        try:
            self.server_details = ServerDetails.model_validate(data)
        except ValidationError as e:
            raise NegotiationError("Invalid connection details received from the server.") from e

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        error_class: type[RemoteRequestError] = RemoteRequestError,
        fallback: str = "Request failed.",
    ) -> Any:
        """Issue an authenticated call under the API prefix.

        Returns the key-normalized JSON body, or None for an empty body.
        """
        log = get_logger(__name__)
        url = f"{self.settings.api_prefix}{path}"
        headers = {"Cookie": self.credential}

        with sentry_sdk.start_span(op="http.client", description=f"{method} {url}") as span:
            try:
                response = await self._client.request(method, url, json=json, headers=headers)
            except httpx.RequestError as e:
                span.set_status("unavailable")
                log.error("request failed", method=method, url=url, error=str(e))
                raise _transport_error(e, self.base_address) from e

            span.set_data("status_code", response.status_code)
            if response.status_code not in _SUCCESS_CODES:
                span.set_status("internal_error")
                message = error_message(response, fallback)
                log.error(
                    "server returned error",
                    method=method,
                    url=url,
                    status=response.status_code,
                    error=message,
                )
                raise error_class(message, status_code=response.status_code)

        return _parse_body(response)

    async def _request_progress(self, method: str, path: str, json: Any = None) -> QueryProgress:
        data = await self._request(method, path, json=json, error_class=QueryExecutionError)
        if not isinstance(data, dict):
            raise ProtocolError("Invalid query status received from the server.")
        try:
            return QueryProgress.model_validate(data)
        except ValidationError as e:
            raise ProtocolError("Invalid query status received from the server.") from e

    async def execute_query(self, query_text: str) -> QueryProgress:
        """Submit query text; the response carries the server-assigned identifier."""
        return await self._request_progress("POST", "/Sql/ExecuteQuery", json={"query": query_text})

    async def get_query_status(self, identifier: str) -> QueryProgress:
        return await self._request_progress("GET", f"/Sql/Status/{identifier}")

    async def cancel_query(self, identifier: str) -> None:
        """Ask the server to stop an execution. The response body is ignored."""
        await self._request("DELETE", f"/Sql/Cancel/{identifier}")

    async def get_child_nodes(self, node_id: str | None = None) -> list[ObjectExplorerNode]:
        data = await self._request("POST", "/Sql/ObjectExplorerNodes", json={"nodeId": node_id})
        nodes = data.get("nodes") if isinstance(data, dict) else None
        try:
            return [ObjectExplorerNode.model_validate(n) for n in nodes or []]
        except ValidationError as e:
            raise ProtocolError("Invalid object explorer nodes received from the server.") from e

    async def get_column_names(self, table_name: str) -> list[str]:
        data = await self._request("POST", "/Sql/ColumnNames", json={"tableName": table_name})
        columns = data.get("columns") if isinstance(data, dict) else None
        return [str(c) for c in columns or []]

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> Session:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
