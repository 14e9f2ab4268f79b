"""Fake Magnus server and payload builders shared by the tests."""

import asyncio

import httpx

from magnus_tool.core.session import DEFAULT_API_PREFIX, LOGIN_PATH

SERVER = "rock.example.org"
USER = "admin"
PASSWORD = "secret"  # pragma: allowlist secret


def progress(identifier="q-1", complete=False, messages=(), result_sets=None, duration=None):
    """Build a query progress payload the way the server spells it."""
    body = {
        "Identifier": identifier,
        "IsComplete": complete,
        "Messages": [{"Message": m, "Code": 0, "Level": 0} for m in messages],
    }
    if result_sets is not None:
        body["ResultSets"] = result_sets
    if duration is not None:
        body["Duration"] = duration
    return body


def result_set(columns, rows):
    """columns is a list of (name, type) pairs."""
    return {
        "Columns": [{"Name": name, "Type": type_} for name, type_ in columns],
        "Rows": rows,
    }


class FakeMagnusServer:
    """In-process stand-in for the remote API, served through httpx.MockTransport.

    Status responses are consumed in order. Setting one of the *_gate
    attributes to an asyncio.Event holds the matching request until it is set.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.login_status = 200
        self.login_body: dict = {}
        self.login_cookies = [".ROCK=token123; path=/; HttpOnly"]
        self.connect_status = 200
        self.connect_gate: asyncio.Event | None = None
        self.connect_body: dict = {
            "DatabaseName": "RockDB",
            "OSVersion": "Windows Server 2022",
            "RockVersion": "16.1",
            "SqlEdition": "Standard",
            "SqlVersion": "15.0",
        }
        self.submit_status = 200
        self.submit_body: dict = progress()
        self.submit_gate: asyncio.Event | None = None
        self.status_bodies: list[dict] = []
        self.status_gate: asyncio.Event | None = None
        self.status_error: Exception | None = None
        self.cancel_status = 200
        self.nodes: list[dict] = []
        self.columns: list[str] = []
        self.transport_error: Exception | None = None

    def paths(self):
        return [r.url.path.removeprefix(DEFAULT_API_PREFIX) for r in self.requests]

    def count(self, prefix):
        return sum(1 for p in self.paths() if p.startswith(prefix))

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.transport_error is not None:
            raise self.transport_error

        path = request.url.path
        if path == LOGIN_PATH:
            headers = [("set-cookie", c) for c in self.login_cookies]
            return httpx.Response(self.login_status, headers=headers, json=self.login_body)

        path = path.removeprefix(DEFAULT_API_PREFIX)
        if path == "/Sql/Connect":
            if self.connect_gate is not None:
                await self.connect_gate.wait()
            return httpx.Response(self.connect_status, json=self.connect_body)
        if path == "/Sql/ExecuteQuery":
            if self.submit_gate is not None:
                await self.submit_gate.wait()
            return httpx.Response(self.submit_status, json=self.submit_body)
        if path.startswith("/Sql/Status/"):
            if self.status_gate is not None:
                await self.status_gate.wait()
            if self.status_error is not None:
                raise self.status_error
            return httpx.Response(200, json=self.status_bodies.pop(0))
        if path.startswith("/Sql/Cancel/"):
            return httpx.Response(self.cancel_status)
        if path == "/Sql/ObjectExplorerNodes":
            return httpx.Response(200, json={"Nodes": self.nodes})
        if path == "/Sql/ColumnNames":
            return httpx.Response(200, json={"Columns": self.columns})
        return httpx.Response(404, json={"Message": f"No route for {path}"})


async def wait_until(predicate, attempts=500):
    """Yield to the event loop until predicate() holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")
