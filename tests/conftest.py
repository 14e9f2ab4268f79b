"""Shared test fixtures for Magnus Tool."""

from pathlib import Path
from tempfile import TemporaryDirectory

import httpx
import pytest
import pytest_asyncio
from typer.testing import CliRunner

from magnus_tool.cli.main import app
from magnus_tool.core.session import Session, SessionSettings
from tests.helpers import PASSWORD, SERVER, USER, FakeMagnusServer


@pytest.fixture
def runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_runner(runner):
    """Invoke the CLI app with the given arguments."""

    def invoke(*args: str, **kwargs):
        return runner.invoke(app, list(args), **kwargs)

    return invoke


@pytest.fixture
def temp_dir():
    """Temporary directory for test files."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_server():
    return FakeMagnusServer()


@pytest.fixture
def settings(fake_server):
    """Session settings routed to the fake server."""
    return SessionSettings(transport=httpx.MockTransport(fake_server.handler))


@pytest_asyncio.fixture
async def session(settings):
    """An authenticated session against the fake server."""
    session = await Session.authenticate(SERVER, USER, PASSWORD, settings)
    yield session
    await session.close()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the developer's MAGNUS_* environment out of the tests."""
    for name in (
        "MAGNUS_SERVER",
        "MAGNUS_USER",
        "MAGNUS_PASSWORD",
        "MAGNUS_PROFILE",
        "MAGNUS_SENTRY_DSN",
    ):
        monkeypatch.delenv(name, raising=False)
