"""Tests for the query and explorer commands against the fake server."""

import json

import pytest

from magnus_tool.core.exceptions import ConfigError, QueryExecutionError
from magnus_tool.core.session import Session
from tests.helpers import PASSWORD, SERVER, USER, progress, result_set

CONNECTION = ["--server", SERVER, "--user", USER, "--password", PASSWORD, "--poll-interval", "0"]

PEOPLE = result_set(
    [("Id", "Number"), ("Name", "String"), ("Nick", "String")],
    [[1, "Ted Decker", None], [2, "Cindy Decker", "Cin"]],
)


@pytest.fixture
def served(monkeypatch, fake_server, settings):
    """Route CLI sessions to the fake server."""

    async def open_session(resolved):
        server, user, password = resolved.require_credentials()
        return await Session.authenticate(server, user, password, settings)

    monkeypatch.setattr("magnus_tool.cli.commands._shared.open_session", open_session)
    return fake_server


@pytest.fixture
def invoke(cli_runner, temp_dir):
    def run(*args):
        return cli_runner("--config", str(temp_dir / "none.toml"), *CONNECTION, *args)

    return run


@pytest.mark.unit
class TestQueryCommand:
    def test_table_output(self, served, invoke):
        served.status_bodies = [
            progress(messages=["parsing"]),
            progress(complete=True, result_sets=[PEOPLE]),
        ]
        result = invoke("query", "-e", "SELECT Id, Name, Nick FROM Person")
        assert result.exit_code == 0, result.output
        assert "Ted Decker" in result.stdout
        assert "NULL" in result.stdout
        assert "parsing" in result.output

    def test_no_rows(self, served, invoke):
        served.submit_body = progress(
            complete=True, result_sets=[result_set([("Id", "Number")], [])]
        )
        result = invoke("query", "-e", "SELECT Id FROM Person WHERE 1 = 0")
        assert result.exit_code == 0
        assert "No results" in result.stdout

    def test_query_from_file(self, served, invoke, temp_dir):
        sql = temp_dir / "people.sql"
        sql.write_text("SELECT Id, Name, Nick FROM Person")
        served.submit_body = progress(complete=True, result_sets=[PEOPLE])
        result = invoke("query", str(sql))
        assert result.exit_code == 0
        assert b"SELECT Id, Name, Nick FROM Person" in served.requests[-1].content

    def test_missing_file(self, served, invoke):
        result = invoke("query", "/nonexistent/query.sql")
        assert result.exit_code == 3
        assert "Query file not found" in result.output

    def test_server_error(self, served, invoke):
        served.submit_status = 400
        served.submit_body = {"Message": "Invalid object name 'Nope'."}
        result = invoke("query", "-e", "SELECT * FROM Nope")
        assert isinstance(result.exception, QueryExecutionError)
        assert result.exception.message == "Invalid object name 'Nope'."

    def test_export_csv(self, served, invoke, temp_dir):
        served.submit_body = progress(complete=True, result_sets=[PEOPLE])
        out = temp_dir / "people.csv"
        result = invoke("query", "-e", "SELECT 1", "-o", str(out), "--headers")
        assert result.exit_code == 0, result.output
        lines = out.read_text().splitlines()
        assert lines == ["Id,Name,Nick", "1,Ted Decker,NULL", "2,Cindy Decker,Cin"]

    def test_export_format_from_suffix(self, served, invoke, temp_dir):
        served.submit_body = progress(complete=True, result_sets=[PEOPLE])
        out = temp_dir / "people.json"
        result = invoke("query", "-e", "SELECT 1", "-o", str(out))
        assert result.exit_code == 0, result.output
        assert json.loads(out.read_text())[1] == {"Id": "2", "Name": "Cindy Decker", "Nick": "Cin"}

    def test_missing_credentials(self, served, cli_runner, temp_dir):
        result = cli_runner("--config", str(temp_dir / "none.toml"), "query", "-e", "SELECT 1")
        assert isinstance(result.exception, ConfigError)


@pytest.mark.unit
class TestSelectTopCommand:
    def test_print_only(self, served, invoke):
        served.columns = ["Id", "Name"]
        result = invoke("select-top", "Person", "--limit", "5", "--print")
        assert result.exit_code == 0
        assert result.stdout.strip() == "SELECT TOP 5\n    [Id]\n    ,[Name]\nFROM [Person]"
        assert served.count("/Sql/ExecuteQuery") == 0

    def test_runs_query(self, served, invoke):
        served.columns = ["Id", "Name", "Nick"]
        served.submit_body = progress(complete=True, result_sets=[PEOPLE])
        result = invoke("select-top", "Person")
        assert result.exit_code == 0
        assert "Cindy Decker" in result.stdout
        assert b"SELECT TOP 1000" in served.requests[-1].content


@pytest.mark.unit
class TestExplorerCommands:
    def test_browse_root(self, served, invoke):
        served.nodes = [
            {"Id": "db:RockDB", "Type": 1, "Name": "RockDB"},
            {"Id": "tables", "Type": 2, "Name": "Tables"},
        ]
        result = invoke("browse")
        assert result.exit_code == 0
        assert "RockDB" in result.stdout
        assert "tables_folder" in result.stdout

    def test_browse_empty(self, served, invoke):
        result = invoke("browse", "col:Person.Id")
        assert result.exit_code == 0
        assert "No results" in result.stdout
        assert b"col:Person.Id" in served.requests[-1].content

    def test_columns(self, served, invoke):
        served.columns = ["Id", "FirstName", "LastName"]
        result = invoke("columns", "Person")
        assert result.exit_code == 0
        assert result.stdout.splitlines() == ["Id", "FirstName", "LastName"]
