"""CLI tests for cosense.

Design:
- Every command runs against a FakeStore patched in for the HTTP client
- One happy path per command, plus the shared error behaviour
"""

import json
import os

import pytest
from click.testing import CliRunner

from cosense_mcp import __version__ as COSENSE_VERSION
from cosense_mcp import cli as cli_module
from cosense_mcp.cli import cli
from cosense_mcp.models import SearchHit, SearchResult

from conftest import FakeStore, make_page, ts

ALL_COMMANDS = ["list", "get", "search", "tags", "dates", "regex", "backlinks", "serve"]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def project_env(monkeypatch):
    monkeypatch.setenv("COSENSE_PROJECT_NAME", "cli-project")
    monkeypatch.delenv("COSENSE_SID", raising=False)


@pytest.fixture
def fake_store(monkeypatch, project_env):
    store = FakeStore(
        [
            make_page("Alpha", ["TODO: write", "[Beta]"], updated=ts(2024, 3, 1), links=["Beta"]),
            make_page("Beta", backlinks=[("Alpha", ["[Beta]"])], updated=ts(2024, 2, 1)),
        ],
        search_results={
            "([idea] OR #idea)": SearchResult(count=1, pages=[SearchHit(title="Alpha", lines=["#idea"])]),
            "write": SearchResult(count=1, pages=[SearchHit(title="Alpha", lines=["TODO: write"])]),
        },
    )
    monkeypatch.setattr(cli_module, "open_store", lambda settings: store)
    return store


# ─────────────────────────────────────────────────────────────────────────────
# Help and version
# ─────────────────────────────────────────────────────────────────────────────


class TestHelp:
    @pytest.mark.parametrize("command", ALL_COMMANDS)
    def test_help(self, runner, command):
        result = runner.invoke(cli, [command, "--help"])

        assert result.exit_code == 0
        assert "Usage:" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert COSENSE_VERSION in result.output


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────


class TestCommands:
    def test_list(self, runner, fake_store):
        result = runner.invoke(cli, ["list", "--sort=title", "-n", "1"])

        assert result.exit_code == 0
        assert "### 1. Alpha" in result.output
        assert "Showing 1 of 2 pages" in result.output
        assert fake_store.calls[0][1]["limit"] == 1

    def test_get(self, runner, fake_store):
        result = runner.invoke(cli, ["get", "Alpha"])

        assert result.exit_code == 0
        assert "## Alpha" in result.output
        assert "- Beta" in result.output
        assert fake_store.close_count == 1

    def test_search(self, runner, fake_store):
        result = runner.invoke(cli, ["search", "write"])

        assert result.exit_code == 0
        assert "Query: write" in result.output

    def test_tags(self, runner, fake_store):
        result = runner.invoke(cli, ["tags", "#idea"])

        assert result.exit_code == 0
        assert "Found 1 pages" in result.output

    def test_dates(self, runner, fake_store):
        result = runner.invoke(cli, ["dates", "--from", "2024-02-15"])

        assert result.exit_code == 0
        assert "### 1. Alpha" in result.output
        assert "Beta" not in result.output

    def test_regex(self, runner, fake_store):
        result = runner.invoke(cli, ["regex", "todo"])

        assert result.exit_code == 0
        assert "- Line 2: TODO: write" in result.output

    def test_backlinks(self, runner, fake_store):
        result = runner.invoke(cli, ["backlinks", "Beta"])

        assert result.exit_code == 0
        assert 'Backlinks for "Beta"' in result.output

    def test_project_option_overrides_env(self, runner, fake_store):
        result = runner.invoke(cli, ["--project", "other", "get", "Ghost"])

        assert "Project: other" in result.output

    def test_serve_applies_overrides_and_runs_server(self, runner, project_env, monkeypatch):
        seen = {}
        monkeypatch.setattr(
            "cosense_mcp.server.main",
            lambda: seen.setdefault("project", os.environ["COSENSE_PROJECT_NAME"]),
        )

        result = runner.invoke(cli, ["-p", "served", "serve"])

        assert result.exit_code == 0
        assert seen == {"project": "served"}


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────


class TestErrors:
    def test_missing_project(self, runner, monkeypatch):
        monkeypatch.delenv("COSENSE_PROJECT_NAME", raising=False)

        result = runner.invoke(cli, ["list"])

        assert result.exit_code == 1
        assert "COSENSE_PROJECT_NAME is not set" in result.output

    def test_error_report_exits_nonzero(self, runner, fake_store):
        result = runner.invoke(cli, ["get", "Ghost"])

        assert result.exit_code == 1
        assert "Error details:" in result.output
        assert 'Unable to find page "Ghost"' in result.output

    def test_invalid_regex_makes_no_request(self, runner, fake_store):
        result = runner.invoke(cli, ["regex", "(", "--flags", "g"])

        assert result.exit_code == 1
        assert fake_store.calls == []

    def test_json_errors(self, runner, fake_store):
        result = runner.invoke(cli, ["--json-errors", "get", "Ghost"])

        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["error"] == "PAGE_NOT_FOUND"
        assert 'Unable to find page "Ghost"' in payload["message"]

    def test_json_errors_for_missing_project(self, runner, monkeypatch):
        monkeypatch.delenv("COSENSE_PROJECT_NAME", raising=False)

        result = runner.invoke(cli, ["--json-errors", "list"])

        assert result.exit_code == 1
        assert json.loads(result.output)["error"] == "MISSING_CONFIGURATION"
