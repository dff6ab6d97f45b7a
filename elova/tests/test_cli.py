"""Tests for the elova CLI commands."""

import pytest
from unittest.mock import AsyncMock, patch
from typer.testing import CliRunner

from elova.cli import app
from elova.errors import UnknownSyncTypeError
from elova.schemas.sync import MultiProviderSyncResult, ProviderSyncOutcome


@pytest.fixture
def cli_runner():
    return CliRunner()


def _multi_result(success: bool = True) -> MultiProviderSyncResult:
    outcome = ProviderSyncOutcome(
        provider_id="0b7c1c4e-0000-0000-0000-000000000001",
        provider_name="Prod n8n",
        sync_type="executions",
        success=success,
        result={"processed": 12, "inserted": 10, "updated": 2} if success else None,
        error=None if success else "Invalid API key",
    )
    return MultiProviderSyncResult(
        success=success,
        providers=1,
        successful=1 if success else 0,
        failed=0 if success else 1,
        results=[outcome],
    )


class TestSyncRunCommand:
    """Tests for 'elova sync run'."""

    def test_sync_run_table(self, cli_runner):
        with patch("elova.database.init_db", new=AsyncMock()), patch(
            "elova.sync.sync_engine.sync_all_providers", new=AsyncMock(return_value=_multi_result())
        ) as mock_sync:
            result = cli_runner.invoke(app, ["sync", "run", "--batch-size", "50"])

        assert result.exit_code == 0
        assert "Prod n8n" in result.output
        mock_sync.assert_awaited_once_with("executions", 50, manual=True)

    def test_sync_run_json(self, cli_runner):
        with patch("elova.database.init_db", new=AsyncMock()), patch(
            "elova.sync.sync_engine.sync_all_providers", new=AsyncMock(return_value=_multi_result())
        ):
            result = cli_runner.invoke(app, ["sync", "run", "--type", "full", "--json"])

        assert result.exit_code == 0
        assert '"successful"' in result.output

    def test_sync_run_failure_exit_code(self, cli_runner):
        with patch("elova.database.init_db", new=AsyncMock()), patch(
            "elova.sync.sync_engine.sync_all_providers",
            new=AsyncMock(return_value=_multi_result(success=False)),
        ):
            result = cli_runner.invoke(app, ["sync", "run"])

        assert result.exit_code == 1
        assert "Invalid API key" in result.output

    def test_sync_run_unknown_type(self, cli_runner):
        with patch("elova.database.init_db", new=AsyncMock()), patch(
            "elova.sync.sync_engine.sync_all_providers",
            new=AsyncMock(side_effect=UnknownSyncTypeError("everything")),
        ):
            result = cli_runner.invoke(app, ["sync", "run", "--type", "everything"])

        assert result.exit_code == 1
        assert "Unknown sync type" in result.output


class TestWorkflowCommands:
    """Tests for 'elova workflows ...'."""

    def test_archive_rejects_bad_id(self, cli_runner):
        result = cli_runner.invoke(app, ["workflows", "archive", "not-a-uuid"])
        assert result.exit_code == 1
        assert "Invalid workflow ID" in result.output

    def test_archive_missing_workflow(self, cli_runner):
        with patch("elova.services.workflow_svc.archive_workflow", new=AsyncMock(return_value=None)):
            result = cli_runner.invoke(
                app, ["workflows", "archive", "0b7c1c4e-0000-0000-0000-000000000001"]
            )
        assert result.exit_code == 1
        assert "Workflow not found" in result.output

    def test_dedupe(self, cli_runner):
        with patch(
            "elova.services.workflow_svc.remove_duplicate_workflows",
            new=AsyncMock(return_value={"duplicates_found": 3, "duplicates_removed": 3}),
        ):
            result = cli_runner.invoke(app, ["workflows", "dedupe"])

        assert result.exit_code == 0
        assert "Found 3 duplicates" in result.output


class TestProviderCommands:
    """Tests for 'elova providers ...'."""

    def test_list_empty(self, cli_runner):
        with patch("elova.services.provider_svc.list_providers", new=AsyncMock(return_value=[])):
            result = cli_runner.invoke(app, ["providers", "list"])
        assert result.exit_code == 0
        assert "Providers (0)" in result.output

    def test_test_without_providers(self, cli_runner):
        with patch("elova.services.provider_svc.list_providers", new=AsyncMock(return_value=[])):
            result = cli_runner.invoke(app, ["providers", "test"])
        assert result.exit_code == 1
        assert "No providers found" in result.output


class TestSchedulerCommand:
    def test_unknown_job(self, cli_runner):
        result = cli_runner.invoke(app, ["scheduler", "run", "--job", "nightly"])
        assert result.exit_code == 1
        assert "Unknown job: nightly" in result.output
