"""Tests for CLI functionality."""

import json
from datetime import datetime
from unittest.mock import AsyncMock, patch

import httpx
from typer.testing import CliRunner

from apps.cli.main import (
    EXIT_INVALID,
    EXIT_NOT_FOUND,
    EXIT_OK,
    EXIT_PARTIAL,
    EXIT_ROLLBACK_FAILED,
    EXIT_ROLLED_BACK,
    EXIT_UNEXPECTED,
    app,
    exit_code_for,
)
from nugetbot.config import DEFAULT_CONFIG_FILE_NAME
from nugetbot.engine import UpdateEngine
from nugetbot.manifest import parse
from nugetbot.models import (
    BackupSet,
    BatchOutcome,
    BatchReport,
    ScanReport,
    UpdatePolicy,
    UpdateReport,
    UpdateResult,
)
from nugetbot.resolver import NuGetResolver
from nugetbot.updater import PackageUpdater


def offline_engine() -> UpdateEngine:
    """Engine whose index serves Newtonsoft.Json 13.0.3 and nothing newer for the rest."""

    def handler(request):
        if "newtonsoft.json" in request.url.path:
            return httpx.Response(200, json={"versions": ["12.0.3", "13.0.3"]})
        return httpx.Response(404)

    resolver = NuGetResolver(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return UpdateEngine(resolver=resolver, updater=PackageUpdater(clock=lambda: datetime(2026, 1, 2, 3, 4, 5)))


def batch_report(location, outcome, *successes):
    results = [UpdateResult(f"P{i}", "1.0.0", "1.0.1", ok) for i, ok in enumerate(successes)]
    return UpdateReport(
        ScanReport(location, [], [], []),
        dry_run=False,
        batch=BatchReport(location, results, outcome, BackupSet()),
    )


class TestCLI:
    """Test CLI command interface."""

    def setup_method(self):
        """Setup test fixtures."""
        self.runner = CliRunner()

    def test_cli_help_command(self):
        result = self.runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "scan" in result.output
        assert "update" in result.output
        assert "report" in result.output
        assert "init-config" in result.output

    def test_scan_table_output(self, sample_project):
        with patch("apps.cli.main.UpdateEngine", return_value=offline_engine()):
            result = self.runner.invoke(app, ["scan", "--project", str(sample_project), "--policy", "major"])

        assert result.exit_code == EXIT_OK
        assert "Newtonsoft.Json" in result.output
        assert "13.0.3" in result.output

    def test_scan_json_output(self, sample_project):
        with patch("apps.cli.main.UpdateEngine", return_value=offline_engine()):
            result = self.runner.invoke(
                app, ["scan", "-p", str(sample_project), "--policy", "MAJOR", "--format", "json"]
            )

        assert result.exit_code == EXIT_OK
        data = json.loads(result.stdout)
        assert data["outcome"] == "updates_available"
        assert [u["package_id"] for u in data["updates"]] == ["Newtonsoft.Json"]

    def test_scan_report_to_file(self, sample_project, tmp_path):
        out = tmp_path / "report.json"
        with patch("apps.cli.main.UpdateEngine", return_value=offline_engine()):
            result = self.runner.invoke(app, ["scan", "-p", str(sample_project), "--out", str(out)])

        assert result.exit_code == EXIT_OK
        assert json.loads(out.read_text())["outcome"] == "no_updates"

    def test_scan_passes_cli_overrides(self, sample_project):
        with patch("apps.cli.main.UpdateEngine") as mock_engine_class:
            mock_engine = mock_engine_class.return_value
            mock_engine.scan = AsyncMock(return_value=ScanReport(None, [], [], []))
            with patch("apps.cli.main.render_scan"):
                result = self.runner.invoke(
                    app,
                    [
                        "scan",
                        "-p",
                        str(sample_project),
                        "--policy",
                        "patch",
                        "-x",
                        "System.*",
                        "-x",
                        "Moq",
                        "--max-parallelism",
                        "2",
                        "--include-prerelease",
                        "--no-cache",
                    ],
                )

        assert result.exit_code == EXIT_OK
        args, kwargs = mock_engine.scan.call_args
        config = args[1]
        assert config.update_policy == UpdatePolicy.PATCH
        assert config.exclude_packages == ["System.*", "Moq"]
        assert config.max_parallelism == 2
        assert config.include_prerelease is True
        assert kwargs["bypass_cache"] is True

    def test_scan_directory_argument(self, sample_project):
        with patch("apps.cli.main.UpdateEngine", return_value=offline_engine()):
            result = self.runner.invoke(app, ["scan", "-p", str(sample_project.parent)])

        assert result.exit_code == EXIT_OK

    def test_missing_project(self, tmp_path):
        result = self.runner.invoke(app, ["scan", "-p", str(tmp_path / "missing.csproj")])
        assert result.exit_code == EXIT_NOT_FOUND

    def test_malformed_project(self, tmp_path):
        project = tmp_path / "Broken.csproj"
        project.write_text("<Project>")

        result = self.runner.invoke(app, ["scan", "-p", str(project)])
        assert result.exit_code == EXIT_INVALID

    def test_invalid_config(self, sample_project, tmp_path):
        config = tmp_path / "bad.json"
        config.write_text('{"maxParallelism": 99}')

        result = self.runner.invoke(app, ["scan", "-p", str(sample_project), "-c", str(config)])
        assert result.exit_code == EXIT_INVALID

    def test_unexpected_error(self, sample_project):
        with patch("apps.cli.main.UpdateEngine") as mock_engine_class:
            mock_engine_class.return_value.scan = AsyncMock(side_effect=RuntimeError("boom"))
            result = self.runner.invoke(app, ["scan", "-p", str(sample_project)])

        assert result.exit_code == EXIT_UNEXPECTED

    def test_update_applies_and_backs_up(self, sample_project):
        with patch("apps.cli.main.UpdateEngine", return_value=offline_engine()):
            result = self.runner.invoke(app, ["update", "-p", str(sample_project), "--policy", "major"])

        assert result.exit_code == EXIT_OK
        assert "Updated Newtonsoft.Json to 13.0.3" in result.output
        assert {r.package_id: str(r.version) for r in parse(sample_project)}["Newtonsoft.Json"] == "13.0.3"
        assert (sample_project.parent / "TestProject.backup.20260102030405.csproj").exists()

    def test_update_dry_run(self, sample_project):
        before = sample_project.read_bytes()
        with patch("apps.cli.main.UpdateEngine", return_value=offline_engine()):
            result = self.runner.invoke(
                app, ["update", "-p", str(sample_project), "--policy", "major", "--dry-run"]
            )

        assert result.exit_code == EXIT_OK
        assert "DRY RUN" in result.output
        assert sample_project.read_bytes() == before

    def test_update_rolled_back_exit_code(self, sample_project, sample_location):
        with patch("apps.cli.main.UpdateEngine") as mock_engine_class:
            mock_engine_class.return_value.update = AsyncMock(
                return_value=batch_report(sample_location, BatchOutcome.ROLLED_BACK, True)
            )
            result = self.runner.invoke(app, ["update", "-p", str(sample_project)])

        assert result.exit_code == EXIT_ROLLED_BACK

    def test_report_console(self, sample_project):
        with patch("apps.cli.main.UpdateEngine", return_value=offline_engine()):
            result = self.runner.invoke(app, ["report", "-p", str(sample_project), "--include-up-to-date"])

        assert result.exit_code == EXIT_OK
        assert "Generating report for: TestProject.csproj" in result.output
        assert "Newtonsoft.Json" in result.output
        assert "Minor policy: Newtonsoft.Json" in result.output
        assert "Serilog" in result.output

    def test_report_json_to_file(self, sample_project, tmp_path):
        out = tmp_path / "report.json"
        before = sample_project.read_bytes()
        with patch("apps.cli.main.UpdateEngine", return_value=offline_engine()):
            result = self.runner.invoke(
                app, ["report", "-p", str(sample_project), "--format", "json", "--out", str(out)]
            )

        assert result.exit_code == EXIT_OK
        data = json.loads(out.read_text())
        assert [u["package_id"] for u in data["outdated"]] == ["Newtonsoft.Json"]
        assert data["policies"] == {"minor": ["Newtonsoft.Json"]}
        assert sample_project.read_bytes() == before

    def test_report_missing_project(self, tmp_path):
        result = self.runner.invoke(app, ["report", "-p", str(tmp_path / "missing.csproj")])
        assert result.exit_code == EXIT_NOT_FOUND

    def test_update_refuses_existing_backup(self, sample_project):
        (sample_project.parent / "TestProject.backup.20260102030405.csproj").write_text("earlier")
        with patch("apps.cli.main.UpdateEngine", return_value=offline_engine()):
            result = self.runner.invoke(app, ["update", "-p", str(sample_project), "--policy", "major"])

        assert result.exit_code == EXIT_INVALID
        assert (sample_project.parent / "TestProject.backup.20260102030405.csproj").read_text() == "earlier"
        assert 'Version="12.0.3"' in sample_project.read_text()

    def test_init_config(self, tmp_path):
        out = tmp_path / DEFAULT_CONFIG_FILE_NAME

        result = self.runner.invoke(app, ["init-config", "--out", str(out)])
        assert result.exit_code == EXIT_OK
        assert "updatePolicy" in out.read_text()

        result = self.runner.invoke(app, ["init-config", "--out", str(out)])
        assert result.exit_code == EXIT_INVALID

        result = self.runner.invoke(app, ["init-config", "--out", str(out), "--force"])
        assert result.exit_code == EXIT_OK


class TestExitCodes:
    """Test mapping of update reports to exit codes."""

    def test_batch_outcomes(self, sample_location):
        assert exit_code_for(UpdateReport(ScanReport(sample_location, [], [], []), dry_run=True)) == EXIT_OK
        assert exit_code_for(batch_report(sample_location, BatchOutcome.COMMITTED, True, True)) == EXIT_OK
        assert exit_code_for(batch_report(sample_location, BatchOutcome.COMMITTED, True, False)) == EXIT_PARTIAL
        assert exit_code_for(batch_report(sample_location, BatchOutcome.ROLLED_BACK, True)) == EXIT_ROLLED_BACK
        assert (
            exit_code_for(batch_report(sample_location, BatchOutcome.ROLLBACK_FAILED, True))
            == EXIT_ROLLBACK_FAILED
        )
