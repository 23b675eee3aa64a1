"""CLI application for the NuGet update bot."""

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from nugetbot.config import DEFAULT_CONFIG_FILE_NAME, PolicyConfig, resolve_config, write_sample_config
from nugetbot.engine import UpdateEngine
from nugetbot.errors import BackupError, ConfigError, InputError, ParseError
from nugetbot.logging import setup_logging
from nugetbot.manifest import resolve_project_path
from nugetbot.models import BatchOutcome, UpdatePolicy, UpdateReport
from nugetbot.reporting import (
    render_report,
    render_scan,
    render_update,
    report_to_dict,
    scan_to_dict,
    to_json,
    update_to_dict,
)

console = Console()
err_console = Console(stderr=True)

EXIT_OK = 0
EXIT_NOT_FOUND = 2
EXIT_INVALID = 3
EXIT_UNEXPECTED = 4
EXIT_ROLLED_BACK = 5
EXIT_PARTIAL = 6
EXIT_ROLLBACK_FAILED = 7


def exit_code_for(report: UpdateReport) -> int:
    """Map an update report to a process exit code."""
    batch = report.batch
    if batch is None:
        return EXIT_OK
    if batch.outcome == BatchOutcome.ROLLED_BACK:
        return EXIT_ROLLED_BACK
    if batch.outcome == BatchOutcome.ROLLBACK_FAILED:
        return EXIT_ROLLBACK_FAILED
    if batch.succeeded < batch.total:
        return EXIT_PARTIAL
    return EXIT_OK


def _load_config(
    config_path: Path | None,
    policy: UpdatePolicy | None,
    include_prerelease: bool,
    max_parallelism: int | None,
    exclude: list[str] | None,
) -> PolicyConfig:
    overrides = {
        "update_policy": policy,
        "include_prerelease": True if include_prerelease else None,
        "max_parallelism": max_parallelism,
        "exclude_packages": exclude or None,
    }
    return resolve_config(config_path, overrides=overrides)


def _write_output(content: str, output: Path | None) -> None:
    if output:
        output.write_text(content + "\n")
        err_console.print(f"Report written to {output}")
    else:
        typer.echo(content)


def _fail(message: str, code: int) -> None:
    err_console.print(f"Error: {message}", style="red")
    raise typer.Exit(code)


app = typer.Typer(
    name="nuget-update-bot",
    help="NuGet Update Bot - Automatically manage NuGet package updates in your .NET projects",
    add_completion=False,
)


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Log level (default: WARNING)"),
    log_format: str | None = typer.Option(None, "--log-format", help="Log format: console or json"),
) -> None:
    """NuGet Update Bot - scan and update package references in .NET projects."""
    setup_logging(log_level, log_format)


@app.command()
def scan(
    project: Path = typer.Option(Path("."), "--project", "-p", help="Path to .csproj file or directory"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to configuration file"),
    include_prerelease: bool = typer.Option(False, "--include-prerelease", help="Include pre-release versions"),
    policy: UpdatePolicy | None = typer.Option(
        None, "--policy", case_sensitive=False, help="Update policy: patch, minor or major"
    ),
    exclude: list[str] | None = typer.Option(None, "--exclude", "-x", help="Package pattern to exclude (repeatable)"),
    max_parallelism: int | None = typer.Option(None, "--max-parallelism", help="Concurrent NuGet queries (1-16)"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the version cache"),
    format_type: str = typer.Option("table", "--format", help="Output format: table or json"),
    output: Path | None = typer.Option(None, "--out", "-o", help="Write the report to a file"),
) -> None:
    """Scan a .NET project for outdated NuGet packages."""
    try:
        project_path = resolve_project_path(project)
        config = _load_config(config_path, policy, include_prerelease, max_parallelism, exclude)
        report = asyncio.run(UpdateEngine().scan(project_path, config, bypass_cache=no_cache))

        if format_type == "json" or output:
            _write_output(to_json(scan_to_dict(report)), output)
        else:
            console.print(f"Scanning project: {project_path.name}")
            render_scan(console, report)

    except typer.Exit:
        raise
    except FileNotFoundError as e:
        _fail(str(e), EXIT_NOT_FOUND)
    except (InputError, ParseError, ConfigError, BackupError) as e:
        _fail(str(e), EXIT_INVALID)
    except Exception as e:
        _fail(f"Unexpected error: {e}", EXIT_UNEXPECTED)


@app.command()
def update(
    project: Path = typer.Option(Path("."), "--project", "-p", help="Path to .csproj file or directory"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to configuration file"),
    include_prerelease: bool = typer.Option(False, "--include-prerelease", help="Include pre-release versions"),
    policy: UpdatePolicy | None = typer.Option(
        None, "--policy", case_sensitive=False, help="Update policy: patch, minor or major"
    ),
    exclude: list[str] | None = typer.Option(None, "--exclude", "-x", help="Package pattern to exclude (repeatable)"),
    max_parallelism: int | None = typer.Option(None, "--max-parallelism", help="Concurrent NuGet queries (1-16)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show changes without applying"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the version cache"),
    format_type: str = typer.Option("table", "--format", help="Output format: table or json"),
) -> None:
    """Update outdated packages, with backup and rollback on failure."""
    try:
        project_path = resolve_project_path(project)
        config = _load_config(config_path, policy, include_prerelease, max_parallelism, exclude)
        report = asyncio.run(
            UpdateEngine().update(project_path, config, dry_run=dry_run, bypass_cache=no_cache)
        )

        if format_type == "json":
            typer.echo(to_json(update_to_dict(report)))
        else:
            console.print(f"Processing project: {project_path.name}")
            render_update(console, report)

    except typer.Exit:
        raise
    except FileNotFoundError as e:
        _fail(str(e), EXIT_NOT_FOUND)
    except (InputError, ParseError, ConfigError, BackupError) as e:
        _fail(str(e), EXIT_INVALID)
    except Exception as e:
        _fail(f"Unexpected error: {e}", EXIT_UNEXPECTED)

    code = exit_code_for(report)
    if code != EXIT_OK:
        raise typer.Exit(code)


@app.command()
def report(
    project: Path = typer.Option(Path("."), "--project", "-p", help="Path to .csproj file or directory"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to configuration file"),
    include_prerelease: bool = typer.Option(False, "--include-prerelease", help="Include pre-release versions"),
    include_up_to_date: bool = typer.Option(
        False, "--include-up-to-date", help="Include up-to-date packages in the report"
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the version cache"),
    format_type: str = typer.Option("console", "--format", help="Output format: console or json"),
    output: Path | None = typer.Option(None, "--out", "-o", help="Write the JSON report to a file"),
) -> None:
    """Generate an update report for a project."""
    try:
        project_path = resolve_project_path(project)
        config = _load_config(config_path, None, include_prerelease, None, None)
        scan_report = asyncio.run(UpdateEngine().scan(project_path, config, bypass_cache=no_cache))

        if format_type == "json" or output:
            _write_output(to_json(report_to_dict(scan_report, config, include_up_to_date)), output)
        else:
            console.print(f"Generating report for: {project_path.name}")
            render_report(console, scan_report, config, include_up_to_date)

    except typer.Exit:
        raise
    except FileNotFoundError as e:
        _fail(str(e), EXIT_NOT_FOUND)
    except (InputError, ParseError, ConfigError, BackupError) as e:
        _fail(str(e), EXIT_INVALID)
    except Exception as e:
        _fail(f"Unexpected error: {e}", EXIT_UNEXPECTED)


@app.command("init-config")
def init_config(
    output: Path = typer.Option(Path(DEFAULT_CONFIG_FILE_NAME), "--out", "-o", help="Where to write the sample"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a sample configuration file."""
    if output.exists() and not force:
        _fail(f"{output} already exists (use --force to overwrite)", EXIT_INVALID)
    write_sample_config(output)
    console.print(f"Sample configuration created: {output}")


if __name__ == "__main__":
    app()
