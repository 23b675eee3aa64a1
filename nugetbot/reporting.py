"""Summaries and console/JSON rendering of scan and update results."""

import json
from datetime import datetime, timezone

from rich.console import Console
from rich.table import Table

from .config import PolicyConfig
from .models import (
    BatchOutcome,
    PackageReference,
    ScanReport,
    UpdateCandidate,
    UpdateReport,
    UpdateSummary,
    UpdateType,
)
from .rules import group_by_policy

_TYPE_STYLES = {
    UpdateType.MAJOR: "red",
    UpdateType.MINOR: "yellow",
    UpdateType.PATCH: "green",
    UpdateType.PRERELEASE: "magenta",
}


def summarize(candidates: list[UpdateCandidate], excluded_count: int = 0) -> UpdateSummary:
    """Count candidates by update category."""

    def count(update_type: UpdateType) -> int:
        return sum(1 for c in candidates if c.update_type == update_type)

    return UpdateSummary(
        total_packages=len(candidates) + excluded_count,
        outdated_count=len(candidates),
        major_updates=count(UpdateType.MAJOR),
        minor_updates=count(UpdateType.MINOR),
        patch_updates=count(UpdateType.PATCH),
        prerelease_updates=count(UpdateType.PRERELEASE),
        excluded_count=excluded_count,
    )


def candidate_to_dict(candidate: UpdateCandidate) -> dict:
    prerelease = candidate.latest_prerelease_version
    return {
        "package_id": candidate.package_id,
        "current_version": str(candidate.current_version),
        "latest_stable_version": str(candidate.latest_stable_version),
        "latest_prerelease_version": str(prerelease) if prerelease else None,
        "latest_version": str(candidate.latest),
        "update_type": candidate.update_type.value,
        "is_deprecated": candidate.is_deprecated,
    }


def scan_to_dict(scan: ScanReport) -> dict:
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "project_path": str(scan.location.manifest_path),
        "target_path": str(scan.location.target_path),
        "centrally_managed": scan.location.centrally_managed,
        "outcome": scan.outcome.value,
        "packages": len(scan.references),
        "updates": [candidate_to_dict(c) for c in scan.admissible],
        "summary": vars(summarize(scan.admissible, scan.excluded_count)),
        "failures": dict(scan.failures),
    }


def update_to_dict(report: UpdateReport) -> dict:
    data = scan_to_dict(report.scan)
    data["outcome"] = report.outcome.value
    data["dry_run"] = report.dry_run
    if report.batch is not None:
        batch = report.batch
        data["batch"] = {
            "outcome": batch.outcome.value,
            "succeeded": batch.succeeded,
            "total": batch.total,
            "error": batch.error,
            "backups": {str(k): str(v) for k, v in batch.backups.files.items()},
            "results": [vars(r) for r in batch.results],
        }
    return data


def up_to_date_references(scan: ScanReport) -> list[PackageReference]:
    outdated = {c.package_id.lower() for c in scan.candidates}
    failed = {name.lower() for name in scan.failures}
    return [
        r
        for r in scan.references
        if r.package_id.lower() not in outdated and r.package_id.lower() not in failed
    ]


def policy_groups(scan: ScanReport, config: PolicyConfig) -> dict[str, list[str]]:
    """Outdated package ids keyed by the policy ceiling that governs them."""
    groups = group_by_policy(
        [c.package_id for c in scan.candidates], config.update_rules, config.update_policy
    )
    return {policy.value: names for policy, names in groups.items() if names}


def report_to_dict(scan: ScanReport, config: PolicyConfig, include_up_to_date: bool = False) -> dict:
    data = scan_to_dict(scan)
    data["update_policy"] = config.update_policy.value
    data["outdated"] = [candidate_to_dict(c) for c in scan.candidates]
    data["policies"] = policy_groups(scan, config)
    if include_up_to_date:
        data["up_to_date"] = [
            {"package_id": r.package_id, "version": str(r.version)} for r in up_to_date_references(scan)
        ]
    return data


def to_json(data: dict) -> str:
    return json.dumps(data, indent=2)


def render_candidates(console: Console, candidates: list[UpdateCandidate], title: str) -> None:
    """Print candidates as a table."""
    table = Table(title=title)
    table.add_column("Package")
    table.add_column("Current", justify="right")
    table.add_column("Latest", justify="right")
    table.add_column("Type")

    for candidate in candidates:
        style = _TYPE_STYLES.get(candidate.update_type, "")
        table.add_row(
            candidate.package_id,
            str(candidate.current_version),
            str(candidate.latest),
            f"[{style}]{candidate.update_type.value}[/{style}]",
        )
    console.print(table)


def render_summary(console: Console, summary: UpdateSummary) -> None:
    console.print(
        f"Outdated: {summary.outdated_count}  "
        f"(major {summary.major_updates}, minor {summary.minor_updates}, "
        f"patch {summary.patch_updates}, prerelease {summary.prerelease_updates})  "
        f"Excluded by policy: {summary.excluded_count}"
    )


def render_failures(console: Console, failures: dict[str, str]) -> None:
    for package_id, error in failures.items():
        console.print(f"Warning: failed to check {package_id}: {error}", style="yellow")


def render_scan(console: Console, scan: ScanReport) -> None:
    """Print a scan report."""
    render_failures(console, scan.failures)
    if not scan.candidates:
        console.print("All packages are up to date!", style="green")
        return

    render_candidates(console, scan.candidates, f"{len(scan.candidates)} outdated package(s)")
    render_summary(console, summarize(scan.admissible, scan.excluded_count))


def render_dry_run(console: Console, scan: ScanReport) -> None:
    """Print the updates an update run would apply."""
    render_failures(console, scan.failures)
    if not scan.admissible:
        console.print("No updates to apply.")
        return

    console.print(f"[DRY RUN] Preview of updates for: {scan.location.manifest_path.name}")
    render_candidates(console, scan.admissible, "The following changes would be made")
    console.print(f"Total updates: {len(scan.admissible)}")
    console.print("No changes were made. Run without --dry-run to apply these updates.")


def render_update(console: Console, report: UpdateReport) -> None:
    """Print the result of an update run."""
    if report.batch is None:
        render_dry_run(console, report.scan)
        return

    render_failures(console, report.scan.failures)
    batch = report.batch
    for result in batch.results:
        if result.success:
            console.print(f"✓ Updated {result.package_id} to {result.new_version}", style="green")
        else:
            console.print(f"✗ Failed to update {result.package_id}: {result.error}", style="red")

    if batch.outcome == BatchOutcome.COMMITTED:
        console.print(f"Successfully updated {batch.succeeded} of {batch.total} package(s)")
        if batch.backups.files:
            for backup in batch.backups.files.values():
                console.print(f"Backup saved at: {backup}")
    elif batch.outcome == BatchOutcome.ROLLED_BACK:
        console.print("Project file validation failed. Changes were rolled back.", style="red")
    else:
        console.print(
            f"Rollback failed, files may be inconsistent: {batch.error}", style="bold red"
        )
        for original, backup in batch.backups.files.items():
            console.print(f"Restore {original} manually from {backup}")


def render_report(
    console: Console, scan: ScanReport, config: PolicyConfig, include_up_to_date: bool = False
) -> None:
    """Print a full report: every outdated package with the policy that governs it."""
    render_failures(console, scan.failures)
    if scan.candidates:
        render_candidates(console, scan.candidates, f"{len(scan.candidates)} outdated package(s)")
        for policy, names in policy_groups(scan, config).items():
            console.print(f"{policy.capitalize()} policy: {', '.join(names)}")
        render_summary(console, summarize(scan.admissible, scan.excluded_count))
    else:
        console.print("All packages are up to date!", style="green")

    if include_up_to_date:
        current = up_to_date_references(scan)
        if current:
            table = Table(title=f"{len(current)} up-to-date package(s)")
            table.add_column("Package")
            table.add_column("Version", justify="right")
            for reference in current:
                table.add_row(reference.package_id, str(reference.version))
            console.print(table)
