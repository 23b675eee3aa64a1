"""Core data models for the NuGet update bot."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .versioning import PackageVersion


class _CaseInsensitiveEnum(str, Enum):
    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value == value.strip().lower():
                    return member
        return None


class UpdateType(_CaseInsensitiveEnum):
    """Magnitude of a version change."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    PRERELEASE = "prerelease"


class UpdatePolicy(_CaseInsensitiveEnum):
    """Highest update category a caller allows to be applied."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


@dataclass(frozen=True)
class PackageReference:
    """A single package reference declared in a manifest."""

    package_id: str
    version: PackageVersion


@dataclass(frozen=True)
class UpdateCandidate:
    """A package with a newer version available on the index."""

    package_id: str
    current_version: PackageVersion
    latest_stable_version: PackageVersion
    latest_prerelease_version: PackageVersion | None
    update_type: UpdateType
    is_deprecated: bool = False

    @property
    def latest(self) -> PackageVersion:
        """Version offered for this update.

        The prerelease is only set when the caller opted into prereleases,
        and it wins only when it is newer than the stable version.
        """
        prerelease = self.latest_prerelease_version
        if prerelease is not None and prerelease > self.latest_stable_version:
            return prerelease
        return self.latest_stable_version


@dataclass(frozen=True)
class UpdateRule:
    """Policy override for packages matching a glob-style pattern."""

    pattern: str
    policy: UpdatePolicy


@dataclass(frozen=True)
class ManifestLocation:
    """The file a run mutates, resolved once per run."""

    manifest_path: Path
    target_path: Path
    centrally_managed: bool = False

    @property
    def files(self) -> list[Path]:
        """Every file touched by backup, validation and rollback."""
        if self.centrally_managed and self.target_path != self.manifest_path:
            return [self.manifest_path, self.target_path]
        return [self.manifest_path]


class BatchOutcome(str, Enum):
    """Final state of an update batch."""

    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    ROLLBACK_FAILED = "rollback_failed"


class RunOutcome(str, Enum):
    """What a scan or update run amounted to."""

    NO_UPDATES = "no_updates"
    UPDATES_AVAILABLE = "updates_available"
    UPDATES_APPLIED = "updates_applied"


@dataclass
class UpdateResult:
    """Result of applying a single candidate."""

    package_id: str
    old_version: str
    new_version: str
    success: bool
    error: str | None = None


@dataclass
class BackupSet:
    """Backups taken for one batch, keyed by original path."""

    files: dict[Path, Path] = field(default_factory=dict)

    @property
    def primary(self) -> Path | None:
        return next(iter(self.files.values()), None)


@dataclass
class BatchReport:
    """Result of one transactional update batch."""

    location: ManifestLocation
    results: list[UpdateResult]
    outcome: BatchOutcome
    backups: BackupSet
    error: str | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def total(self) -> int:
        return len(self.results)


@dataclass
class UpdateSummary:
    """Summary statistics for a set of candidates."""

    total_packages: int
    outdated_count: int
    major_updates: int
    minor_updates: int
    patch_updates: int
    prerelease_updates: int
    excluded_count: int


@dataclass
class ScanReport:
    """Result of resolving and classifying every reference in a manifest."""

    location: ManifestLocation
    references: list[PackageReference]
    candidates: list[UpdateCandidate]
    admissible: list[UpdateCandidate]
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def excluded_count(self) -> int:
        return len(self.candidates) - len(self.admissible)

    @property
    def outcome(self) -> RunOutcome:
        if not self.admissible:
            return RunOutcome.NO_UPDATES
        return RunOutcome.UPDATES_AVAILABLE


@dataclass
class UpdateReport:
    """Result of an update run."""

    scan: ScanReport
    dry_run: bool
    batch: BatchReport | None = None

    @property
    def outcome(self) -> RunOutcome:
        if self.batch is not None:
            return RunOutcome.UPDATES_APPLIED
        return self.scan.outcome
