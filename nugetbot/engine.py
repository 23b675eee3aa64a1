"""Scan and update flows over a single manifest."""

from pathlib import Path

from . import policy
from .config import PolicyConfig
from .logging import get_logger
from .manifest import ProjectFileParser, load_references, resolve_location
from .models import ScanReport, UpdateReport
from .resolver import NuGetResolver
from .scanner import PackageScanner
from .updater import PackageUpdater

log = get_logger("engine")


class UpdateEngine:
    """Parses, resolves, classifies, filters and optionally applies updates."""

    def __init__(
        self,
        resolver: NuGetResolver | None = None,
        parser: ProjectFileParser | None = None,
        updater: PackageUpdater | None = None,
    ):
        self.resolver = resolver
        self.parser = parser or ProjectFileParser()
        self.updater = updater or PackageUpdater()

    def _resolver_for(self, config: PolicyConfig) -> NuGetResolver:
        if self.resolver is None:
            self.resolver = NuGetResolver(max_concurrency=config.max_parallelism)
        return self.resolver

    async def scan(
        self,
        manifest_path: Path | str,
        config: PolicyConfig | None = None,
        bypass_cache: bool = False,
    ) -> ScanReport:
        """Find and classify available updates without touching any file.

        Raises:
            ParseError: If the manifest or central file cannot be parsed.
        """
        config = config or PolicyConfig()
        location = resolve_location(manifest_path, self.parser)
        references = load_references(location, self.parser)
        log.info(
            "scan_started",
            manifest=str(location.manifest_path),
            target=str(location.target_path),
            centrally_managed=location.centrally_managed,
            packages=len(references),
        )

        scanner = PackageScanner(self._resolver_for(config))
        candidates, failures = await scanner.check_packages(
            references,
            include_prerelease=config.include_prerelease,
            bypass_cache=bypass_cache,
        )
        admissible = policy.apply(
            candidates,
            config.update_policy,
            config.exclude_packages,
            config.update_rules,
        )
        log.info(
            "scan_finished",
            outdated=len(candidates),
            admissible=len(admissible),
            failed=len(failures),
        )
        return ScanReport(location, references, candidates, admissible, failures)

    async def update(
        self,
        manifest_path: Path | str,
        config: PolicyConfig | None = None,
        dry_run: bool = False,
        bypass_cache: bool = False,
    ) -> UpdateReport:
        """Scan, then apply the admissible updates unless ``dry_run`` is set."""
        scan = await self.scan(manifest_path, config, bypass_cache)
        if dry_run or not scan.admissible:
            return UpdateReport(scan=scan, dry_run=dry_run)

        batch = self.updater.apply(scan.location, scan.admissible)
        return UpdateReport(scan=scan, dry_run=False, batch=batch)
