"""Concurrent update checks for the references of a manifest."""

import asyncio

from .classifier import build_candidate
from .errors import NetworkError
from .logging import get_logger
from .models import PackageReference, UpdateCandidate
from .resolver import NuGetResolver

log = get_logger("scanner")


class PackageScanner:
    """Resolves versions for every reference and builds update candidates."""

    def __init__(self, resolver: NuGetResolver):
        self.resolver = resolver

    async def check_package(
        self,
        reference: PackageReference,
        include_prerelease: bool = False,
        bypass_cache: bool = False,
    ) -> UpdateCandidate | None:
        """Check a single reference against the index.

        Raises:
            NetworkError: If the index query fails.
        """
        versions = await self.resolver.get_all_versions(reference.package_id, bypass_cache)
        if not versions:
            log.debug("no_versions_found", package=reference.package_id)
            return None
        return build_candidate(reference, versions, include_prerelease)

    async def check_packages(
        self,
        references: list[PackageReference],
        include_prerelease: bool = False,
        bypass_cache: bool = False,
    ) -> tuple[list[UpdateCandidate], dict[str, str]]:
        """Check many references concurrently, one task per package.

        A failing package is logged and left out; it never aborts the
        others. Cancellation cancels every outstanding query and
        propagates, so no partial result is returned.

        Returns:
            Candidates in reference order, and failure messages by package id
        """

        async def check(reference: PackageReference):
            try:
                return await self.check_package(reference, include_prerelease, bypass_cache), None
            except NetworkError as e:
                log.warning("package_check_failed", package=reference.package_id, error=str(e))
                return None, str(e)

        tasks = [asyncio.create_task(check(ref)) for ref in references]
        candidates: list[UpdateCandidate] = []
        failures: dict[str, str] = {}

        try:
            for reference, task in zip(references, tasks):
                candidate, error = await task
                if error is not None:
                    failures[reference.package_id] = error
                elif candidate is not None:
                    candidates.append(candidate)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return candidates, failures
