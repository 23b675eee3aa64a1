"""Tests for concurrent update checks."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from nugetbot.errors import NetworkError
from nugetbot.models import PackageReference, UpdateType
from nugetbot.resolver import NuGetResolver
from nugetbot.scanner import PackageScanner
from nugetbot.versioning import PackageVersion


def refs(*pairs):
    return [PackageReference(name, PackageVersion.parse(version)) for name, version in pairs]


def versions(*texts):
    return [PackageVersion.parse(t) for t in texts]


class TestPackageScanner:
    """Test candidate collection across many packages."""

    @pytest.mark.asyncio
    async def test_candidates_in_reference_order(self):
        index = {
            "Newtonsoft.Json": versions("12.0.3", "13.0.3"),
            "Serilog": versions("3.0.1"),
            "xunit": versions("2.5.0", "2.5.3"),
        }
        resolver = NuGetResolver()
        resolver.get_all_versions = AsyncMock(side_effect=lambda package_id, bypass: index[package_id])

        candidates, failures = await PackageScanner(resolver).check_packages(
            refs(("Newtonsoft.Json", "12.0.3"), ("Serilog", "3.0.1"), ("xunit", "2.5.0"))
        )

        assert [c.package_id for c in candidates] == ["Newtonsoft.Json", "xunit"]
        assert candidates[0].update_type == UpdateType.MAJOR
        assert candidates[1].update_type == UpdateType.PATCH
        assert failures == {}

    @pytest.mark.asyncio
    async def test_network_error_is_isolated(self):
        async def get_versions(package_id, bypass):
            if package_id == "Broken":
                raise NetworkError(package_id, "HTTP 500")
            return versions("1.0.0", "1.1.0")

        resolver = NuGetResolver()
        resolver.get_all_versions = get_versions

        candidates, failures = await PackageScanner(resolver).check_packages(
            refs(("First", "1.0.0"), ("Broken", "1.0.0"), ("Last", "1.0.0"))
        )

        assert [c.package_id for c in candidates] == ["First", "Last"]
        assert list(failures) == ["Broken"]
        assert "HTTP 500" in failures["Broken"]

    @pytest.mark.asyncio
    async def test_unknown_package_is_not_a_failure(self):
        resolver = NuGetResolver()
        resolver.get_all_versions = AsyncMock(return_value=[])

        candidates, failures = await PackageScanner(resolver).check_packages(refs(("Ghost", "1.0.0")))

        assert candidates == []
        assert failures == {}

    @pytest.mark.asyncio
    async def test_passes_prerelease_and_cache_flags(self):
        resolver = NuGetResolver()
        resolver.get_all_versions = AsyncMock(return_value=versions("1.0.0", "2.0.0-beta"))

        candidates, _ = await PackageScanner(resolver).check_packages(
            refs(("Pkg", "1.0.0")), include_prerelease=True, bypass_cache=True
        )

        resolver.get_all_versions.assert_awaited_once_with("Pkg", True)
        assert candidates[0].update_type == UpdateType.PRERELEASE

    @pytest.mark.asyncio
    async def test_cancellation_discards_partial_results(self):
        started = asyncio.Event()
        cancelled = []

        async def get_versions(package_id, bypass):
            if package_id == "Fast":
                return versions("1.0.0", "1.0.1")
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(package_id)
                raise

        resolver = NuGetResolver()
        resolver.get_all_versions = get_versions
        scanner = PackageScanner(resolver)

        task = asyncio.create_task(
            scanner.check_packages(refs(("Fast", "1.0.0"), ("Slow1", "1.0.0"), ("Slow2", "1.0.0")))
        )
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert sorted(cancelled) == ["Slow1", "Slow2"]

    @pytest.mark.asyncio
    async def test_unexpected_error_cancels_siblings(self):
        cancelled = []

        async def get_versions(package_id, bypass):
            if package_id == "Bug":
                raise RuntimeError("boom")
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(package_id)
                raise

        resolver = NuGetResolver()
        resolver.get_all_versions = get_versions

        with pytest.raises(RuntimeError):
            await PackageScanner(resolver).check_packages(refs(("Bug", "1.0.0"), ("Other", "1.0.0")))
        assert cancelled == ["Other"]
