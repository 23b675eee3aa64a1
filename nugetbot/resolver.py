"""NuGet package version resolution."""

import asyncio
import time

import httpx

from .errors import NetworkError
from .logging import get_logger
from .versioning import PackageVersion

log = get_logger("resolver")

DEFAULT_INDEX_URL = "https://api.nuget.org/v3-flatcontainer"
DEFAULT_MAX_CONCURRENCY = 5
DEFAULT_CACHE_TTL = 30 * 60


class NuGetResolver:
    """Queries the NuGet flat container index for package versions."""

    def __init__(
        self,
        index_url: str = DEFAULT_INDEX_URL,
        timeout: float = 30.0,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        semaphore: asyncio.Semaphore | None = None,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the resolver.

        Args:
            index_url: Base URL of the flat container resource
            timeout: Request timeout in seconds
            max_concurrency: Size of the permit pool when none is given
            semaphore: Permit pool shared by every query of this resolver
            cache_ttl: Seconds a cached version list stays valid
            client: HTTP client to reuse; a short-lived one is opened per
                request otherwise
        """
        self.index_url = index_url.rstrip("/")
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.cache_ttl = cache_ttl
        self._semaphore = semaphore or asyncio.Semaphore(max_concurrency)
        self._client = client
        self._cache: dict[str, tuple[float, list[PackageVersion]]] = {}

    async def get_all_versions(
        self, package_id: str, bypass_cache: bool = False
    ) -> list[PackageVersion]:
        """Get every published version of a package, stable and prerelease.

        Args:
            package_id: Package identifier
            bypass_cache: Skip the cache and query the index

        Returns:
            Parsed versions; empty for an unknown package

        Raises:
            NetworkError: If the index could not be queried
        """
        key = package_id.lower()

        if not bypass_cache:
            cached = self._cache.get(key)
            if cached and time.monotonic() - cached[0] < self.cache_ttl:
                return list(cached[1])

        async with self._semaphore:
            raw_versions = await self._fetch_versions(package_id)

        versions = []
        for raw in raw_versions:
            version = PackageVersion.try_parse(raw)
            if version is None:
                log.debug("unparsable_version_skipped", package=package_id, version=raw)
                continue
            versions.append(version)

        self._cache[key] = (time.monotonic(), versions)
        return list(versions)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def _fetch_versions(self, package_id: str) -> list[str]:
        """Fetch raw version strings from the index.

        Args:
            package_id: Package identifier

        Returns:
            Version strings, empty if the package is unknown
        """
        url = f"{self.index_url}/{package_id.lower()}/index.json"

        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)

            if response.status_code == 404:
                return []
            response.raise_for_status()

            payload = response.json()
            if not isinstance(payload, dict):
                raise ValueError("expected a JSON object")
            return [str(v) for v in payload.get("versions", [])]

        except httpx.TimeoutException as e:
            raise NetworkError(package_id, "timeout") from e
        except httpx.HTTPStatusError as e:
            raise NetworkError(package_id, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise NetworkError(package_id, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise NetworkError(package_id, f"invalid response body: {e}") from e
