"""Update classification between a current and a candidate version."""

from .models import PackageReference, UpdateCandidate, UpdateType
from .versioning import PackageVersion


def classify(current: PackageVersion, latest: PackageVersion) -> UpdateType:
    """Classify the update from ``current`` to ``latest``.

    Moving from a release onto a prerelease is always a prerelease update,
    whatever the numeric difference.
    """
    if latest.is_prerelease and not current.is_prerelease:
        return UpdateType.PRERELEASE
    if latest.major > current.major:
        return UpdateType.MAJOR
    if latest.minor > current.minor:
        return UpdateType.MINOR
    return UpdateType.PATCH


def select_latest(
    stable: PackageVersion,
    prerelease: PackageVersion | None,
    include_prerelease: bool,
) -> PackageVersion:
    """Pick the version to offer: the prerelease only if opted in and newer."""
    if include_prerelease and prerelease is not None and prerelease > stable:
        return prerelease
    return stable


def build_candidate(
    reference: PackageReference,
    versions: list[PackageVersion],
    include_prerelease: bool = False,
) -> UpdateCandidate | None:
    """Build an update candidate from the versions known to the index.

    Returns:
        The classified candidate, or None if no newer version exists
    """
    if not versions:
        return None

    current = reference.version
    stable = max((v for v in versions if not v.is_prerelease), default=None)
    prerelease = None
    if include_prerelease:
        prerelease = max((v for v in versions if v.is_prerelease), default=None)

    if stable is None or stable < current:
        stable = current

    has_newer = stable > current or (prerelease is not None and prerelease > current)
    if not has_newer:
        return None

    latest = select_latest(stable, prerelease, include_prerelease)
    return UpdateCandidate(
        package_id=reference.package_id,
        current_version=current,
        latest_stable_version=stable,
        latest_prerelease_version=prerelease,
        update_type=classify(current, latest),
    )
