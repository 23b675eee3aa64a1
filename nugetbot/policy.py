"""Policy filtering of update candidates."""

from .models import UpdateCandidate, UpdatePolicy, UpdateRule, UpdateType
from .rules import effective_policy, matches_any

_ALLOWED: dict[UpdatePolicy, frozenset[UpdateType]] = {
    UpdatePolicy.PATCH: frozenset({UpdateType.PATCH}),
    UpdatePolicy.MINOR: frozenset({UpdateType.PATCH, UpdateType.MINOR}),
    UpdatePolicy.MAJOR: frozenset(UpdateType),
}


def is_allowed(update_type: UpdateType, ceiling: UpdatePolicy) -> bool:
    """Check whether an update category fits under a policy ceiling."""
    return update_type in _ALLOWED[ceiling]


def apply(
    candidates: list[UpdateCandidate],
    ceiling: UpdatePolicy,
    exclude_patterns: list[str] | None = None,
    rules: list[UpdateRule] | None = None,
) -> list[UpdateCandidate]:
    """Narrow candidates to those the policy admits.

    Args:
        candidates: Classified update candidates
        ceiling: Global policy ceiling
        exclude_patterns: Package patterns that are never updated
        rules: Per-package overrides; the first matching rule's policy
            replaces the global ceiling for that package

    Returns:
        Admissible candidates, in input order
    """
    exclude_patterns = exclude_patterns or []
    rules = rules or []

    admissible = []
    for candidate in candidates:
        if matches_any(candidate.package_id, exclude_patterns):
            continue
        policy = effective_policy(candidate.package_id, rules, ceiling)
        if is_allowed(candidate.update_type, policy):
            admissible.append(candidate)
    return admissible
