"""Package name matching against exclusion patterns and update rules."""

import re
from functools import lru_cache

from .models import UpdatePolicy, UpdateRule

WILDCARD = "*"


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern:
    # Only '*' is special; everything else matches literally.
    body = ".*".join(re.escape(part) for part in pattern.split(WILDCARD))
    return re.compile(body, re.IGNORECASE | re.DOTALL)


def match(name: str, pattern: str) -> bool:
    """Check whether a package name matches a pattern.

    Without a wildcard the comparison is an exact, case-insensitive string
    comparison. With ``*`` the whole name must match, where ``*`` stands for
    zero or more arbitrary characters.

    Args:
        name: Package id to test
        pattern: Exact name or glob-style pattern

    Returns:
        True if the name matches
    """
    if not pattern or not pattern.strip():
        return False

    if WILDCARD not in pattern:
        return name.casefold() == pattern.casefold()

    return _compile(pattern).fullmatch(name) is not None


def matches_any(name: str, patterns: list[str]) -> bool:
    """Check whether a package name matches any of the patterns."""
    return any(match(name, pattern) for pattern in patterns)


def find_matching_rule(name: str, rules: list[UpdateRule]) -> UpdateRule | None:
    """Return the first rule whose pattern matches, in list order.

    Earlier rules win even when a later pattern is more specific.
    """
    if not name or not name.strip():
        raise ValueError("Package id cannot be empty")

    for rule in rules or []:
        if match(name, rule.pattern):
            return rule
    return None


def effective_policy(
    name: str, rules: list[UpdateRule], default: UpdatePolicy
) -> UpdatePolicy:
    """Policy ceiling for a package: matching rule first, then the default."""
    rule = find_matching_rule(name, rules)
    return rule.policy if rule else default


def group_by_policy(
    names: list[str], rules: list[UpdateRule], default: UpdatePolicy
) -> dict[UpdatePolicy, list[str]]:
    """Group package ids by their effective policy."""
    groups: dict[UpdatePolicy, list[str]] = {policy: [] for policy in UpdatePolicy}
    for name in names:
        groups[effective_policy(name, rules, default)].append(name)
    return groups
