"""NuGet package version values.

NuGet versions follow SemVer 2.0 with an optional fourth "revision"
component (``1.2.3.4``) and tolerate short forms such as ``1.0``. PEP 440
parsing would normalize prerelease labels (``1.0.0-beta`` becomes
``1.0.0b0``), so versions are parsed here and the original text is kept
for writing back to project files.
"""

import re
from dataclasses import dataclass, field
from functools import total_ordering

_VERSION_RE = re.compile(
    r"""
    ^\s*v?
    (?P<release>\d+(?:\.\d+){0,3})
    (?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?
    (?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?
    \s*$
    """,
    re.VERBOSE,
)


class InvalidVersion(ValueError):
    """Raised when a string is not a valid package version."""


@total_ordering
@dataclass(frozen=True, eq=False)
class PackageVersion:
    """A parsed package version."""

    major: int
    minor: int = 0
    patch: int = 0
    revision: int = 0
    prerelease: tuple[str, ...] = ()
    build: str | None = None
    original: str = field(default="", compare=False)

    @classmethod
    def parse(cls, text: str) -> "PackageVersion":
        """Parse a version string.

        Raises:
            InvalidVersion: If the string is not a valid version.
        """
        if not isinstance(text, str):
            raise InvalidVersion(f"Invalid version: {text!r}")

        match = _VERSION_RE.match(text)
        if not match:
            raise InvalidVersion(f"Invalid version: {text!r}")

        parts = [int(p) for p in match.group("release").split(".")]
        parts += [0] * (4 - len(parts))
        pre = tuple(match.group("pre").split(".")) if match.group("pre") else ()

        return cls(
            major=parts[0],
            minor=parts[1],
            patch=parts[2],
            revision=parts[3],
            prerelease=pre,
            build=match.group("build"),
            original=text.strip(),
        )

    @classmethod
    def try_parse(cls, text: str | None) -> "PackageVersion | None":
        """Parse a version string, returning None when it is invalid."""
        if not text:
            return None
        try:
            return cls.parse(text)
        except InvalidVersion:
            return None

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def release(self) -> tuple[int, int, int, int]:
        return (self.major, self.minor, self.patch, self.revision)

    def _prerelease_key(self) -> tuple:
        # Releases sort after every prerelease of the same numeric version.
        if not self.prerelease:
            return (1,)
        identifiers = []
        for ident in self.prerelease:
            if ident.isdigit():
                identifiers.append((0, int(ident), ""))
            else:
                identifiers.append((1, 0, ident.lower()))
        return (0, tuple(identifiers))

    def _key(self) -> tuple:
        return (self.release, self._prerelease_key())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "PackageVersion") -> bool:
        if not isinstance(other, PackageVersion):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        if self.original:
            return self.original
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.revision:
            text += f".{self.revision}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + self.build
        return text

    def __repr__(self) -> str:
        return f"PackageVersion('{self}')"
