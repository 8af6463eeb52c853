"""Semantic versioning utilities."""

import re
from dataclasses import dataclass
from functools import total_ordering


@total_ordering
@dataclass
class SemVer:
    """Semantic version representation.

    Parsing is lenient the way marketplace manifests need it: a leading
    ``v`` is ignored and a missing minor or patch component defaults to 0.
    """

    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    build: str | None = None

    _SEMVER_PATTERN = re.compile(
        r"^v?(?P<major>0|[1-9]\d*)(?:\.(?P<minor>0|[1-9]\d*))?(?:\.(?P<patch>0|[1-9]\d*))?"
        r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
        r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
    )

    @classmethod
    def parse(cls, version_str: str) -> "SemVer":
        """Parse a version string.

        Args:
            version_str: Version string (e.g., "1.2.3", "v2.0.0-beta.1")

        Returns:
            SemVer instance

        Raises:
            ValueError: If the string is not a recognizable version
        """
        match = cls._SEMVER_PATTERN.match(version_str.strip())
        if not match:
            raise ValueError(f"Invalid semver: {version_str}")

        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor") or 0),
            patch=int(match.group("patch") or 0),
            prerelease=match.group("prerelease"),
            build=match.group("build"),
        )

    def __str__(self) -> str:
        version = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            version += f"-{self.prerelease}"
        if self.build:
            version += f"+{self.build}"
        return version

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return (self.major, self.minor, self.patch, self.prerelease) == (
            other.major,
            other.minor,
            other.patch,
            other.prerelease,
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented

        core_self = (self.major, self.minor, self.patch)
        core_other = (other.major, other.minor, other.patch)
        if core_self != core_other:
            return core_self < core_other

        # A prerelease sorts before its release
        if self.prerelease and not other.prerelease:
            return True
        if not self.prerelease and other.prerelease:
            return False
        if self.prerelease and other.prerelease:
            return _compare_prerelease(self.prerelease, other.prerelease) < 0
        return False

    def __hash__(self) -> int:
        return hash((self.major, self.minor, self.patch, self.prerelease))


def _compare_prerelease(a: str, b: str) -> int:
    parts_a = a.split(".")
    parts_b = b.split(".")
    for pa, pb in zip(parts_a, parts_b, strict=False):
        if pa.isdigit() and pb.isdigit():
            if int(pa) != int(pb):
                return int(pa) - int(pb)
        elif pa.isdigit() != pb.isdigit():
            # Numeric identifiers have lower precedence than alphanumeric ones
            return -1 if pa.isdigit() else 1
        elif pa != pb:
            return -1 if pa < pb else 1
    return len(parts_a) - len(parts_b)


def is_newer_version(candidate: str, current: str) -> bool:
    """Check whether ``candidate`` is a newer version than ``current``.

    Falls back to plain string comparison (after stripping a leading ``v``)
    when either side is not a parseable version.

    Args:
        candidate: Version offered by a marketplace
        current: Version recorded as installed

    Returns:
        True if candidate is newer
    """
    try:
        return SemVer.parse(candidate) > SemVer.parse(current)
    except ValueError:
        return candidate.removeprefix("v") > current.removeprefix("v")
