from __future__ import annotations

from enum import Enum
from typing import Optional

from cvss import CVSS2, CVSS3, CVSS4
from cvss.exceptions import CVSSError


class Ecosystem(Enum):
    NPM = "npm"
    CRATES_IO = "crates.io"
    PYPI = "PyPI"
    GO = "Go"
    MAVEN = "Maven"
    NUGET = "NuGet"
    RUBYGEMS = "RubyGems"
    PACKAGIST = "Packagist"
    PUB = "Pub"
    HEX = "Hex"
    COCOAPODS = "CocoaPods"
    SWIFTURL = "SwiftURL"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def from_str(cls, value: str) -> "Ecosystem":
        """Resolve an ecosystem from its OSV tag, display name or enum name.

        Matching is case-insensitive, so "pypi", "PyPI" and "pip" all resolve.
        Raises ValueError for anything else.
        """
        key = value.strip().lower()
        for eco in cls:
            if key in (eco.value.lower(), eco.name.lower(), eco.display_name.lower()):
                return eco
        alias = _ALIASES.get(key)
        if alias is not None:
            return alias
        raise ValueError(f"Unknown ecosystem: {value!r}")


_DISPLAY_NAMES = {
    Ecosystem.NPM: "npm",
    Ecosystem.CRATES_IO: "Cargo",
    Ecosystem.PYPI: "pip",
    Ecosystem.GO: "Go",
    Ecosystem.MAVEN: "Maven/Gradle",
    Ecosystem.NUGET: "NuGet",
    Ecosystem.RUBYGEMS: "RubyGems",
    Ecosystem.PACKAGIST: "Composer",
    Ecosystem.PUB: "Pub",
    Ecosystem.HEX: "Hex",
    Ecosystem.COCOAPODS: "CocoaPods",
    Ecosystem.SWIFTURL: "SwiftPM",
}

_ALIASES = {
    "cargo": Ecosystem.CRATES_IO,
    "rust": Ecosystem.CRATES_IO,
    "python": Ecosystem.PYPI,
    "golang": Ecosystem.GO,
    "gradle": Ecosystem.MAVEN,
    "composer": Ecosystem.PACKAGIST,
    "dart": Ecosystem.PUB,
    "elixir": Ecosystem.HEX,
    "erlang": Ecosystem.HEX,
    "swift": Ecosystem.SWIFTURL,
}

LOCKFILE_NAMES: dict[Ecosystem, tuple[str, ...]] = {
    Ecosystem.NPM: ("package-lock.json", "pnpm-lock.yaml", "yarn.lock"),
    Ecosystem.CRATES_IO: ("Cargo.lock",),
    Ecosystem.PYPI: ("requirements.txt", "poetry.lock", "Pipfile.lock"),
    Ecosystem.GO: ("go.sum",),
    Ecosystem.MAVEN: ("pom.xml", "gradle.lockfile"),
    Ecosystem.NUGET: ("packages.lock.json",),
    Ecosystem.RUBYGEMS: ("Gemfile.lock",),
    Ecosystem.PACKAGIST: ("composer.lock",),
    Ecosystem.PUB: ("pubspec.lock",),
    Ecosystem.HEX: ("mix.lock",),
    Ecosystem.COCOAPODS: ("Podfile.lock",),
    Ecosystem.SWIFTURL: ("Package.resolved",),
}


class Severity(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def from_score(cls, score: float) -> "Severity":
        if score >= 9.0:
            return cls.CRITICAL
        if score >= 7.0:
            return cls.HIGH
        if score >= 4.0:
            return cls.MEDIUM
        return cls.LOW

    @classmethod
    def parse(cls, value: str | None) -> Optional["Severity"]:
        """Parse a severity from a label, CVSS vector or numeric score.

        - Labels (case-insensitive): critical, high, medium, moderate->MEDIUM, low
        - CVSS vector (starts with "CVSS:" or is a bare v2 vector): base score via cvss
        - Numeric string: map by standard thresholds

        Returns None when the value says nothing usable.
        """
        if value is None:
            return None
        s = value.strip()
        if not s:
            return None
        label = _LABELS.get(s.lower())
        if label is not None:
            return label
        score = cvss_base_score(s)
        if score is None:
            try:
                score = float(s)
            except ValueError:
                return None
        if score <= 0.0:
            return None
        return cls.from_score(score)

    @classmethod
    def canonical(cls, value: str | None) -> "Severity":
        """Like parse(), but unrecognized values fall back to MEDIUM."""
        return cls.parse(value) or cls.MEDIUM


_SEVERITY_RANK = {Severity.CRITICAL: 4, Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}

_LABELS = {
    "critical": Severity.CRITICAL,
    "high": Severity.HIGH,
    "important": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "low": Severity.LOW,
}


def cvss_base_score(vector: str) -> float | None:
    """Compute the base score of a CVSS v2, v3.x or v4.0 vector string."""
    v = vector.strip()
    upper = v.upper()
    try:
        if upper.startswith("CVSS:4.0/"):
            return float(CVSS4(v).base_score)
        if upper.startswith("CVSS:3."):
            return float(CVSS3(v).scores()[0])
        if "AV:" in upper and "AU:" in upper:
            return float(CVSS2(v).scores()[0])
    except CVSSError:
        return None
    return None


class VulnSource(Enum):
    OSV = "osv"
    NVD = "nvd"
    GITHUB = "github"


class ScanState(Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    PARSING = "parsing"
    MATCHING = "matching"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanState.DONE, ScanState.FAILED, ScanState.CANCELLED)
