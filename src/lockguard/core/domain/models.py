from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from .enums import Ecosystem, ScanState, Severity, VulnSource


@dataclass(frozen=True)
class Vulnerability:
    id: str
    source: VulnSource
    severity: Severity
    title: str
    affected_package: str
    affected_ecosystem: Ecosystem

    cvss_score: Optional[float] = None
    description: Optional[str] = None
    affected_versions: Optional[str] = None
    fixed_versions: Optional[str] = None

    published_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    fetched_at: Optional[datetime] = None

    references: tuple[str, ...] = field(default_factory=tuple)
    aliases: tuple[str, ...] = field(default_factory=tuple)

    @property
    def revision(self) -> Optional[datetime]:
        """Timestamp used to decide which copy of a record is newer."""
        return self.modified_at or self.published_at or self.fetched_at

    @property
    def cve_id(self) -> Optional[str]:
        if self.id.startswith("CVE-"):
            return self.id
        for a in self.aliases:
            if a.startswith("CVE-"):
                return a
        return None

    def same_content(self, other: "Vulnerability") -> bool:
        """Compare everything except the local fetch timestamp."""
        return replace(self, fetched_at=None) == replace(other, fetched_at=None)

    def with_updates(self, **kwargs) -> "Vulnerability":
        return replace(self, **kwargs)


@dataclass(frozen=True)
class PackageDeclaration:
    name: str
    version: str
    ecosystem: Ecosystem
    # False when the file only states a constraint (e.g. "requests>=2") rather than a resolved version.
    pinned: bool = True
    source_file: Optional[str] = None


@dataclass(frozen=True)
class VulnMatch:
    package_name: str
    installed_version: str
    vulnerability: Vulnerability

    @property
    def severity(self) -> Severity:
        return self.vulnerability.severity

    @property
    def ecosystem(self) -> Ecosystem:
        return self.vulnerability.affected_ecosystem


@dataclass(frozen=True)
class DetectedLockfile:
    ecosystem: Ecosystem
    path: str

    @property
    def filename(self) -> str:
        return self.path.replace("\\", "/").rsplit("/", 1)[-1]


@dataclass(frozen=True)
class ScanWarning:
    message: str
    path: Optional[str] = None
    ecosystem: Optional[Ecosystem] = None


@dataclass(frozen=True)
class CoverageCaveat:
    """A note that a file cannot give complete coverage of its ecosystem."""

    ecosystem: Ecosystem
    path: str
    message: str
    unpinned: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SeverityReport:
    groups: tuple[tuple[Severity, tuple[VulnMatch, ...]], ...]
    total: int

    @property
    def counts(self) -> dict[Severity, int]:
        return {sev: len(items) for sev, items in self.groups}

    def group(self, severity: Severity) -> tuple[VulnMatch, ...]:
        for sev, items in self.groups:
            if sev is severity:
                return items
        return ()


@dataclass(frozen=True)
class ScanResult:
    directory: str
    ecosystems: frozenset[Ecosystem]
    matches: tuple[VulnMatch, ...]
    scanned_at: datetime
    total_packages: int
    summary: SeverityReport
    lockfiles: tuple[DetectedLockfile, ...] = field(default_factory=tuple)
    warnings: tuple[ScanWarning, ...] = field(default_factory=tuple)
    caveats: tuple[CoverageCaveat, ...] = field(default_factory=tuple)

    @property
    def is_partial(self) -> bool:
        return bool(self.warnings)


@dataclass(frozen=True)
class ScanHistory:
    id: int
    directory: str
    ecosystem: Ecosystem
    vuln_count: int
    scanned_at: datetime


@dataclass(frozen=True)
class ScanTransition:
    state: ScanState
    at: datetime


@dataclass(frozen=True)
class VulnerabilityPage:
    """One page of cached advisory records, with the total across all pages."""

    items: tuple[Vulnerability, ...]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit) if self.total else 0
