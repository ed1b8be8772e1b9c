from __future__ import annotations

import logging
from typing import Callable, Iterable, Sequence

from ..domain.enums import Ecosystem
from ..domain.models import PackageDeclaration, Vulnerability, VulnMatch
from .ranges import RangeError, parse_range

logger = logging.getLogger(__name__)

Lookup = Callable[[Ecosystem, str], Sequence[Vulnerability]]


def match_order(m: VulnMatch) -> tuple:
    """Sort key: severity desc, CVSS desc (unknown last), then id asc."""
    v = m.vulnerability
    score = v.cvss_score
    return (-v.severity.rank, score is None, -(score or 0.0), v.id, m.package_name)


class VersionMatcher:
    """Decide which advisory records apply to a resolved package version."""

    def __init__(self, match_without_range: bool = False) -> None:
        self._match_without_range = match_without_range

    def is_affected(self, package: PackageDeclaration, vuln: Vulnerability) -> bool:
        if not package.pinned:
            return False
        if vuln.affected_ecosystem is not package.ecosystem or vuln.affected_package != package.name:
            return False
        try:
            if vuln.fixed_versions and parse_range(vuln.fixed_versions, package.ecosystem, ">=").contains(package.version):
                return False
            if not vuln.affected_versions:
                return self._match_without_range
            return parse_range(vuln.affected_versions, package.ecosystem, "=").contains(package.version)
        except RangeError as exc:
            logger.debug("Skipping %s for %s@%s: %s", vuln.id, package.name, package.version, exc)
            return False

    def match(self, package: PackageDeclaration, candidates: Iterable[Vulnerability]) -> list[VulnMatch]:
        return [
            VulnMatch(package_name=package.name, installed_version=package.version, vulnerability=v)
            for v in candidates
            if self.is_affected(package, v)
        ]

    def match_all(self, packages: Iterable[PackageDeclaration], lookup: Lookup) -> list[VulnMatch]:
        """Match every package, one match per (package name, vulnerability id)."""
        seen: dict[tuple[str, str], VulnMatch] = {}
        for package in packages:
            if not package.pinned:
                continue
            for m in self.match(package, lookup(package.ecosystem, package.name)):
                key = (m.package_name, m.vulnerability.id)
                current = seen.get(key)
                if current is None or match_order(m) < match_order(current):
                    seen[key] = m
        matches = sorted(seen.values(), key=match_order)
        logger.debug("Matched %d advisories", len(matches))
        return matches
