from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

from ..domain.enums import Ecosystem, Severity
from ..domain.models import SeverityReport, VulnMatch

_ORDER = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW)


def aggregate(matches: Sequence[VulnMatch]) -> SeverityReport:
    """Group matches by severity, critical first, keeping their relative order."""
    buckets: dict[Severity, list[VulnMatch]] = {sev: [] for sev in _ORDER}
    for m in matches:
        buckets[m.severity].append(m)
    groups = tuple((sev, tuple(buckets[sev])) for sev in _ORDER)
    return SeverityReport(groups=groups, total=len(matches))


def counts_by_ecosystem(ecosystems: Iterable[Ecosystem], matches: Iterable[VulnMatch]) -> list[tuple[Ecosystem, int]]:
    """Match counts for each given ecosystem, zero included, in enum order."""
    counter = Counter(m.ecosystem for m in matches)
    wanted = set(ecosystems)
    return [(eco, counter.get(eco, 0)) for eco in Ecosystem if eco in wanted]
