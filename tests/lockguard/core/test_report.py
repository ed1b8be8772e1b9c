from __future__ import annotations

from lockguard.core.domain.enums import Ecosystem, Severity
from lockguard.core.domain.models import VulnMatch
from lockguard.core.services.report import aggregate, counts_by_ecosystem


def _match(vuln, name="lodash", version="4.17.15"):
    return VulnMatch(package_name=name, installed_version=version, vulnerability=vuln)


def test_aggregate_groups_in_severity_order_and_counts_sum(make_vuln):
    matches = [
        _match(make_vuln(id="A", severity=Severity.MEDIUM)),
        _match(make_vuln(id="B", severity=Severity.CRITICAL)),
        _match(make_vuln(id="C", severity=Severity.MEDIUM)),
    ]
    report = aggregate(matches)

    assert [sev for sev, _ in report.groups] == [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW]
    assert report.counts == {Severity.CRITICAL: 1, Severity.HIGH: 0, Severity.MEDIUM: 2, Severity.LOW: 0}
    assert sum(report.counts.values()) == report.total == 3
    assert [m.vulnerability.id for m in report.group(Severity.MEDIUM)] == ["A", "C"]


def test_aggregate_empty():
    report = aggregate([])
    assert report.total == 0
    assert all(n == 0 for n in report.counts.values())


def test_counts_by_ecosystem_includes_zero_rows(make_vuln):
    matches = [
        _match(make_vuln(id="A")),
        _match(make_vuln(id="B", package="serde", ecosystem=Ecosystem.CRATES_IO), name="serde"),
        _match(make_vuln(id="C")),
    ]
    rows = counts_by_ecosystem({Ecosystem.GO, Ecosystem.NPM, Ecosystem.CRATES_IO}, matches)
    assert rows == [(Ecosystem.NPM, 2), (Ecosystem.CRATES_IO, 1), (Ecosystem.GO, 0)]
