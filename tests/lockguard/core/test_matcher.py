from __future__ import annotations

from lockguard.core.domain.enums import Ecosystem, Severity
from lockguard.core.domain.models import PackageDeclaration
from lockguard.core.services.matcher import VersionMatcher


def _pkg(name="lodash", version="4.17.15", eco=Ecosystem.NPM, pinned=True) -> PackageDeclaration:
    return PackageDeclaration(name=name, version=version, ecosystem=eco, pinned=pinned)


def test_lodash_vulnerable_version_matches_and_fixed_does_not(make_vuln):
    vuln = make_vuln(affected="<4.17.21", fixed=">=4.17.21")
    matcher = VersionMatcher()
    assert matcher.is_affected(_pkg(version="4.17.15"), vuln)
    assert not matcher.is_affected(_pkg(version="4.17.21"), vuln)


def test_fixed_expression_takes_precedence(make_vuln):
    # affected says everything, but 2.x carries the fix
    vuln = make_vuln(package="pkg", affected="*", fixed="2.0.0")
    matcher = VersionMatcher()
    assert matcher.is_affected(_pkg("pkg", "1.9.0"), vuln)
    assert not matcher.is_affected(_pkg("pkg", "2.0.0"), vuln)


def test_record_without_range_is_excluded_unless_configured(make_vuln):
    vuln = make_vuln(affected=None, fixed=None)
    assert not VersionMatcher().is_affected(_pkg(), vuln)
    assert VersionMatcher(match_without_range=True).is_affected(_pkg(), vuln)


def test_unreadable_range_is_excluded(make_vuln):
    vuln = make_vuln(affected="[4.0", fixed=None)
    assert not VersionMatcher(match_without_range=True).is_affected(_pkg(), vuln)


def test_unpinned_declaration_is_never_matched(make_vuln):
    vuln = make_vuln(affected="*", fixed=None)
    assert not VersionMatcher().is_affected(_pkg(version=">=4.0", pinned=False), vuln)


def test_other_package_or_ecosystem_is_not_matched(make_vuln):
    vuln = make_vuln(affected="*", fixed=None)
    matcher = VersionMatcher()
    assert not matcher.is_affected(_pkg(name="underscore"), vuln)
    assert not matcher.is_affected(_pkg(eco=Ecosystem.PYPI), vuln)


def test_match_all_dedupes_and_sorts(make_vuln):
    low = make_vuln(id="GHSA-low", severity=Severity.LOW, cvss_score=2.0)
    high_scored = make_vuln(id="GHSA-b", severity=Severity.HIGH, cvss_score=8.1)
    high_unscored = make_vuln(id="GHSA-a", severity=Severity.HIGH)
    critical = make_vuln(id="GHSA-crit", severity=Severity.CRITICAL, cvss_score=9.8)
    db = {("npm", "lodash"): [low, high_unscored, high_scored, critical]}

    def lookup(eco, name):
        return db.get((eco.value, name), [])

    packages = [_pkg(), _pkg(), _pkg("left-pad", "1.0.0")]
    matches = VersionMatcher().match_all(packages, lookup)

    assert [m.vulnerability.id for m in matches] == ["GHSA-crit", "GHSA-b", "GHSA-a", "GHSA-low"]
    assert all(m.package_name == "lodash" and m.installed_version == "4.17.15" for m in matches)


def test_pypi_names_and_pep440_ranges(make_vuln):
    vuln = make_vuln(package="django", ecosystem=Ecosystem.PYPI, affected=">=3.2, <3.2.19", fixed=">=3.2.19")
    matcher = VersionMatcher()
    assert matcher.is_affected(_pkg("django", "3.2.18", Ecosystem.PYPI), vuln)
    assert not matcher.is_affected(_pkg("django", "3.2.19", Ecosystem.PYPI), vuln)
