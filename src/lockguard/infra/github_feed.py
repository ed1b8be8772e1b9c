from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from github import Github, GithubException, RateLimitExceededException
from pydantic import ValidationError

from ..core.domain.enums import Ecosystem, Severity, VulnSource, cvss_base_score
from ..core.domain.errors import NetworkError
from ..core.domain.models import Vulnerability
from ..core.ports.clock_port import ClockPort
from ..core.ports.feed_port import AdvisoryFeedPort
from ..core.services.ranges import RangeError, build_fixed_expression, join_alternatives, parse_range
from .osv_feed import normalize_name, parse_timestamp
from .schemas import GitHubAdvisory

logger = logging.getLogger(__name__)


# GitHub's ecosystem names; CocoaPods has no GitHub ecosystem.
GITHUB_ECOSYSTEMS: dict[Ecosystem, str] = {
    Ecosystem.NPM: "npm",
    Ecosystem.PYPI: "pip",
    Ecosystem.MAVEN: "maven",
    Ecosystem.NUGET: "nuget",
    Ecosystem.RUBYGEMS: "rubygems",
    Ecosystem.PACKAGIST: "composer",
    Ecosystem.GO: "go",
    Ecosystem.CRATES_IO: "rust",
    Ecosystem.HEX: "erlang",
    Ecosystem.PUB: "pub",
    Ecosystem.SWIFTURL: "swift",
}


def _lower_bound(ecosystem: Ecosystem, expression: str) -> Optional[str]:
    try:
        return parse_range(expression, ecosystem).lower_bound()
    except RangeError:
        return None


def _score(adv: GitHubAdvisory) -> Optional[float]:
    if adv.cvss is not None:
        if adv.cvss.score:
            return float(adv.cvss.score)
        if adv.cvss.vector_string:
            return cvss_base_score(adv.cvss.vector_string)
    return None


def to_records(adv: GitHubAdvisory, ecosystem: Ecosystem, fetched_at: Optional[datetime] = None) -> list[Vulnerability]:
    if adv.withdrawn_at:
        logger.debug("Skipping withdrawn advisory %s", adv.ghsa_id)
        return []
    gh_ecosystem = GITHUB_ECOSYSTEMS.get(ecosystem)

    per_package: dict[str, tuple[list[str], list[tuple[Optional[str], Optional[str]]]]] = {}
    for vuln in adv.vulnerabilities or []:
        if vuln.package is None or vuln.package.ecosystem != gh_ecosystem:
            continue
        exprs, intervals = per_package.setdefault(normalize_name(ecosystem, vuln.package.name), ([], []))
        if vuln.vulnerable_version_range:
            exprs.append(vuln.vulnerable_version_range.strip())
            intervals.append((_lower_bound(ecosystem, vuln.vulnerable_version_range), vuln.patched))
        elif vuln.patched:
            intervals.append((None, vuln.patched))

    score = _score(adv)
    severity = Severity.parse(adv.severity) or (Severity.from_score(score) if score else Severity.MEDIUM)
    aliases = [adv.cve_id] if adv.cve_id else []
    aliases += [i.value for i in adv.identifiers or [] if i.value not in aliases and i.value != adv.ghsa_id]
    references = tuple(dict.fromkeys(r if isinstance(r, str) else r.url for r in adv.references or []))

    return [
        Vulnerability(
            id=adv.ghsa_id,
            source=VulnSource.GITHUB,
            severity=severity,
            title=adv.summary or adv.ghsa_id,
            affected_package=name,
            affected_ecosystem=ecosystem,
            cvss_score=score,
            description=adv.description or None,
            affected_versions=join_alternatives(exprs),
            fixed_versions=build_fixed_expression(ecosystem, intervals),
            published_at=parse_timestamp(adv.published_at),
            modified_at=parse_timestamp(adv.updated_at),
            fetched_at=fetched_at,
            references=references,
            aliases=tuple(aliases),
        )
        for name, (exprs, intervals) in per_package.items()
    ]


class GitHubAdvisoryFeed(AdvisoryFeedPort):
    """Reviewed advisories from the GitHub Advisory Database, paged through PyGithub."""

    source = VulnSource.GITHUB

    def __init__(self, github_client: Github, clock: ClockPort) -> None:
        self._github = github_client
        self._clock = clock

    def supports(self, ecosystem: Ecosystem) -> bool:
        return ecosystem in GITHUB_ECOSYSTEMS

    def fetch(self, ecosystem: Ecosystem) -> Sequence[Vulnerability]:
        if not self.supports(ecosystem):
            return []
        gh_ecosystem = GITHUB_ECOSYSTEMS[ecosystem]
        logger.info("Fetching GitHub advisories for %s", gh_ecosystem)
        try:
            raw: list[dict[str, Any]] = [
                adv.raw_data for adv in self._github.get_global_advisories(ecosystem=gh_ecosystem, type="reviewed")
            ]
        except RateLimitExceededException as exc:
            logger.error("GitHub API rate limit exceeded while fetching %s advisories", gh_ecosystem)
            raise NetworkError(self.source.value, "rate limit exceeded", ecosystem) from exc
        except GithubException as exc:
            raise NetworkError(self.source.value, f"HTTP {exc.status}: {exc.data}", ecosystem) from exc
        except OSError as exc:
            # requests' connection errors derive from OSError
            raise NetworkError(self.source.value, str(exc) or type(exc).__name__, ecosystem) from exc

        fetched_at = self._clock.now()
        records: list[Vulnerability] = []
        for data in raw:
            try:
                adv = GitHubAdvisory.model_validate(data)
            except ValidationError as exc:
                logger.warning("Skipping malformed GitHub advisory %s (%d errors)", data.get("ghsa_id"), exc.error_count())
                continue
            records.extend(to_records(adv, ecosystem, fetched_at))
        logger.info("GitHub %s: %d records from %d advisories", gh_ecosystem, len(records), len(raw))
        return records
