from __future__ import annotations

import io
import logging
import zipfile
from datetime import datetime
from typing import Iterable, Optional, Sequence

import httpx
from packaging.utils import canonicalize_name
from pydantic import ValidationError

from ..config.urls import get_osv_zip_url
from ..core.domain.enums import Ecosystem, Severity, VulnSource, cvss_base_score
from ..core.domain.errors import NetworkError
from ..core.domain.models import Vulnerability
from ..core.ports.clock_port import ClockPort
from ..core.ports.feed_port import AdvisoryFeedPort
from ..core.services.ranges import build_fixed_expression, interval_expression, join_alternatives
from .http_client import HttpClient
from .schemas import OsvAffected, OsvSeverity, OsvVulnerability

logger = logging.getLogger(__name__)

# Ecosystems with an export in the OSV bucket. CocoaPods has none.
OSV_ECOSYSTEMS: frozenset[Ecosystem] = frozenset(
    {
        Ecosystem.NPM,
        Ecosystem.CRATES_IO,
        Ecosystem.PYPI,
        Ecosystem.GO,
        Ecosystem.MAVEN,
        Ecosystem.NUGET,
        Ecosystem.RUBYGEMS,
        Ecosystem.PACKAGIST,
        Ecosystem.PUB,
        Ecosystem.HEX,
        Ecosystem.SWIFTURL,
    }
)


def normalize_name(ecosystem: Ecosystem, name: str) -> str:
    """Store PyPI names in PEP 503 form so they line up with parsed requirements."""
    if ecosystem is Ecosystem.PYPI:
        return canonicalize_name(name)
    return name


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unreadable timestamp %r", value)
        return None


def _best_score(entries: Iterable[OsvSeverity]) -> Optional[float]:
    scores = [s for s in (cvss_base_score(str(e.score)) for e in entries) if s is not None]
    return max(scores) if scores else None


def _package_ranges(affected: OsvAffected) -> tuple[list[str], list[tuple[Optional[str], Optional[str]]]]:
    """Affected expressions and (introduced, fixed) intervals of one affected entry."""
    expressions: list[str] = []
    intervals: list[tuple[Optional[str], Optional[str]]] = []
    for rng in affected.ranges or []:
        if rng.type.upper() == "GIT":
            continue
        introduced: Optional[str] = None
        is_open = False
        for ev in rng.events:
            if ev.introduced is not None:
                if is_open:
                    expressions.append(interval_expression(introduced))
                    intervals.append((introduced, None))
                introduced, is_open = ev.introduced, True
                continue
            if not is_open:
                continue
            expressions.append(interval_expression(introduced, ev.fixed, ev.last_affected, ev.limit))
            intervals.append((introduced, ev.fixed))
            is_open = False
        if is_open:
            expressions.append(interval_expression(introduced))
            intervals.append((introduced, None))
    if not expressions and affected.versions:
        expressions.extend(f"={v}" for v in affected.versions)
    return expressions, intervals


def to_records(osv: OsvVulnerability, ecosystem: Ecosystem, fetched_at: Optional[datetime] = None) -> list[Vulnerability]:
    """One record per affected package of the ecosystem. Withdrawn advisories yield nothing."""
    if osv.withdrawn:
        logger.debug("Skipping withdrawn advisory %s", osv.id)
        return []

    label = Severity.parse(osv.database_specific.severity) if osv.database_specific else None
    base_score = _best_score(osv.severity or [])
    description = osv.details or None
    title = osv.summary or (description.strip().splitlines()[0] if description and description.strip() else osv.id)
    references = tuple(dict.fromkeys(r.url for r in osv.references or []))

    per_package: dict[str, tuple[list[str], list, list[OsvSeverity]]] = {}
    for aff in osv.affected or []:
        if aff.package.ecosystem.split(":", 1)[0] != ecosystem.value:
            continue
        exprs, intervals = _package_ranges(aff)
        bucket = per_package.setdefault(normalize_name(ecosystem, aff.package.name), ([], [], []))
        bucket[0].extend(exprs)
        bucket[1].extend(intervals)
        bucket[2].extend(aff.severity or [])

    records: list[Vulnerability] = []
    for name, (exprs, intervals, pkg_severity) in per_package.items():
        score = _best_score(pkg_severity) or base_score
        severity = label or (Severity.from_score(score) if score else Severity.MEDIUM)
        records.append(
            Vulnerability(
                id=osv.id,
                source=VulnSource.OSV,
                severity=severity,
                title=title,
                affected_package=name,
                affected_ecosystem=ecosystem,
                cvss_score=score,
                description=description,
                affected_versions=join_alternatives(exprs),
                fixed_versions=build_fixed_expression(ecosystem, intervals),
                published_at=parse_timestamp(osv.published),
                modified_at=parse_timestamp(osv.modified),
                fetched_at=fetched_at,
                references=references,
                aliases=tuple(osv.aliases or ()),
            )
        )
    return records


class OsvFeed(AdvisoryFeedPort):
    """Full per-ecosystem export from the OSV bucket."""

    source = VulnSource.OSV

    def __init__(self, http_client: HttpClient, clock: ClockPort) -> None:
        self._http = http_client
        self._clock = clock

    def supports(self, ecosystem: Ecosystem) -> bool:
        return ecosystem in OSV_ECOSYSTEMS

    def fetch(self, ecosystem: Ecosystem) -> Sequence[Vulnerability]:
        url = get_osv_zip_url(ecosystem.value)
        logger.info("Downloading OSV export for %s", ecosystem.value)
        try:
            content = self._http.get_bytes(url)
        except httpx.HTTPError as exc:
            raise NetworkError(self.source.value, str(exc) or type(exc).__name__, ecosystem) from exc

        try:
            archive = zipfile.ZipFile(io.BytesIO(content))
        except zipfile.BadZipFile as exc:
            raise NetworkError(self.source.value, f"corrupt archive: {exc}", ecosystem) from exc

        fetched_at = self._clock.now()
        records: list[Vulnerability] = []
        skipped = 0
        with archive:
            for info in archive.infolist():
                if info.is_dir() or not info.filename.endswith(".json"):
                    continue
                try:
                    osv = OsvVulnerability.model_validate_json(archive.read(info))
                except ValidationError as exc:
                    skipped += 1
                    logger.warning("Skipping malformed OSV entry %s (%d errors)", info.filename, exc.error_count())
                    continue
                records.extend(to_records(osv, ecosystem, fetched_at))
        logger.info("OSV %s: %d records (%d entries skipped)", ecosystem.value, len(records), skipped)
        return records
