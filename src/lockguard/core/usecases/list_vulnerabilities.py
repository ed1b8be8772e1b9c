from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..domain.enums import Ecosystem, Severity
from ..domain.models import Vulnerability, VulnerabilityPage
from ..services.advisory_cache import AdvisoryCache

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _newest_first(v: Vulnerability) -> tuple:
    # undated records sort last
    published = v.published_at or _OLDEST
    return (v.published_at is None, -published.timestamp(), v.id, v.affected_package)


def _matches_search(v: Vulnerability, needle: str) -> bool:
    return any(needle in text.lower() for text in (v.title, v.affected_package, v.id))


class ListVulnerabilitiesUseCase:
    def __init__(self, cache: AdvisoryCache) -> None:
        self._cache = cache

    def execute(
        self,
        *,
        ecosystem: str | None = None,
        severity: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> VulnerabilityPage:
        """Browse cached advisory records, newest published first.

        Filters combine: ecosystem and severity must equal, ``search`` is a
        case-insensitive substring of the title, package name or id. Pages
        start at 1. Unknown ecosystem or severity names and non-positive
        page or limit raise ValueError.
        """
        if page < 1:
            raise ValueError(f"page must be at least 1, got {page}")
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        eco = Ecosystem.from_str(ecosystem) if ecosystem else None
        sev = None
        if severity:
            sev = Severity.parse(severity)
            if sev is None:
                raise ValueError(f"Unknown severity: {severity!r}")
        needle = search.strip().lower() if search else ""

        logger.info(f"Listing vulnerabilities: ecosystem={ecosystem}, severity={severity}, search={search}, page={page}, limit={limit}")
        records = [
            v
            for v in self._cache.records(eco)
            if (sev is None or v.severity is sev) and (not needle or _matches_search(v, needle))
        ]
        records.sort(key=_newest_first)

        start = (page - 1) * limit
        items = tuple(records[start : start + limit])
        logger.debug(f"Matched {len(records)} records, returning {len(items)}")
        return VulnerabilityPage(items=items, total=len(records), page=page, limit=limit)
