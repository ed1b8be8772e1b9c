from __future__ import annotations

from typing import Optional

from ..domain.enums import Ecosystem
from ..domain.models import Vulnerability
from ..services.advisory_cache import AdvisoryCache


class VulnerabilityDetailUseCase:
    def __init__(self, cache: AdvisoryCache) -> None:
        self._cache = cache

    def execute(self, advisory_id: str) -> Optional[Vulnerability]:
        return self._cache.get(advisory_id)


class CountVulnerabilitiesUseCase:
    def __init__(self, cache: AdvisoryCache) -> None:
        self._cache = cache

    def execute(self, ecosystem: Optional[str] = None) -> int:
        return self._cache.count(Ecosystem.from_str(ecosystem) if ecosystem else None)
