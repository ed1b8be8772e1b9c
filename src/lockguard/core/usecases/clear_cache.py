from __future__ import annotations

from ..services.advisory_cache import AdvisoryCache


class ClearCacheUseCase:
    """Drop every cached advisory. Scan history is an audit trail and stays."""

    def __init__(self, cache: AdvisoryCache) -> None:
        self._cache = cache

    def execute(self) -> None:
        self._cache.clear()
