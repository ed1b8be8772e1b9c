from __future__ import annotations

from typing import Sequence

from ..domain.enums import Ecosystem
from ..services.advisory_cache import AdvisoryCache


class FetchVulnerabilitiesUseCase:
    def __init__(self, cache: AdvisoryCache) -> None:
        self._cache = cache

    def execute(self, ecosystems: Sequence[str] = ()) -> int:
        """Refresh the named ecosystems, or all of them when none are named.

        Unknown names raise ValueError before anything is fetched.
        """
        wanted = {Ecosystem.from_str(name) for name in ecosystems}
        return self._cache.refresh(wanted)
