from __future__ import annotations

from datetime import datetime
from typing import Sequence

from ..core.domain.enums import Ecosystem
from ..core.domain.models import ScanHistory
from ..core.ports.cache_port import CachePort
from ..core.ports.history_port import ScanHistoryPort
from .schemas import StoredScanHistory

_SEQ_KEY = "history:seq"
_ROW_PREFIX = "history:row:"


class DiskCacheHistoryStore(ScanHistoryPort):
    """Append-only scan history. Row ids come from an atomic counter; keys sort by id."""

    def __init__(self, cache: CachePort) -> None:
        self._cache = cache

    def append(self, directory: str, counts: Sequence[tuple[Ecosystem, int]], scanned_at: datetime) -> list[ScanHistory]:
        rows: list[ScanHistory] = []
        with self._cache.transact():
            for ecosystem, vuln_count in counts:
                row = ScanHistory(
                    id=self._cache.incr(_SEQ_KEY),
                    directory=directory,
                    ecosystem=ecosystem,
                    vuln_count=vuln_count,
                    scanned_at=scanned_at,
                )
                self._cache.set_model(f"{_ROW_PREFIX}{row.id:012d}", StoredScanHistory.from_domain(row))
                rows.append(row)
        return rows

    def recent(self, limit: int) -> list[ScanHistory]:
        if limit < 0:
            raise ValueError("limit must be >= 0")
        if limit == 0:
            return []
        keys = list(self._cache.iter_keys(_ROW_PREFIX))[-limit:]
        out: list[ScanHistory] = []
        for key in reversed(keys):
            stored = self._cache.get_model(key, StoredScanHistory)
            if stored is not None:
                out.append(stored.to_domain())
        return out
