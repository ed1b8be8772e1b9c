from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from ..domain.enums import Ecosystem
from ..domain.models import ScanHistory


class ScanHistoryPort(Protocol):
    def append(self, directory: str, counts: Sequence[tuple[Ecosystem, int]], scanned_at: datetime) -> list[ScanHistory]:
        """Append one row per ecosystem atomically and return the stored rows."""
        ...

    def recent(self, limit: int) -> list[ScanHistory]:
        """Return at most `limit` rows, most recent first."""
        ...
