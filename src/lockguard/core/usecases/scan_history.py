from __future__ import annotations

from ..domain.models import ScanHistory
from ..ports.history_port import ScanHistoryPort


class ScanHistoryUseCase:
    def __init__(self, history: ScanHistoryPort) -> None:
        self._history = history

    def execute(self, limit: int = 20) -> list[ScanHistory]:
        return self._history.recent(limit)
