from __future__ import annotations

from typing import Protocol, Sequence

from ..domain.enums import Ecosystem, VulnSource
from ..domain.models import Vulnerability


class AdvisoryFeedPort(Protocol):
    source: VulnSource

    def supports(self, ecosystem: Ecosystem) -> bool:
        """Return True when the upstream source publishes advisories for the ecosystem."""
        ...

    def fetch(self, ecosystem: Ecosystem) -> Sequence[Vulnerability]:
        """Return every current advisory record for the ecosystem.

        Implementations raise NetworkError when the upstream cannot be reached
        or answers with something unusable.
        """
        ...
