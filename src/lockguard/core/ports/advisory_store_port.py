from __future__ import annotations

from typing import Iterator, Optional, Protocol, Sequence, Set

from ..domain.enums import Ecosystem, VulnSource
from ..domain.models import Vulnerability


class AdvisoryStorePort(Protocol):
    def upsert(
        self,
        source: VulnSource,
        records: Sequence[Vulnerability],
        ecosystems: Optional[Set[Ecosystem]] = None,
    ) -> int:
        """Insert or replace records of one source in a single transaction.

        When `ecosystems` is given, stored records of other ecosystems are kept
        as they are, so a partial refresh never drops them.

        Returns the number of (source, id) advisories that were added or changed.
        """
        ...

    def lookup(self, ecosystem: Ecosystem, package_name: str) -> list[Vulnerability]:
        """Return every stored record for the (ecosystem, package) pair."""
        ...

    def get(self, source: VulnSource, advisory_id: str) -> list[Vulnerability]:
        """Return the records stored under (source, id); one per affected package."""
        ...

    def resolve_alias(self, alias: str) -> list[tuple[VulnSource, str]]:
        """Return the (source, id) keys of advisories that list the alias."""
        ...

    def iter_records(self, ecosystem: Ecosystem | None = None) -> Iterator[Vulnerability]:
        """Yield every stored record, one per (advisory, affected package)."""
        ...

    def count(self, ecosystem: Ecosystem | None = None) -> int:
        ...

    def clear(self) -> None:
        ...
