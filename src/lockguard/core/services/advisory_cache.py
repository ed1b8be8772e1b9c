from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, Optional, Sequence

from ..domain.enums import Ecosystem, VulnSource
from ..domain.errors import NetworkError
from ..domain.models import Vulnerability
from ..ports.advisory_store_port import AdvisoryStorePort
from ..ports.feed_port import AdvisoryFeedPort

logger = logging.getLogger(__name__)


class AdvisoryCache:
    """Local advisory database: refreshed from upstream feeds, read offline by scans."""

    def __init__(
        self,
        store: AdvisoryStorePort,
        feeds: Sequence[AdvisoryFeedPort],
        source_timeout_seconds: float = 120.0,
    ) -> None:
        self._store = store
        self._feeds = list(feeds)
        self._timeout = source_timeout_seconds

    @property
    def sources(self) -> list[VulnSource]:
        return [f.source for f in self._feeds]

    def refresh(self, ecosystems: Iterable[Ecosystem] = ()) -> int:
        """Fetch every feed for the ecosystems (all when empty), then write.

        All fetches must succeed before anything is written. A failure or a
        fetch running past ``source_timeout_seconds`` raises NetworkError and
        leaves the store untouched. Returns the number of advisories added or
        changed.
        """
        wanted = set(ecosystems) or set(Ecosystem)
        ordered = sorted(wanted, key=lambda e: e.value)
        tasks = [(feed, eco) for feed in self._feeds for eco in ordered if feed.supports(eco)]
        if not tasks:
            logger.info("Nothing to refresh for %s", ", ".join(e.value for e in ordered))
            return 0

        logger.info("Refreshing %d source/ecosystem pairs", len(tasks))
        fetched: dict[VulnSource, list[Vulnerability]] = {feed.source: [] for feed in self._feeds}
        # One worker per task so every fetch starts at once and gets the full budget.
        pool = ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="lockguard-refresh")
        try:
            futures: list[tuple[AdvisoryFeedPort, Ecosystem, Future]] = [
                (feed, eco, pool.submit(feed.fetch, eco)) for feed, eco in tasks
            ]
            deadline = time.monotonic() + self._timeout
            for feed, eco, future in futures:
                try:
                    records = future.result(timeout=max(0.0, deadline - time.monotonic()))
                except TimeoutError as exc:
                    raise NetworkError(feed.source.value, f"timed out after {self._timeout:g}s", eco) from exc
                fetched[feed.source].extend(records)
                logger.debug("Fetched %d records from %s/%s", len(records), feed.source.value, eco.value)
        except NetworkError as exc:
            logger.warning("%s; cache left unchanged", exc)
            raise
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        changed = 0
        for source, records in fetched.items():
            changed += self._store.upsert(source, records, wanted)
        logger.info("Refresh complete: %d advisories added or updated", changed)
        return changed

    def lookup(self, ecosystem: Ecosystem, package_name: str) -> list[Vulnerability]:
        return self._store.lookup(ecosystem, package_name)

    def get(self, advisory_id: str) -> Optional[Vulnerability]:
        """Find an advisory by its own id in any source, or by an alias such as a CVE id."""
        advisory_id = advisory_id.strip()
        for source in VulnSource:
            records = self._store.get(source, advisory_id)
            if records:
                return records[0]
        for source, resolved_id in self._store.resolve_alias(advisory_id):
            records = self._store.get(source, resolved_id)
            if records:
                return records[0]
        return None

    def records(self, ecosystem: Optional[Ecosystem] = None) -> list[Vulnerability]:
        return list(self._store.iter_records(ecosystem))

    def count(self, ecosystem: Optional[Ecosystem] = None) -> int:
        return self._store.count(ecosystem)

    def clear(self) -> None:
        self._store.clear()
