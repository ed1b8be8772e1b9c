from __future__ import annotations

import logging
import threading
from typing import Iterator, Optional, Sequence, Set

from ..core.domain.enums import Ecosystem, VulnSource
from ..core.domain.models import Vulnerability
from ..core.ports.advisory_store_port import AdvisoryStorePort
from ..core.ports.cache_port import CachePort
from .schemas import AdvisoryGroup, AliasIndex, PackageBucket

logger = logging.getLogger(__name__)


def _record_key(source: VulnSource, advisory_id: str) -> str:
    return f"{source.value}:{advisory_id}"


def _group_key(source: VulnSource, advisory_id: str) -> str:
    return f"adv:{source.value}:{advisory_id}"


def _bucket_key(ecosystem: Ecosystem, package_name: str) -> str:
    return f"pkg:{ecosystem.value}:{package_name}"


def _alias_key(alias: str) -> str:
    return f"alias:{alias.upper()}"


def _by_package(records: Sequence[Vulnerability]) -> list[Vulnerability]:
    return sorted(records, key=lambda v: (v.affected_ecosystem.value, v.affected_package))


def _same_content(a: Sequence[Vulnerability], b: Sequence[Vulnerability]) -> bool:
    if len(a) != len(b):
        return False
    return all(x.same_content(y) for x, y in zip(_by_package(a), _by_package(b)))


def _revision(records: Sequence[Vulnerability]):
    revisions = [r.revision for r in records if r.revision is not None]
    return max(revisions) if revisions else None


class DiskCacheAdvisoryStore(AdvisoryStorePort):
    """Advisory records in three key families.

    - ``adv:{source}:{id}``: the records of one advisory (one per affected package)
    - ``pkg:{ecosystem}:{name}``: every record for one package, read in one lookup
    - ``alias:{alias}``: advisories that list an alias such as a CVE id

    Writes for one source are serialized by a lock and grouped in one cache
    transaction, so a reader sees a bucket either before or after a refresh.
    """

    def __init__(self, cache: CachePort) -> None:
        self._cache = cache
        self._locks = {source: threading.Lock() for source in VulnSource}

    def upsert(
        self,
        source: VulnSource,
        records: Sequence[Vulnerability],
        ecosystems: Optional[Set[Ecosystem]] = None,
    ) -> int:
        groups: dict[str, list[Vulnerability]] = {}
        for r in records:
            if r.source is not source:
                raise ValueError(f"record {r.id} belongs to {r.source.value}, not {source.value}")
            groups.setdefault(r.id, []).append(r)

        changed = 0
        with self._locks[source], self._cache.transact():
            for advisory_id, incoming in groups.items():
                stored_group = self._cache.get_model(_group_key(source, advisory_id), AdvisoryGroup)
                stored = stored_group.records if stored_group is not None else []
                if ecosystems is not None:
                    incoming = incoming + [s for s in stored if s.affected_ecosystem not in ecosystems]
                if stored and not self._supersedes(incoming, stored):
                    continue
                self._replace(source, advisory_id, stored, incoming)
                changed += 1
        logger.info("Upserted %s: %d of %d advisories added or changed", source.value, changed, len(groups))
        return changed

    @staticmethod
    def _supersedes(incoming: Sequence[Vulnerability], stored: Sequence[Vulnerability]) -> bool:
        if _same_content(incoming, stored):
            return False
        new_rev, old_rev = _revision(incoming), _revision(stored)
        if new_rev is not None and old_rev is not None and new_rev < old_rev:
            logger.debug("Keeping newer stored copy of %s", incoming[0].id)
            return False
        return True

    def _replace(self, source: VulnSource, advisory_id: str, stored: Sequence[Vulnerability], incoming: Sequence[Vulnerability]) -> None:
        record_key = _record_key(source, advisory_id)

        for old in stored:
            key = _bucket_key(old.affected_ecosystem, old.affected_package)
            bucket = self._cache.get_model(key, PackageBucket)
            if bucket is None:
                continue
            bucket.records.pop(record_key, None)
            if bucket.records:
                self._cache.set_model(key, bucket)
            else:
                self._cache.delete(key)
        for alias in {a for old in stored for a in old.aliases}:
            self._unlink_alias(alias, record_key)

        self._cache.set_model(_group_key(source, advisory_id), AdvisoryGroup(records=list(incoming)))
        for new in incoming:
            key = _bucket_key(new.affected_ecosystem, new.affected_package)
            bucket = self._cache.get_model(key, PackageBucket) or PackageBucket()
            bucket.records[record_key] = new
            self._cache.set_model(key, bucket)
        for alias in {a for new in incoming for a in new.aliases}:
            index = self._cache.get_model(_alias_key(alias), AliasIndex) or AliasIndex()
            if record_key not in index.keys:
                index.keys.append(record_key)
                self._cache.set_model(_alias_key(alias), index)

    def _unlink_alias(self, alias: str, record_key: str) -> None:
        index = self._cache.get_model(_alias_key(alias), AliasIndex)
        if index is None or record_key not in index.keys:
            return
        index.keys.remove(record_key)
        if index.keys:
            self._cache.set_model(_alias_key(alias), index)
        else:
            self._cache.delete(_alias_key(alias))

    def lookup(self, ecosystem: Ecosystem, package_name: str) -> list[Vulnerability]:
        bucket = self._cache.get_model(_bucket_key(ecosystem, package_name), PackageBucket)
        if bucket is None:
            return []
        return [bucket.records[k] for k in sorted(bucket.records)]

    def get(self, source: VulnSource, advisory_id: str) -> list[Vulnerability]:
        group = self._cache.get_model(_group_key(source, advisory_id), AdvisoryGroup)
        return list(group.records) if group is not None else []

    def resolve_alias(self, alias: str) -> list[tuple[VulnSource, str]]:
        index = self._cache.get_model(_alias_key(alias), AliasIndex)
        if index is None:
            return []
        out: list[tuple[VulnSource, str]] = []
        for key in index.keys:
            source, _, advisory_id = key.partition(":")
            out.append((VulnSource(source), advisory_id))
        return out

    def iter_records(self, ecosystem: Ecosystem | None = None) -> Iterator[Vulnerability]:
        if ecosystem is not None:
            for bucket_key in self._cache.iter_keys(f"pkg:{ecosystem.value}:"):
                bucket = self._cache.get_model(bucket_key, PackageBucket)
                if bucket is not None:
                    yield from bucket.records.values()
            return
        for group_key in self._cache.iter_keys("adv:"):
            group = self._cache.get_model(group_key, AdvisoryGroup)
            if group is not None:
                yield from group.records

    def count(self, ecosystem: Ecosystem | None = None) -> int:
        if ecosystem is None:
            return sum(1 for _ in self._cache.iter_keys("adv:"))
        keys: set[str] = set()
        for bucket_key in self._cache.iter_keys(f"pkg:{ecosystem.value}:"):
            bucket = self._cache.get_model(bucket_key, PackageBucket)
            if bucket is not None:
                keys.update(bucket.records)
        return len(keys)

    def clear(self) -> None:
        with self._cache.transact():
            for prefix in ("adv:", "pkg:", "alias:"):
                self._cache.clear(prefix=prefix)
