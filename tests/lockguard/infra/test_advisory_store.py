from __future__ import annotations

from datetime import datetime, timezone

import pytest

from lockguard.core.domain.enums import Ecosystem, VulnSource
from lockguard.infra.advisory_store import DiskCacheAdvisoryStore

T1 = datetime(2023, 1, 1, tzinfo=timezone.utc)
T2 = datetime(2023, 6, 1, tzinfo=timezone.utc)


def test_upsert_then_lookup_by_package(advisory_disk, make_vuln):
    store = DiskCacheAdvisoryStore(advisory_disk)
    changed = store.upsert(VulnSource.OSV, [make_vuln(id="GHSA-1"), make_vuln(id="GHSA-2", package="minimist")])

    assert changed == 2
    assert [v.id for v in store.lookup(Ecosystem.NPM, "lodash")] == ["GHSA-1"]
    assert [v.id for v in store.lookup(Ecosystem.NPM, "minimist")] == ["GHSA-2"]
    assert store.lookup(Ecosystem.NPM, "react") == []


def test_identical_content_is_a_no_op(advisory_disk, make_vuln):
    store = DiskCacheAdvisoryStore(advisory_disk)
    store.upsert(VulnSource.OSV, [make_vuln(fetched_at=T1)])
    assert store.upsert(VulnSource.OSV, [make_vuln(fetched_at=T2)]) == 0
    assert store.lookup(Ecosystem.NPM, "lodash")[0].fetched_at == T1


def test_newer_revision_replaces_and_older_is_ignored(advisory_disk, make_vuln):
    store = DiskCacheAdvisoryStore(advisory_disk)
    store.upsert(VulnSource.OSV, [make_vuln(title="v2", modified_at=T2)])

    assert store.upsert(VulnSource.OSV, [make_vuln(title="v1", modified_at=T1)]) == 0
    assert store.get(VulnSource.OSV, "GHSA-test-0001")[0].title == "v2"

    assert store.upsert(VulnSource.OSV, [make_vuln(title="v3", modified_at=datetime(2024, 1, 1, tzinfo=timezone.utc))]) == 1
    assert store.get(VulnSource.OSV, "GHSA-test-0001")[0].title == "v3"


def test_equal_revision_with_different_content_replaces(advisory_disk, make_vuln):
    store = DiskCacheAdvisoryStore(advisory_disk)
    store.upsert(VulnSource.OSV, [make_vuln(affected="<4.17.20", modified_at=T1)])
    assert store.upsert(VulnSource.OSV, [make_vuln(affected="<4.17.21", modified_at=T1)]) == 1
    assert store.lookup(Ecosystem.NPM, "lodash")[0].affected_versions == "<4.17.21"


def test_replacing_moves_record_between_buckets(advisory_disk, make_vuln):
    store = DiskCacheAdvisoryStore(advisory_disk)
    store.upsert(VulnSource.OSV, [make_vuln(package="lodash", modified_at=T1)])
    store.upsert(VulnSource.OSV, [make_vuln(package="lodash-es", modified_at=T2)])

    assert store.lookup(Ecosystem.NPM, "lodash") == []
    assert [v.affected_package for v in store.lookup(Ecosystem.NPM, "lodash-es")] == ["lodash-es"]


def test_same_id_from_two_sources_is_kept_apart(advisory_disk, make_vuln):
    store = DiskCacheAdvisoryStore(advisory_disk)
    store.upsert(VulnSource.OSV, [make_vuln(source=VulnSource.OSV)])
    store.upsert(VulnSource.GITHUB, [make_vuln(source=VulnSource.GITHUB)])
    assert {v.source for v in store.lookup(Ecosystem.NPM, "lodash")} == {VulnSource.OSV, VulnSource.GITHUB}
    assert store.count() == 2


def test_scoped_upsert_keeps_records_of_other_ecosystems(advisory_disk, make_vuln):
    store = DiskCacheAdvisoryStore(advisory_disk)
    npm = make_vuln(id="GHSA-multi", package="shared", ecosystem=Ecosystem.NPM, modified_at=T1)
    pypi = make_vuln(id="GHSA-multi", package="shared", ecosystem=Ecosystem.PYPI, modified_at=T1)
    store.upsert(VulnSource.OSV, [npm, pypi])

    npm_v2 = npm.with_updates(title="updated", modified_at=T2)
    assert store.upsert(VulnSource.OSV, [npm_v2], {Ecosystem.NPM}) == 1

    assert store.lookup(Ecosystem.PYPI, "shared") == [pypi]
    assert store.lookup(Ecosystem.NPM, "shared")[0].title == "updated"


def test_aliases_resolve_and_follow_replacement(advisory_disk, make_vuln):
    store = DiskCacheAdvisoryStore(advisory_disk)
    store.upsert(VulnSource.GITHUB, [make_vuln(source=VulnSource.GITHUB, aliases=("CVE-2021-1",), modified_at=T1)])
    assert store.resolve_alias("cve-2021-1") == [(VulnSource.GITHUB, "GHSA-test-0001")]

    store.upsert(VulnSource.GITHUB, [make_vuln(source=VulnSource.GITHUB, aliases=("CVE-2021-2",), modified_at=T2)])
    assert store.resolve_alias("CVE-2021-1") == []
    assert store.resolve_alias("CVE-2021-2") == [(VulnSource.GITHUB, "GHSA-test-0001")]


def test_count_per_ecosystem_and_clear(advisory_disk, make_vuln):
    store = DiskCacheAdvisoryStore(advisory_disk)
    store.upsert(
        VulnSource.OSV,
        [
            make_vuln(id="A", package="lodash"),
            make_vuln(id="A", package="lodash-es"),
            make_vuln(id="B", package="serde", ecosystem=Ecosystem.CRATES_IO),
        ],
    )
    assert store.count(Ecosystem.NPM) == 1
    assert store.count(Ecosystem.CRATES_IO) == 1
    assert store.count(Ecosystem.GO) == 0
    assert store.count() == 2

    store.clear()
    assert store.count() == 0
    assert store.lookup(Ecosystem.NPM, "lodash") == []


def test_record_from_wrong_source_rejected(advisory_disk, make_vuln):
    store = DiskCacheAdvisoryStore(advisory_disk)
    with pytest.raises(ValueError):
        store.upsert(VulnSource.GITHUB, [make_vuln(source=VulnSource.OSV)])


def test_iter_records_yields_one_record_per_affected_package(advisory_disk, make_vuln):
    store = DiskCacheAdvisoryStore(advisory_disk)
    store.upsert(
        VulnSource.OSV,
        [
            make_vuln(id="A", package="lodash"),
            make_vuln(id="A", package="lodash-es"),
            make_vuln(id="B", package="serde", ecosystem=Ecosystem.CRATES_IO),
        ],
    )
    assert sorted((v.id, v.affected_package) for v in store.iter_records()) == [("A", "lodash"), ("A", "lodash-es"), ("B", "serde")]
    assert [v.id for v in store.iter_records(Ecosystem.CRATES_IO)] == ["B"]
    assert list(store.iter_records(Ecosystem.GO)) == []
