from __future__ import annotations

import pytest

from lockguard.core.domain.enums import LOCKFILE_NAMES, Ecosystem
from lockguard.core.domain.errors import ParseError
from lockguard.core.domain.models import DetectedLockfile
from lockguard.parsers import PARSERS, coverage_caveat, parse_lockfile, parser_for


def test_every_detected_file_name_has_a_parser():
    assert set(PARSERS) == {name for names in LOCKFILE_NAMES.values() for name in names}


def test_parser_for_unknown_name():
    with pytest.raises(ValueError):
        parser_for("setup.py")


def test_structural_surprise_becomes_parse_error():
    lockfile = DetectedLockfile(Ecosystem.CRATES_IO, "/p/Cargo.lock")
    with pytest.raises(ParseError) as excinfo:
        parse_lockfile(lockfile, b"package = 5\n")
    assert excinfo.value.path == "/p/Cargo.lock"
    assert "unexpected structure" in excinfo.value.cause


def test_non_utf8_content_is_a_parse_error():
    lockfile = DetectedLockfile(Ecosystem.GO, "/p/go.sum")
    with pytest.raises(ParseError) as excinfo:
        parse_lockfile(lockfile, b"\xff\xfe\x00bad")
    assert "UTF-8" in excinfo.value.cause


def test_utf8_bom_is_accepted():
    lockfile = DetectedLockfile(Ecosystem.NUGET, "/p/packages.lock.json")
    packages = parse_lockfile(lockfile, b'\xef\xbb\xbf{"version": 1, "dependencies": {}}')
    assert packages == []


def test_coverage_caveat_only_for_manifests():
    reqs = DetectedLockfile(Ecosystem.PYPI, "/p/requirements.txt")
    packages = parse_lockfile(reqs, b"requests==2.31.0\nflask\nDjango>=3\n")
    caveat = coverage_caveat(reqs, packages)
    assert caveat is not None
    assert caveat.unpinned == ("django", "flask")
    assert "direct dependencies" in caveat.message

    cargo = DetectedLockfile(Ecosystem.CRATES_IO, "/p/Cargo.lock")
    assert coverage_caveat(cargo, []) is None
