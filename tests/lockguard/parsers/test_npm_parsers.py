from __future__ import annotations

import json

import pytest

from lockguard.core.domain.enums import Ecosystem
from lockguard.core.domain.errors import ParseError
from lockguard.parsers.npm import parse_package_lock, parse_pnpm_lock, parse_yarn_lock


def _pairs(packages):
    return [(p.name, p.version) for p in packages]


def test_package_lock_v3_packages_map():
    lock = {
        "name": "app",
        "version": "1.0.0",
        "lockfileVersion": 3,
        "packages": {
            "": {"name": "app", "version": "1.0.0"},
            "node_modules/lodash": {"version": "4.17.15"},
            "node_modules/@babel/core": {"version": "7.22.0"},
            "node_modules/a/node_modules/lodash": {"version": "4.17.21"},
            "node_modules/strip": {"name": "string-width", "version": "4.2.3"},
            "node_modules/local": {"resolved": "packages/local", "link": True},
            "packages/local": {"version": "0.0.1"},
            "node_modules/gitdep": {"version": "git+ssh://git@github.com/x/y.git#abc"},
        },
    }
    packages = parse_package_lock(json.dumps(lock).encode(), "/p/package-lock.json")

    assert _pairs(packages) == [
        ("lodash", "4.17.15"),
        ("@babel/core", "7.22.0"),
        ("lodash", "4.17.21"),
        ("string-width", "4.2.3"),
    ]
    assert all(p.ecosystem is Ecosystem.NPM and p.pinned for p in packages)
    assert packages[0].source_file == "/p/package-lock.json"


def test_package_lock_v1_nested_dependencies_and_aliases():
    lock = {
        "lockfileVersion": 1,
        "dependencies": {
            "lodash": {"version": "4.17.15"},
            "express": {"version": "4.17.1", "dependencies": {"debug": {"version": "2.6.9"}}},
            "my-alias": {"version": "npm:left-pad@1.3.0"},
            "local": {"version": "file:../local"},
        },
    }
    packages = parse_package_lock(json.dumps(lock).encode(), "package-lock.json")
    assert _pairs(packages) == [
        ("lodash", "4.17.15"),
        ("express", "4.17.1"),
        ("debug", "2.6.9"),
        ("left-pad", "1.3.0"),
    ]


def test_package_lock_rejects_invalid_json():
    with pytest.raises(ParseError):
        parse_package_lock(b"{not json", "package-lock.json")
    with pytest.raises(ParseError):
        parse_package_lock(b"[]", "package-lock.json")


def test_pnpm_v5_keys():
    text = """\
lockfileVersion: 5.4
packages:
  /lodash/4.17.15:
    dev: false
  /@types/node/18.0.0_abc@1.0.0:
    dev: true
"""
    assert _pairs(parse_pnpm_lock(text.encode(), "pnpm-lock.yaml")) == [("lodash", "4.17.15"), ("@types/node", "18.0.0")]


def test_pnpm_v6_keys_with_peer_suffix():
    text = """\
lockfileVersion: '6.0'
packages:
  /lodash@4.17.15:
    resolution: {integrity: sha512-abc}
  /@babel/core@7.22.0(supports-color@5.5.0):
    resolution: {integrity: sha512-def}
"""
    assert _pairs(parse_pnpm_lock(text.encode(), "pnpm-lock.yaml")) == [("lodash", "4.17.15"), ("@babel/core", "7.22.0")]


def test_pnpm_v9_packages_and_snapshots_are_merged():
    text = """\
lockfileVersion: '9.0'
packages:
  lodash@4.17.21:
    resolution: {integrity: sha512-abc}
  '@scope/pkg@1.0.0':
    resolution: {integrity: sha512-def}
snapshots:
  lodash@4.17.21: {}
  '@scope/pkg@1.0.0': {}
"""
    assert _pairs(parse_pnpm_lock(text.encode(), "pnpm-lock.yaml")) == [("lodash", "4.17.21"), ("@scope/pkg", "1.0.0")]


def test_yarn_classic():
    text = """\
# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.
# yarn lockfile v1


"@babel/code-frame@^7.0.0", "@babel/code-frame@^7.22.5":
  version "7.22.5"
  resolved "https://registry.yarnpkg.com/@babel/code-frame/-/code-frame-7.22.5.tgz"
  dependencies:
    "@babel/highlight" "^7.22.5"

lodash@^4.17.15:
  version "4.17.21"
  resolved "https://registry.yarnpkg.com/lodash/-/lodash-4.17.21.tgz"
"""
    assert _pairs(parse_yarn_lock(text.encode(), "yarn.lock")) == [("@babel/code-frame", "7.22.5"), ("lodash", "4.17.21")]


def test_yarn_berry_skips_workspaces():
    text = """\
__metadata:
  version: 6
  cacheKey: 8

"lodash@npm:^4.17.15":
  version: 4.17.21
  resolution: "lodash@npm:4.17.21"

"@scope/pkg@npm:1.0.0, @scope/pkg@npm:^1.0.0":
  version: 1.0.0
  resolution: "@scope/pkg@npm:1.0.0"

"app@workspace:.":
  version: 0.0.0-use.local
  resolution: "app@workspace:."
"""
    assert _pairs(parse_yarn_lock(text.encode(), "yarn.lock")) == [("lodash", "4.17.21"), ("@scope/pkg", "1.0.0")]
