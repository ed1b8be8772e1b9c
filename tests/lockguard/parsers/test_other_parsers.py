from __future__ import annotations

import json

import pytest

from lockguard.core.domain.enums import Ecosystem
from lockguard.core.domain.errors import ParseError
from lockguard.parsers.cargo import parse_cargo_lock
from lockguard.parsers.cocoapods import parse_podfile_lock
from lockguard.parsers.dart import parse_pubspec_lock
from lockguard.parsers.elixir import parse_mix_lock
from lockguard.parsers.go import parse_go_sum
from lockguard.parsers.php import parse_composer_lock
from lockguard.parsers.ruby import parse_gemfile_lock
from lockguard.parsers.swift import package_identity, parse_package_resolved


def _pairs(packages):
    return [(p.name, p.version) for p in packages]


def test_cargo_lock_registry_crates_only():
    text = """\
version = 3

[[package]]
name = "myapp"
version = "0.1.0"
dependencies = ["serde"]

[[package]]
name = "serde"
version = "1.0.188"
source = "registry+https://github.com/rust-lang/crates.io-index"
checksum = "abc"

[[package]]
name = "forked"
version = "0.2.0"
source = "git+https://github.com/example/forked#deadbeef"
"""
    packages = parse_cargo_lock(text.encode(), "Cargo.lock")
    assert _pairs(packages) == [("serde", "1.0.188")]
    assert packages[0].ecosystem is Ecosystem.CRATES_IO


def test_go_sum_selects_highest_version_per_module():
    text = """\
github.com/gin-gonic/gin v1.9.0 h1:aaa=
github.com/gin-gonic/gin v1.9.0/go.mod h1:bbb=
github.com/gin-gonic/gin v1.7.0/go.mod h1:ccc=
github.com/example/legacy v2.0.0+incompatible h1:ddd=
"""
    packages = parse_go_sum(text.encode(), "go.sum")
    assert _pairs(packages) == [("github.com/gin-gonic/gin", "v1.9.0"), ("github.com/example/legacy", "v2.0.0")]


def test_go_sum_rejects_truncated_lines():
    with pytest.raises(ParseError):
        parse_go_sum(b"github.com/gin-gonic/gin\n", "go.sum")


def test_gemfile_lock_reads_only_gem_specs():
    text = """\
GIT
  remote: https://github.com/example/y.git
  revision: abc
  specs:
    y (0.1.0)

PATH
  remote: .
  specs:
    mygem (1.0.0)

GEM
  remote: https://rubygems.org/
  specs:
    actionpack (7.0.4)
      rack (~> 2.0)
    nokogiri (1.15.4-x86_64-linux)
    rack (2.2.6)

PLATFORMS
  x86_64-linux

DEPENDENCIES
  actionpack

BUNDLED WITH
   2.4.10
"""
    packages = parse_gemfile_lock(text.encode(), "Gemfile.lock")
    assert _pairs(packages) == [("actionpack", "7.0.4"), ("nokogiri", "1.15.4"), ("rack", "2.2.6")]


def test_composer_lock_strips_v_and_flags_branches():
    lock = {
        "packages": [
            {"name": "monolog/monolog", "version": "2.9.1"},
            {"name": "symfony/http-kernel", "version": "v5.4.20"},
        ],
        "packages-dev": [{"name": "phpunit/phpunit", "version": "dev-main"}],
    }
    packages = parse_composer_lock(json.dumps(lock).encode(), "composer.lock")
    assert [(p.name, p.version, p.pinned) for p in packages] == [
        ("monolog/monolog", "2.9.1", True),
        ("symfony/http-kernel", "5.4.20", True),
        ("phpunit/phpunit", "dev-main", False),
    ]


def test_pubspec_lock_skips_sdk_and_path_packages():
    text = """\
packages:
  http:
    dependency: "direct main"
    description:
      name: http
      url: "https://pub.dev"
    source: hosted
    version: "0.13.5"
  flutter:
    dependency: "direct main"
    description: flutter
    source: sdk
    version: "0.0.0"
  local_pkg:
    dependency: "direct main"
    description:
      path: "../local"
      relative: true
    source: path
    version: "1.0.0"
sdks:
  dart: ">=2.19.0 <3.0.0"
"""
    assert _pairs(parse_pubspec_lock(text.encode(), "pubspec.lock")) == [("http", "0.13.5")]


def test_mix_lock_hex_entries_only():
    text = """\
%{
  "phoenix": {:hex, :phoenix, "1.6.15", "0ab0", [:mix], [{:jason, "~> 1.0", [hex: :jason, repo: "hexpm", optional: true]}], "hexpm", "abc"},
  "my_dep": {:git, "https://github.com/example/my_dep.git", "abc123", []},
  "plug_cowboy": {:hex, :plug_cowboy, "2.6.1", "9a3e", [:mix], [], "hexpm", "de"},
}
"""
    packages = parse_mix_lock(text.encode(), "mix.lock")
    assert _pairs(packages) == [("phoenix", "1.6.15"), ("plug_cowboy", "2.6.1")]
    assert packages[0].ecosystem is Ecosystem.HEX


def test_podfile_lock_folds_subspecs():
    text = """\
PODS:
  - Alamofire (5.6.4)
  - Firebase/Analytics (10.7.0):
    - Firebase/Core
  - Firebase/Core (10.7.0):
    - FirebaseCore (= 10.7.0)
  - FirebaseCore (10.7.0)

DEPENDENCIES:
  - Alamofire
  - Firebase/Analytics

COCOAPODS: 1.12.0
"""
    packages = parse_podfile_lock(text.encode(), "Podfile.lock")
    assert _pairs(packages) == [("Alamofire", "5.6.4"), ("Firebase", "10.7.0"), ("FirebaseCore", "10.7.0")]


def test_podfile_lock_requires_pod_list():
    with pytest.raises(ParseError):
        parse_podfile_lock(b"PODS: nope\n", "Podfile.lock")


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://github.com/Alamofire/Alamofire.git", "github.com/Alamofire/Alamofire"),
        ("git@github.com:apple/swift-nio.git", "github.com/apple/swift-nio"),
        ("https://gitlab.com/group/pkg/", "gitlab.com/group/pkg"),
    ],
)
def test_package_identity(url, expected):
    assert package_identity(url) == expected


def test_package_resolved_v2_skips_branch_pins():
    resolved = {
        "pins": [
            {
                "identity": "alamofire",
                "kind": "remoteSourceControl",
                "location": "https://github.com/Alamofire/Alamofire.git",
                "state": {"revision": "abc", "version": "5.6.4"},
            },
            {
                "identity": "tracking",
                "kind": "remoteSourceControl",
                "location": "https://github.com/example/tracking",
                "state": {"branch": "main", "revision": "def"},
            },
        ],
        "version": 2,
    }
    packages = parse_package_resolved(json.dumps(resolved).encode(), "Package.resolved")
    assert _pairs(packages) == [("github.com/Alamofire/Alamofire", "5.6.4")]


def test_package_resolved_v1_layout():
    resolved = {
        "object": {
            "pins": [
                {
                    "package": "swift-nio",
                    "repositoryURL": "git@github.com:apple/swift-nio.git",
                    "state": {"branch": None, "revision": "abc", "version": "2.50.0"},
                }
            ]
        },
        "version": 1,
    }
    packages = parse_package_resolved(json.dumps(resolved).encode(), "Package.resolved")
    assert _pairs(packages) == [("github.com/apple/swift-nio", "2.50.0")]
    assert packages[0].ecosystem is Ecosystem.SWIFTURL


def test_package_resolved_unknown_layout():
    with pytest.raises(ParseError):
        parse_package_resolved(b'{"version": 9}', "Package.resolved")
