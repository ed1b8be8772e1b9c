"""Ecosystem-native version ordering.

Every ecosystem sorts versions its own way: npm follows SemVer 2.0, PyPI
follows PEP 440, Maven has ComparableVersion, RubyGems has Gem::Version and
so on. ``compare()`` dispatches to the right scheme for an ecosystem and
never falls back to plain string comparison. When a scheme cannot read a
version at all, a tokenizing comparison (numbers numerically, words
alphabetically) is used instead and the event is logged at debug level.
"""

from __future__ import annotations

import functools
import logging
import re
from typing import Callable, Protocol

from packaging.version import InvalidVersion, Version

from ..domain.enums import Ecosystem

logger = logging.getLogger(__name__)


class VersionError(ValueError):
    """Raised when a version string does not fit a scheme."""


class VersionScheme(Protocol):
    name: str

    def compare(self, a: str, b: str) -> int:
        """Return -1, 0 or 1. Raises VersionError for unreadable input."""
        ...


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _num_or_str(token: str) -> tuple[int, int | str]:
    return (0, int(token)) if token.isdigit() else (1, token)


class SemverScheme:
    """SemVer 2.0 precedence, tolerant of a leading ``v`` and of missing minor/patch parts."""

    _CORE = re.compile(r"^\d+(\.\d+)*$")

    def __init__(self, name: str = "semver", *, case_insensitive: bool = False, strip_suffixes: tuple[str, ...] = ()) -> None:
        self.name = name
        self._case_insensitive = case_insensitive
        self._strip_suffixes = strip_suffixes

    def key(self, text: str) -> tuple:
        s = text.strip()
        for suffix in self._strip_suffixes:
            if s.endswith(suffix):
                s = s[: -len(suffix)]
        s = s.lstrip("=").strip()
        if s[:1] in ("v", "V"):
            s = s[1:]
        s = s.split("+", 1)[0]
        core, _, pre = s.partition("-")
        if not core or not self._CORE.match(core):
            raise VersionError(f"not a {self.name} version: {text!r}")
        numbers = [int(p) for p in core.split(".")]
        numbers += [0] * (6 - len(numbers))
        if not pre:
            return (tuple(numbers), 1, ())
        if self._case_insensitive:
            pre = pre.lower()
        return (tuple(numbers), 0, tuple(_num_or_str(t) for t in pre.split(".")))

    def compare(self, a: str, b: str) -> int:
        return _cmp(self.key(a), self.key(b))


class Pep440Scheme:
    name = "pep440"

    def compare(self, a: str, b: str) -> int:
        try:
            return _cmp(Version(a), Version(b))
        except InvalidVersion as exc:
            raise VersionError(str(exc)) from exc


class RubyGemsScheme:
    """Gem::Version ordering: letters mark a prerelease and sort before numbers."""

    name = "rubygems"
    _SEGMENT = re.compile(r"[0-9]+|[a-zA-Z]+")

    def segments(self, text: str) -> list[int | str]:
        s = text.strip()
        if not s or not re.match(r"^[0-9]+(\.[0-9a-zA-Z]+)*(-[0-9A-Za-z.-]+)?$", s):
            raise VersionError(f"not a gem version: {text!r}")
        s = s.replace("-", ".pre.")
        segs: list[int | str] = [int(t) if t.isdigit() else t for t in self._SEGMENT.findall(s)]
        # Gem::Version#canonical_segments drops zeros that only pad a release part.
        first_str = next((i for i, t in enumerate(segs) if isinstance(t, str)), len(segs))
        release, pre = segs[:first_str], segs[first_str:]
        while release and release[-1] == 0:
            release.pop()
        while pre and pre[-1] == 0:
            pre.pop()
        return release + pre

    def compare(self, a: str, b: str) -> int:
        lhs, rhs = self.segments(a), self.segments(b)
        for i in range(max(len(lhs), len(rhs))):
            x = lhs[i] if i < len(lhs) else 0
            y = rhs[i] if i < len(rhs) else 0
            if x == y:
                continue
            if isinstance(x, str) and isinstance(y, int):
                return -1
            if isinstance(x, int) and isinstance(y, str):
                return 1
            return _cmp(x, y)
        return 0


class MavenScheme:
    """Maven ComparableVersion ordering.

    Known qualifiers rank alpha < beta < milestone < rc < snapshot < (release) < sp,
    unknown qualifiers sort after sp alphabetically, and numbers sort after every
    qualifier. Trailing zeros and release qualifiers (ga, final, release) are null.
    """

    name = "maven"
    _QUALIFIERS = {"alpha": 0, "beta": 1, "milestone": 2, "rc": 3, "snapshot": 4, "": 5, "sp": 6}
    _SHORT = {"a": "alpha", "b": "beta", "m": "milestone"}
    _ALIASES = {"cr": "rc", "ga": "", "final": "", "release": ""}
    _TOKEN = re.compile(r"[0-9]+|[a-z]+")

    def items(self, text: str) -> list[tuple[int, int, str]]:
        s = text.strip().lower()
        if not s:
            raise VersionError("empty maven version")
        tokens = self._TOKEN.findall(s)
        if not tokens:
            raise VersionError(f"not a maven version: {text!r}")
        out: list[tuple[int, int, str]] = []
        for i, tok in enumerate(tokens):
            if tok.isdigit():
                out.append((2, int(tok), ""))
                continue
            followed_by_digit = i + 1 < len(tokens) and tokens[i + 1].isdigit()
            if followed_by_digit and tok in self._SHORT:
                tok = self._SHORT[tok]
            tok = self._ALIASES.get(tok, tok)
            rank = self._QUALIFIERS.get(tok, 7)
            out.append((1, rank, tok if rank == 7 else ""))
        return out

    @staticmethod
    def _null_cmp(item: tuple[int, int, str]) -> int:
        kind, value, _ = item
        if kind == 2:
            return _cmp(value, 0)
        return _cmp(value, MavenScheme._QUALIFIERS[""])

    def compare(self, a: str, b: str) -> int:
        lhs, rhs = self.items(a), self.items(b)
        for i in range(max(len(lhs), len(rhs))):
            if i >= len(lhs):
                c = -self._null_cmp(rhs[i])
            elif i >= len(rhs):
                c = self._null_cmp(lhs[i])
            else:
                c = _cmp(lhs[i], rhs[i])
            if c:
                return c
        return 0


class PackagistScheme:
    """Composer ordering: dev < alpha < beta < RC < stable < patch."""

    name = "packagist"
    _RE = re.compile(
        r"^v?(?P<core>\d+(?:\.\d+){0,3})"
        r"(?:[._-]?(?P<stab>stable|beta|b|rc|alpha|a|patch|pl|p)(?P<snum>(?:[.-]?\d+)*))?"
        r"(?P<dev>[.-]?dev)?$",
        re.IGNORECASE,
    )
    _STABILITY = {"alpha": 1, "a": 1, "beta": 2, "b": 2, "rc": 3, "stable": 4, "patch": 5, "pl": 5, "p": 5}

    def key(self, text: str) -> tuple:
        m = self._RE.match(text.strip())
        if not m:
            raise VersionError(f"not a composer version: {text!r}")
        core = [int(p) for p in m.group("core").split(".")]
        core += [0] * (4 - len(core))
        snum = tuple(int(n) for n in re.findall(r"\d+", m.group("snum") or ""))
        dev = 0 if m.group("dev") else 1
        if m.group("stab") is None:
            # "1.0.0-dev" is the branch before any prerelease of 1.0.0
            rank = 0 if dev == 0 else self._STABILITY["stable"]
        else:
            rank = self._STABILITY[m.group("stab").lower()]
        return (tuple(core), rank, snum, dev)

    def compare(self, a: str, b: str) -> int:
        return _cmp(self.key(a), self.key(b))


def _generic_key(text: str) -> tuple:
    return tuple(_num_or_str(t) for t in re.findall(r"[0-9]+|[A-Za-z]+", text.lower()))


def generic_compare(a: str, b: str) -> int:
    ka, kb = list(_generic_key(a)), list(_generic_key(b))
    for i in range(max(len(ka), len(kb))):
        x = ka[i] if i < len(ka) else (0, 0)
        y = kb[i] if i < len(kb) else (0, 0)
        c = _cmp(x, y)
        if c:
            return c
    return 0


_SEMVER = SemverScheme()
_GEMS = RubyGemsScheme()

SCHEMES: dict[Ecosystem, VersionScheme] = {
    Ecosystem.NPM: _SEMVER,
    Ecosystem.CRATES_IO: _SEMVER,
    Ecosystem.PUB: _SEMVER,
    Ecosystem.HEX: _SEMVER,
    Ecosystem.SWIFTURL: _SEMVER,
    Ecosystem.GO: SemverScheme("go", strip_suffixes=("+incompatible",)),
    Ecosystem.NUGET: SemverScheme("nuget", case_insensitive=True),
    Ecosystem.PYPI: Pep440Scheme(),
    Ecosystem.MAVEN: MavenScheme(),
    Ecosystem.RUBYGEMS: _GEMS,
    # Pod::Version is a Gem::Version.
    Ecosystem.COCOAPODS: _GEMS,
    Ecosystem.PACKAGIST: PackagistScheme(),
}


def compare(ecosystem: Ecosystem, a: str, b: str) -> int:
    """Compare two versions of a package in the given ecosystem."""
    scheme = SCHEMES[ecosystem]
    try:
        return scheme.compare(a, b)
    except VersionError as exc:
        logger.debug("%s scheme cannot order %r vs %r (%s); using token comparison", scheme.name, a, b, exc)
        return generic_compare(a, b)


def is_valid(ecosystem: Ecosystem, version: str) -> bool:
    try:
        SCHEMES[ecosystem].compare(version, version)
    except VersionError:
        return False
    return True


def sort_key(ecosystem: Ecosystem) -> Callable[[str], object]:
    return functools.cmp_to_key(lambda a, b: compare(ecosystem, a, b))
