"""Version range expressions.

A range expression is a set of ``||`` separated alternatives. Each
alternative is a comma or space separated list of constraints that must all
hold. Besides the plain comparison operators the native grammars of the
supported ecosystems are understood:

- ``^1.2.3`` and ``~1.2.3`` (npm, Cargo)
- ``~> 2.2`` (RubyGems) and ``~= 2.2`` (PEP 440)
- ``[1.0,2.0)``, ``(,1.0]``, ``[1.5]`` (Maven and NuGet intervals)
- ``1.2.x``, ``1.2.*`` and ``*`` wildcards
- ``1.2.3 - 2.0.0`` hyphen ranges

PyPI alternatives that only use PEP 440 operators are evaluated by
``packaging.specifiers`` directly.

A bare version with no operator takes ``bare_op``: advisories use ``=`` for
affected expressions and ``>=`` for fixed expressions.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

from packaging.specifiers import InvalidSpecifier, SpecifierSet

from ..domain.enums import Ecosystem
from .versions import compare, sort_key


class RangeError(ValueError):
    """Raised for range expressions that cannot be read."""


_OPS = {
    "<": lambda c: c < 0,
    "<=": lambda c: c <= 0,
    ">": lambda c: c > 0,
    ">=": lambda c: c >= 0,
    "=": lambda c: c == 0,
    "!=": lambda c: c != 0,
}

_PEP440_OPS = {"==", "===", "!=", "<", "<=", ">", ">=", "~=", "="}

_TOKEN = re.compile(r"(===|~=|~>|==|!=|>=|<=|\^|~|>|<|=)?\s*([^\s,|<>=!~^]+)")
_INTERVAL = re.compile(r"([\[(])\s*([^,\[\]()]*?)\s*(?:,\s*([^,\[\]()]*?)\s*)?([\])])")
_HYPHEN = re.compile(r"^(\S+)\s+-\s+(\S+)$")
_RELEASE = re.compile(r"^(v?)(\d+(?:\.\d+)*)")
_ANY = {"*", "x", "X", "any"}


@dataclass(frozen=True)
class Constraint:
    op: str
    version: str

    def allows(self, ecosystem: Ecosystem, version: str) -> bool:
        return _OPS[self.op](compare(ecosystem, version, self.version))

    def __str__(self) -> str:
        return f"{self.op}{self.version}"


@dataclass(frozen=True)
class ConstraintClause:
    constraints: tuple[Constraint, ...]

    def contains(self, ecosystem: Ecosystem, version: str) -> bool:
        return all(c.allows(ecosystem, version) for c in self.constraints)


@dataclass(frozen=True)
class SpecifierClause:
    specifiers: SpecifierSet

    def contains(self, ecosystem: Ecosystem, version: str) -> bool:
        return self.specifiers.contains(version, prereleases=True)


Clause = Union[ConstraintClause, SpecifierClause]


@dataclass(frozen=True)
class VersionRange:
    ecosystem: Ecosystem
    alternatives: tuple[Clause, ...]
    expression: str

    def contains(self, version: str) -> bool:
        return any(clause.contains(self.ecosystem, version) for clause in self.alternatives)

    def lower_bound(self) -> Optional[str]:
        """Return the lowest version named by a lower-bound constraint, if any."""
        candidates: list[str] = []
        for clause in self.alternatives:
            if isinstance(clause, SpecifierClause):
                candidates += [s.version for s in clause.specifiers if s.operator in (">=", ">", "==", "===")]
            else:
                candidates += [c.version for c in clause.constraints if c.op in (">=", ">", "=")]
        if not candidates:
            return None
        return min(candidates, key=sort_key(self.ecosystem))


def _release(version: str) -> tuple[str, list[int]]:
    m = _RELEASE.match(version)
    if not m:
        raise RangeError(f"version has no numeric release part: {version!r}")
    return m.group(1), [int(p) for p in m.group(2).split(".")]


def _join(prefix: str, parts: Sequence[int]) -> str:
    return prefix + ".".join(str(p) for p in parts)


def _caret(version: str) -> list[Constraint]:
    prefix, parts = _release(version)
    upper = list(parts)
    idx = next((i for i, p in enumerate(upper) if p != 0), len(upper) - 1)
    upper = upper[: idx + 1]
    upper[idx] += 1
    return [Constraint(">=", version), Constraint("<", _join(prefix, upper))]


def _tilde(version: str) -> list[Constraint]:
    prefix, parts = _release(version)
    upper = parts[:2] if len(parts) >= 2 else parts[:1]
    upper[-1] += 1
    return [Constraint(">=", version), Constraint("<", _join(prefix, upper))]


def _pessimistic(version: str) -> list[Constraint]:
    prefix, parts = _release(version)
    upper = parts[:-1] if len(parts) > 1 else list(parts)
    upper[-1] += 1
    return [Constraint(">=", version), Constraint("<", _join(prefix, upper))]


def _wildcard(version: str) -> list[Constraint]:
    fixed: list[str] = []
    for part in version.split("."):
        if part in _ANY:
            break
        fixed.append(part)
    if not fixed:
        return []
    prefix, parts = _release(".".join(fixed))
    upper = list(parts)
    upper[-1] += 1
    return [Constraint(">=", _join(prefix, parts)), Constraint("<", _join(prefix, upper))]


def _is_wildcard(version: str) -> bool:
    return any(part in _ANY for part in version.split("."))


def _expand(op: Optional[str], version: str, bare_op: str) -> list[Constraint]:
    if op is None:
        op = bare_op
    if _is_wildcard(version):
        if op in ("=", "=="):
            return _wildcard(version)
        version = ".".join(p for p in version.split(".") if p not in _ANY) or "0"
    if op in ("=", "==", "==="):
        return [Constraint("=", version)]
    if op in _OPS:
        return [Constraint(op, version)]
    if op == "^":
        return _caret(version)
    if op == "~":
        return _tilde(version)
    if op in ("~>", "~="):
        return _pessimistic(version)
    raise RangeError(f"unknown operator {op!r}")


def _tokens(alternative: str) -> list[tuple[Optional[str], str]]:
    out: list[tuple[Optional[str], str]] = []
    pos = 0
    for m in _TOKEN.finditer(alternative):
        gap = alternative[pos : m.start()]
        if gap.strip(" \t,"):
            raise RangeError(f"unexpected text {gap.strip()!r} in {alternative!r}")
        out.append((m.group(1), m.group(2)))
        pos = m.end()
    if alternative[pos:].strip(" \t,"):
        raise RangeError(f"unexpected text {alternative[pos:].strip()!r} in {alternative!r}")
    if not out:
        raise RangeError(f"no constraints in {alternative!r}")
    return out


def _intervals(alternative: str) -> list[ConstraintClause]:
    clauses: list[ConstraintClause] = []
    pos = 0
    for m in _INTERVAL.finditer(alternative):
        if alternative[pos : m.start()].strip(" \t,"):
            raise RangeError(f"malformed interval list {alternative!r}")
        pos = m.end()
        opening, low, high, closing = m.groups()
        if high is None:
            if opening != "[" or closing != "]" or not low:
                raise RangeError(f"malformed exact interval {m.group(0)!r}")
            clauses.append(ConstraintClause((Constraint("=", low),)))
            continue
        constraints: list[Constraint] = []
        if low:
            constraints.append(Constraint(">=" if opening == "[" else ">", low))
        if high:
            constraints.append(Constraint("<=" if closing == "]" else "<", high))
        clauses.append(ConstraintClause(tuple(constraints)))
    if alternative[pos:].strip(" \t,") or not clauses:
        raise RangeError(f"malformed interval list {alternative!r}")
    return clauses


def _pep440_clause(tokens: list[tuple[Optional[str], str]], bare_op: str) -> Optional[SpecifierClause]:
    parts: list[str] = []
    for op, version in tokens:
        op = op or bare_op
        if op not in _PEP440_OPS:
            return None
        if op == "=":
            op = "=="
        parts.append(f"{op}{version}")
    try:
        return SpecifierClause(SpecifierSet(",".join(parts)))
    except InvalidSpecifier:
        return None


def _parse_alternative(alternative: str, ecosystem: Ecosystem, bare_op: str) -> list[Clause]:
    if alternative in _ANY:
        return [ConstraintClause(())]
    if alternative[0] in "[(":
        return list(_intervals(alternative))
    hyphen = _HYPHEN.match(alternative)
    if hyphen:
        return [ConstraintClause((Constraint(">=", hyphen.group(1)), Constraint("<=", hyphen.group(2))))]
    tokens = _tokens(alternative)
    if ecosystem is Ecosystem.PYPI:
        clause = _pep440_clause(tokens, bare_op)
        if clause is not None:
            return [clause]
    constraints: list[Constraint] = []
    for op, version in tokens:
        constraints.extend(_expand(op, version, bare_op))
    return [ConstraintClause(tuple(constraints))]


@functools.lru_cache(maxsize=4096)
def parse_range(expression: str, ecosystem: Ecosystem, bare_op: str = "=") -> VersionRange:
    """Parse a range expression. Raises RangeError when it cannot be read."""
    if bare_op not in _OPS:
        raise ValueError(f"bare_op must be one of {sorted(_OPS)}")
    expr = expression.strip()
    if not expr:
        raise RangeError("empty range expression")
    clauses: list[Clause] = []
    for alternative in expr.split("||"):
        alternative = alternative.strip()
        if not alternative:
            raise RangeError(f"empty alternative in {expression!r}")
        clauses.extend(_parse_alternative(alternative, ecosystem, bare_op))
    return VersionRange(ecosystem, tuple(clauses), expr)


def interval_expression(
    introduced: Optional[str] = None,
    fixed: Optional[str] = None,
    last_affected: Optional[str] = None,
    limit: Optional[str] = None,
) -> str:
    """Render one affected interval. ``introduced`` of "0" means "from the start"."""
    parts: list[str] = []
    if introduced and introduced != "0":
        parts.append(f">={introduced}")
    if fixed:
        parts.append(f"<{fixed}")
    elif last_affected:
        parts.append(f"<={last_affected}")
    elif limit and limit != "*":
        parts.append(f"<{limit}")
    return ", ".join(parts) or "*"


def join_alternatives(expressions: Iterable[str]) -> Optional[str]:
    seen: dict[str, None] = {}
    for e in expressions:
        if e:
            seen.setdefault(e, None)
    if not seen:
        return None
    if "*" in seen:
        return "*"
    return " || ".join(seen)


def build_fixed_expression(ecosystem: Ecosystem, intervals: Iterable[tuple[Optional[str], Optional[str]]]) -> Optional[str]:
    """Build the fixed expression of a package from its (introduced, fixed) intervals.

    Each fix only covers its own release line: the segment starting at a fixed
    version ends where the next affected interval begins, so a fix in 1.x never
    marks an unfixed 2.x as safe.
    """
    unique = list(dict.fromkeys((None if i in (None, "", "0") else i, f or None) for i, f in intervals))
    by_start = sort_key(ecosystem)
    unique.sort(key=lambda iv: (iv[0] is not None, by_start(iv[0] or "0")))
    segments: list[str] = []
    for idx, (_, fix) in enumerate(unique):
        if fix is None:
            continue
        segment = f">={fix}"
        for next_start, _ in unique[idx + 1 :]:
            if next_start is not None and compare(ecosystem, next_start, fix) > 0:
                segment += f", <{next_start}"
                break
        segments.append(segment)
    return join_alternatives(segments)
