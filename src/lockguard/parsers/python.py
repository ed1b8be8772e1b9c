"""PyPI: requirements.txt, poetry.lock and Pipfile.lock."""

from __future__ import annotations

import logging
import re
from typing import Iterator

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from ..core.domain.enums import Ecosystem
from ..core.domain.errors import ParseError
from ..core.domain.models import PackageDeclaration
from ._common import declare, dedupe, decode, expect_mapping, load_json, load_toml, mapping

logger = logging.getLogger(__name__)

_ECO = Ecosystem.PYPI
_COMMENT = re.compile(r"(^|\s)#.*$")
_INLINE_OPTION = re.compile(r"\s--?[a-zA-Z].*$")


def _logical_lines(text: str) -> Iterator[tuple[int, str]]:
    buf: list[str] = []
    start = 0
    for lineno, raw in enumerate(text.splitlines(), start=1):
        if not buf:
            start = lineno
        line = _COMMENT.sub("", raw)
        if line.endswith("\\"):
            buf.append(line[:-1])
            continue
        buf.append(line)
        yield start, " ".join(buf).strip()
        buf = []
    if buf:
        yield start, " ".join(buf).strip()


def _pin(req: Requirement) -> str | None:
    specs = list(req.specifier)
    if len(specs) == 1 and specs[0].operator in ("==", "===") and not specs[0].version.endswith(".*"):
        return specs[0].version
    return None


def parse_requirements_txt(content: bytes, path: str) -> list[PackageDeclaration]:
    """Pins (``==``/``===``) resolve to versions; anything else is recorded unpinned."""
    out: list[PackageDeclaration] = []
    for lineno, line in _logical_lines(decode(content, path)):
        if not line or line.startswith("-"):
            continue
        line = _INLINE_OPTION.sub("", line).strip()
        if line.startswith((".", "/")) or ("://" in line and "@" not in line.split("://", 1)[0]):
            logger.debug("Skipping local or URL requirement at %s:%d", path, lineno)
            continue
        try:
            req = Requirement(line)
        except InvalidRequirement as exc:
            raise ParseError(path, f"line {lineno}: {exc}") from exc
        name = canonicalize_name(req.name)
        version = _pin(req)
        if version is not None and req.url is None:
            out.append(declare(name, version, _ECO, path))
        else:
            out.append(declare(name, str(req.specifier), _ECO, path, pinned=False))
    return dedupe(out)


def parse_poetry_lock(content: bytes, path: str) -> list[PackageDeclaration]:
    data = load_toml(content, path)
    out: list[PackageDeclaration] = []
    for pkg in data.get("package", []):
        pkg = mapping(pkg)
        if mapping(pkg.get("source")).get("type") in ("directory", "file", "git", "url"):
            continue
        name, version = pkg.get("name"), pkg.get("version")
        if isinstance(name, str) and isinstance(version, str):
            out.append(declare(canonicalize_name(name), version, _ECO, path))
    return dedupe(out)


def parse_pipfile_lock(content: bytes, path: str) -> list[PackageDeclaration]:
    data = expect_mapping(load_json(content, path), path)
    out: list[PackageDeclaration] = []
    for section in ("default", "develop"):
        for name, info in mapping(data.get(section)).items():
            version = mapping(info).get("version")
            # git and editable entries carry no version
            if not isinstance(version, str) or not version.startswith("=="):
                continue
            out.append(declare(canonicalize_name(name), version.lstrip("="), _ECO, path))
    return dedupe(out)
