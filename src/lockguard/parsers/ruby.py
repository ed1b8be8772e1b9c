from __future__ import annotations

import re

from ..core.domain.enums import Ecosystem
from ..core.domain.models import PackageDeclaration
from ._common import declare, dedupe, decode

_SPEC = re.compile(r"^    ([^\s(]+) \(([^)]+)\)\s*$")


def parse_gemfile_lock(content: bytes, path: str) -> list[PackageDeclaration]:
    """Gems from the GEM section. PATH and GIT sources are local or unreleased code."""
    out: list[PackageDeclaration] = []
    section = None
    in_specs = False
    for line in decode(content, path).splitlines():
        if not line.strip():
            continue
        if not line[0].isspace():
            section = line.strip()
            in_specs = False
            continue
        if line.strip() == "specs:":
            in_specs = True
            continue
        if section != "GEM" or not in_specs:
            continue
        m = _SPEC.match(line)
        if m:
            # platform gems look like "nokogiri (1.15.4-x86_64-linux)"
            version = m.group(2).split("-", 1)[0]
            out.append(declare(m.group(1), version, Ecosystem.RUBYGEMS, path))
    return dedupe(out)
