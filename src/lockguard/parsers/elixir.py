from __future__ import annotations

import re

from ..core.domain.enums import Ecosystem
from ..core.domain.models import PackageDeclaration
from ._common import declare, dedupe, decode

# "phoenix": {:hex, :phoenix, "1.6.15", "<hash>", [:mix], [...], "hexpm", "<hash>"},
_HEX_ENTRY = re.compile(r'^\s*"([^"]+)"\s*:\s*\{\s*:hex\s*,\s*:"?([A-Za-z0-9_]+)"?\s*,\s*"([^"]+)"')


def parse_mix_lock(content: bytes, path: str) -> list[PackageDeclaration]:
    """Hex packages from mix.lock. ``:git`` and ``:path`` entries are skipped."""
    out: list[PackageDeclaration] = []
    for line in decode(content, path).splitlines():
        m = _HEX_ENTRY.match(line)
        if m:
            out.append(declare(m.group(2), m.group(3), Ecosystem.HEX, path))
    return dedupe(out)
