from __future__ import annotations

import re

from ..core.domain.enums import Ecosystem
from ..core.domain.errors import ParseError
from ..core.domain.models import PackageDeclaration
from ._common import declare, dedupe, expect_mapping, load_yaml

_POD = re.compile(r"^(\S+) \(([^)]+)\)$")


def parse_podfile_lock(content: bytes, path: str) -> list[PackageDeclaration]:
    """Pods from the PODS list. Subspecs ("Firebase/Analytics") count as their root pod."""
    data = expect_mapping(load_yaml(content, path), path)
    pods = data.get("PODS") or []
    if not isinstance(pods, list):
        raise ParseError(path, "PODS is not a list")
    out: list[PackageDeclaration] = []
    for entry in pods:
        # pods with dependencies are single-key mappings
        label = next(iter(entry)) if isinstance(entry, dict) and entry else entry
        m = _POD.match(str(label).strip())
        if m is None:
            continue
        out.append(declare(m.group(1).split("/", 1)[0], m.group(2), Ecosystem.COCOAPODS, path))
    return dedupe(out)
