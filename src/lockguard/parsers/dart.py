from __future__ import annotations

from ..core.domain.enums import Ecosystem
from ..core.domain.models import PackageDeclaration
from ._common import declare, dedupe, expect_mapping, load_yaml, mapping


def parse_pubspec_lock(content: bytes, path: str) -> list[PackageDeclaration]:
    data = expect_mapping(load_yaml(content, path), path)
    out: list[PackageDeclaration] = []
    for name, info in mapping(data.get("packages")).items():
        info = mapping(info)
        version = info.get("version")
        if info.get("source") in ("sdk", "path") or version is None:
            continue
        out.append(declare(str(name), str(version), Ecosystem.PUB, path))
    return dedupe(out)
