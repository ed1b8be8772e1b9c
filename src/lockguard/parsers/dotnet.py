from __future__ import annotations

from ..core.domain.enums import Ecosystem
from ..core.domain.models import PackageDeclaration
from ._common import declare, dedupe, expect_mapping, load_json, mapping


def parse_packages_lock_json(content: bytes, path: str) -> list[PackageDeclaration]:
    """NuGet packages.lock.json, across every target framework."""
    data = expect_mapping(load_json(content, path), path)
    out: list[PackageDeclaration] = []
    for framework in mapping(data.get("dependencies")).values():
        for name, info in mapping(framework).items():
            info = mapping(info)
            version = info.get("resolved")
            if info.get("type") == "Project" or not isinstance(version, str):
                continue
            out.append(declare(name, version, Ecosystem.NUGET, path))
    return dedupe(out)
