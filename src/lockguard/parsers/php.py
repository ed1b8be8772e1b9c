from __future__ import annotations

from ..core.domain.enums import Ecosystem
from ..core.domain.models import PackageDeclaration
from ._common import declare, dedupe, expect_mapping, load_json, mapping


def parse_composer_lock(content: bytes, path: str) -> list[PackageDeclaration]:
    data = expect_mapping(load_json(content, path), path)
    out: list[PackageDeclaration] = []
    for section in ("packages", "packages-dev"):
        for pkg in data.get(section) or []:
            pkg = mapping(pkg)
            name, version = pkg.get("name"), pkg.get("version")
            if not isinstance(name, str) or not isinstance(version, str):
                continue
            if version.startswith("dev-") or version.endswith("-dev"):
                # branch checkouts have no release to compare against
                out.append(declare(name, version, Ecosystem.PACKAGIST, path, pinned=False))
                continue
            out.append(declare(name, version.removeprefix("v"), Ecosystem.PACKAGIST, path))
    return dedupe(out)
