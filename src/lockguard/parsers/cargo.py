from __future__ import annotations

from ..core.domain.enums import Ecosystem
from ..core.domain.models import PackageDeclaration
from ._common import declare, dedupe, load_toml, mapping


def parse_cargo_lock(content: bytes, path: str) -> list[PackageDeclaration]:
    """Cargo.lock v1 to v4. Workspace members (no ``source``) and git crates are skipped."""
    data = load_toml(content, path)
    out: list[PackageDeclaration] = []
    for pkg in data.get("package", []):
        pkg = mapping(pkg)
        name, version, source = pkg.get("name"), pkg.get("version"), pkg.get("source")
        if not isinstance(name, str) or not isinstance(version, str):
            continue
        if not isinstance(source, str) or not source.startswith(("registry+", "sparse+")):
            continue
        out.append(declare(name, version, Ecosystem.CRATES_IO, path))
    return dedupe(out)
