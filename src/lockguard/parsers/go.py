from __future__ import annotations

from ..core.domain.enums import Ecosystem
from ..core.domain.errors import ParseError
from ..core.domain.models import PackageDeclaration
from ..core.services.versions import compare
from ._common import declare, decode


def parse_go_sum(content: bytes, path: str) -> list[PackageDeclaration]:
    """go.sum lists every version that took part in resolution; the highest one per module wins."""
    selected: dict[str, str] = {}
    for lineno, line in enumerate(decode(content, path).splitlines(), start=1):
        fields = line.split()
        if not fields:
            continue
        if len(fields) < 2:
            raise ParseError(path, f"line {lineno}: expected '<module> <version> <hash>'")
        module, version = fields[0], fields[1]
        version = version.removesuffix("/go.mod").removesuffix("+incompatible")
        current = selected.get(module)
        if current is None or compare(Ecosystem.GO, version, current) > 0:
            selected[module] = version
    return [declare(module, version, Ecosystem.GO, path) for module, version in selected.items()]
