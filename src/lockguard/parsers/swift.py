from __future__ import annotations

import re

from ..core.domain.enums import Ecosystem
from ..core.domain.errors import ParseError
from ..core.domain.models import PackageDeclaration
from ._common import declare, dedupe, expect_mapping, load_json, mapping

_SCHEME = re.compile(r"^(?:[a-z+]+://)?(?:[^@/]+@)?")


def package_identity(url: str) -> str:
    """Name a Swift package the way OSV does: host and path, no scheme, no ``.git``.

    ``https://github.com/Alamofire/Alamofire.git`` -> ``github.com/Alamofire/Alamofire``
    ``git@github.com:apple/swift-nio.git`` -> ``github.com/apple/swift-nio``
    """
    name = _SCHEME.sub("", url.strip())
    if ":" in name and "/" in name and name.index(":") < name.index("/"):
        # scp-like "host:owner/repo"
        name = name.replace(":", "/", 1)
    return name.rstrip("/").removesuffix(".git")


def parse_package_resolved(content: bytes, path: str) -> list[PackageDeclaration]:
    """Package.resolved v1 (``object.pins``) and v2/v3 (``pins``). Branch and revision pins are skipped."""
    data = expect_mapping(load_json(content, path), path)
    if "pins" in data:
        pins = data.get("pins") or []
        url_key = "location"
    elif "object" in data:
        pins = mapping(data.get("object")).get("pins") or []
        url_key = "repositoryURL"
    else:
        raise ParseError(path, "unknown Package.resolved layout")

    out: list[PackageDeclaration] = []
    for pin in pins:
        pin = mapping(pin)
        url = pin.get(url_key)
        version = mapping(pin.get("state")).get("version")
        if not isinstance(url, str) or not isinstance(version, str):
            continue
        out.append(declare(package_identity(url), version, Ecosystem.SWIFTURL, path))
    return dedupe(out)
