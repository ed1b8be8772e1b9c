"""npm lockfiles: package-lock.json, pnpm-lock.yaml and yarn.lock (classic and berry)."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterator, Optional

from ..core.domain.enums import Ecosystem
from ..core.domain.models import PackageDeclaration
from ._common import declare, dedupe, decode, expect_mapping, load_json, load_yaml, mapping

logger = logging.getLogger(__name__)

_ECO = Ecosystem.NPM
_NON_REGISTRY = ("file:", "link:", "git", "http:", "https:", "workspace:", "portal:", "github:")


def _registry_version(name: str, version: Any) -> Optional[tuple[str, str]]:
    """Resolve npm aliases ("npm:real@1.0.0") and drop non-registry sources."""
    if not isinstance(version, str) or not version:
        return None
    if version.startswith("npm:"):
        target = version[4:]
        at = target.rfind("@")
        if at <= 0:
            return None
        return target[:at], target[at + 1 :]
    if version.startswith(_NON_REGISTRY) or "/" in version:
        return None
    return name, version


def _walk_v1(deps: dict[str, Any], path: str) -> Iterator[PackageDeclaration]:
    for name, info in deps.items():
        info = mapping(info)
        resolved = _registry_version(name, info.get("version"))
        if resolved is not None:
            yield declare(resolved[0], resolved[1], _ECO, path)
        nested = mapping(info.get("dependencies"))
        if nested:
            yield from _walk_v1(nested, path)


def parse_package_lock(content: bytes, path: str) -> list[PackageDeclaration]:
    data = expect_mapping(load_json(content, path), path)
    packages = mapping(data.get("packages"))
    if not packages:
        return dedupe(_walk_v1(mapping(data.get("dependencies")), path))

    out: list[PackageDeclaration] = []
    for key, info in packages.items():
        info = mapping(info)
        # "" is the root project; keys outside node_modules are workspace folders.
        if "node_modules/" not in key or info.get("link"):
            continue
        name = info.get("name") or key.rsplit("node_modules/", 1)[-1]
        resolved = _registry_version(name, info.get("version"))
        if resolved is not None:
            out.append(declare(resolved[0], resolved[1], _ECO, path))
    return dedupe(out)


def _lockfile_major(data: dict[str, Any]) -> int:
    raw = data.get("lockfileVersion", 5)
    try:
        return int(float(str(raw)))
    except ValueError:
        return 5


def _pnpm_key(key: str, major: int) -> Optional[tuple[str, str]]:
    k = key.lstrip("/")
    if major < 6:
        # v5: /name/1.0.0 or /@scope/name/1.0.0_peer@1.0.0
        name, _, rest = k.rpartition("/")
        version = rest.split("_", 1)[0]
    else:
        # v6: /name@1.0.0(peer@1.0.0); v9: name@1.0.0
        k = k.split("(", 1)[0]
        at = k.rfind("@")
        if at <= 0:
            return None
        name, version = k[:at], k[at + 1 :]
    if not name or not version or not version[0].isdigit():
        return None
    return name, version


def parse_pnpm_lock(content: bytes, path: str) -> list[PackageDeclaration]:
    data = expect_mapping(load_yaml(content, path), path)
    major = _lockfile_major(data)
    out: list[PackageDeclaration] = []
    for section in ("packages", "snapshots"):
        for key in mapping(data.get(section)):
            parsed = _pnpm_key(str(key), major)
            if parsed is None:
                logger.debug("Skipping pnpm entry %s in %s", key, path)
                continue
            out.append(declare(parsed[0], parsed[1], _ECO, path))
    return dedupe(out)


def _descriptor_name(descriptor: str) -> Optional[str]:
    descriptor = descriptor.strip().strip('"')
    at = descriptor.find("@", 1)
    if at <= 0:
        return None
    return descriptor[:at]


def _parse_yarn_berry(content: bytes, path: str) -> list[PackageDeclaration]:
    data = expect_mapping(load_yaml(content, path), path)
    out: list[PackageDeclaration] = []
    for key, info in data.items():
        if key == "__metadata":
            continue
        info = mapping(info)
        first = str(key).split(",", 1)[0].strip()
        if any(p in first for p in ("@workspace:", "@link:", "@portal:", "@file:")):
            continue
        name = _descriptor_name(first)
        version = info.get("version")
        if name and isinstance(version, str) and version[:1].isdigit():
            out.append(declare(name, version, _ECO, path))
    return dedupe(out)


_YARN_VERSION = re.compile(r'^\s+version:?\s+"?([^"\s]+)"?\s*$')


def _parse_yarn_classic(text: str, path: str) -> list[PackageDeclaration]:
    out: list[PackageDeclaration] = []
    name: Optional[str] = None
    for line in text.splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        if not line[0].isspace():
            header = line.rstrip()
            name = _descriptor_name(header.rstrip(":").split(",", 1)[0]) if header.endswith(":") else None
            continue
        if name is None:
            continue
        m = _YARN_VERSION.match(line)
        if m:
            out.append(declare(name, m.group(1), _ECO, path))
            name = None
    return dedupe(out)


def parse_yarn_lock(content: bytes, path: str) -> list[PackageDeclaration]:
    text = decode(content, path)
    if "__metadata:" in text:
        return _parse_yarn_berry(content, path)
    return _parse_yarn_classic(text, path)
