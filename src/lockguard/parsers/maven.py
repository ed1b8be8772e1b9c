"""Maven: pom.xml (direct dependencies) and Gradle's gradle.lockfile."""

from __future__ import annotations

import re
from typing import Optional

from lxml import etree

from ..core.domain.enums import Ecosystem
from ..core.domain.errors import ParseError
from ..core.domain.models import PackageDeclaration
from ._common import declare, dedupe, decode

_ECO = Ecosystem.MAVEN
_PROPERTY = re.compile(r"\$\{([^}]+)\}")
_MAX_PROPERTY_DEPTH = 10


def _child_text(el: etree._Element, name: str) -> Optional[str]:
    found = el.xpath(f"./*[local-name()='{name}']")
    if not found or found[0].text is None:
        return None
    return found[0].text.strip() or None


def _properties(root: etree._Element) -> dict[str, str]:
    props: dict[str, str] = {}
    for el in root.xpath("./*[local-name()='properties']/*"):
        if isinstance(el.tag, str) and el.text is not None:
            props[etree.QName(el).localname] = el.text.strip()
    parent = root.xpath("./*[local-name()='parent']")
    for key in ("version", "groupId", "artifactId"):
        value = _child_text(root, key)
        if value is None and parent:
            value = _child_text(parent[0], key)
        if value is not None:
            props.setdefault(f"project.{key}", value)
            props.setdefault(f"pom.{key}", value)
    if parent:
        parent_version = _child_text(parent[0], "version")
        if parent_version is not None:
            props.setdefault("project.parent.version", parent_version)
    return props


def _resolve(value: str, props: dict[str, str]) -> str:
    for _ in range(_MAX_PROPERTY_DEPTH):
        resolved = _PROPERTY.sub(lambda m: props.get(m.group(1), m.group(0)), value)
        if resolved == value:
            break
        value = resolved
    return value


def _is_concrete(version: Optional[str]) -> bool:
    return bool(version) and "${" not in version and not version.startswith(("[", "("))


def parse_pom_xml(content: bytes, path: str) -> list[PackageDeclaration]:
    """Direct and managed dependencies. Unresolved or ranged versions are recorded unpinned."""
    parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)
    try:
        root = etree.fromstring(content, parser)
    except etree.XMLSyntaxError as exc:
        raise ParseError(path, f"invalid XML: {exc}") from exc
    if root is None or etree.QName(root).localname != "project":
        raise ParseError(path, "root element is not <project>")

    props = _properties(root)
    out: list[PackageDeclaration] = []
    deps = root.xpath(
        ".//*[local-name()='dependencies']/*[local-name()='dependency']"
        "[not(ancestor::*[local-name()='plugin'])]"
    )
    for dep in deps:
        group = _child_text(dep, "groupId")
        artifact = _child_text(dep, "artifactId")
        if group is None or artifact is None:
            continue
        name = f"{_resolve(group, props)}:{_resolve(artifact, props)}"
        raw_version = _child_text(dep, "version")
        version = _resolve(raw_version, props) if raw_version else ""
        out.append(declare(name, version, _ECO, path, pinned=_is_concrete(version)))
    return dedupe(out)


def parse_gradle_lockfile(content: bytes, path: str) -> list[PackageDeclaration]:
    out: list[PackageDeclaration] = []
    for lineno, line in enumerate(decode(content, path).splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("empty="):
            continue
        coords = line.split("=", 1)[0]
        parts = coords.split(":")
        if len(parts) != 3:
            raise ParseError(path, f"line {lineno}: expected 'group:artifact:version=configurations'")
        group, artifact, version = parts
        out.append(declare(f"{group}:{artifact}", version, _ECO, path))
    return dedupe(out)
