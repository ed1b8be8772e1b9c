from __future__ import annotations

import json
import tomllib
from typing import Any, Iterable

import yaml

from ..core.domain.enums import Ecosystem
from ..core.domain.errors import ParseError
from ..core.domain.models import PackageDeclaration


def decode(content: bytes, path: str) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseError(path, f"not UTF-8 text ({exc.reason})") from exc


def load_json(content: bytes, path: str) -> Any:
    try:
        return json.loads(decode(content, path))
    except json.JSONDecodeError as exc:
        raise ParseError(path, f"invalid JSON: {exc}") from exc


def load_yaml(content: bytes, path: str) -> Any:
    try:
        return yaml.safe_load(decode(content, path))
    except yaml.YAMLError as exc:
        raise ParseError(path, f"invalid YAML: {exc}") from exc


def load_toml(content: bytes, path: str) -> dict[str, Any]:
    try:
        return tomllib.loads(decode(content, path))
    except tomllib.TOMLDecodeError as exc:
        raise ParseError(path, f"invalid TOML: {exc}") from exc


def expect_mapping(data: Any, path: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ParseError(path, f"expected a mapping at top level, got {type(data).__name__}")
    return data


def mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def dedupe(declarations: Iterable[PackageDeclaration]) -> list[PackageDeclaration]:
    """Keep the first declaration of each (name, version)."""
    seen: dict[tuple[str, str], PackageDeclaration] = {}
    for d in declarations:
        seen.setdefault((d.name, d.version), d)
    return list(seen.values())


def declare(name: str, version: str, ecosystem: Ecosystem, path: str, pinned: bool = True) -> PackageDeclaration:
    return PackageDeclaration(name=name, version=version, ecosystem=ecosystem, pinned=pinned, source_file=path)
