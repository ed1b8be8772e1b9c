"""Lockfile parsers, one per file format, looked up by file name."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from ..core.domain.errors import ParseError
from ..core.domain.models import CoverageCaveat, DetectedLockfile, PackageDeclaration
from .cargo import parse_cargo_lock
from .cocoapods import parse_podfile_lock
from .dart import parse_pubspec_lock
from .dotnet import parse_packages_lock_json
from .elixir import parse_mix_lock
from .go import parse_go_sum
from .maven import parse_gradle_lockfile, parse_pom_xml
from .npm import parse_package_lock, parse_pnpm_lock, parse_yarn_lock
from .php import parse_composer_lock
from .python import parse_pipfile_lock, parse_poetry_lock, parse_requirements_txt
from .ruby import parse_gemfile_lock
from .swift import parse_package_resolved

logger = logging.getLogger(__name__)

Parser = Callable[[bytes, str], list[PackageDeclaration]]

PARSERS: dict[str, Parser] = {
    "package-lock.json": parse_package_lock,
    "pnpm-lock.yaml": parse_pnpm_lock,
    "yarn.lock": parse_yarn_lock,
    "Cargo.lock": parse_cargo_lock,
    "requirements.txt": parse_requirements_txt,
    "poetry.lock": parse_poetry_lock,
    "Pipfile.lock": parse_pipfile_lock,
    "go.sum": parse_go_sum,
    "pom.xml": parse_pom_xml,
    "gradle.lockfile": parse_gradle_lockfile,
    "packages.lock.json": parse_packages_lock_json,
    "Gemfile.lock": parse_gemfile_lock,
    "composer.lock": parse_composer_lock,
    "pubspec.lock": parse_pubspec_lock,
    "mix.lock": parse_mix_lock,
    "Podfile.lock": parse_podfile_lock,
    "Package.resolved": parse_package_resolved,
}

# Manifests rather than lockfiles: they may name only direct dependencies.
_MANIFEST_NOTES = {
    "requirements.txt": "requirements.txt may list only direct dependencies; transitive packages are not checked",
    "pom.xml": "pom.xml lists only direct dependencies; transitive packages are not checked",
}


def parser_for(filename: str) -> Parser:
    try:
        return PARSERS[filename]
    except KeyError:
        raise ValueError(f"No parser for {filename!r}") from None


def parse_lockfile(lockfile: DetectedLockfile, content: bytes) -> list[PackageDeclaration]:
    """Parse one detected file. Any structural surprise surfaces as ParseError."""
    parser = parser_for(lockfile.filename)
    try:
        packages = parser(content, lockfile.path)
    except ParseError:
        raise
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        raise ParseError(lockfile.path, f"unexpected structure ({type(exc).__name__}: {exc})") from exc
    logger.debug("Parsed %d packages from %s", len(packages), lockfile.path)
    return packages


def coverage_caveat(lockfile: DetectedLockfile, packages: Sequence[PackageDeclaration]) -> Optional[CoverageCaveat]:
    note = _MANIFEST_NOTES.get(lockfile.filename)
    if note is None:
        return None
    unpinned = tuple(sorted({p.name for p in packages if not p.pinned}))
    return CoverageCaveat(ecosystem=lockfile.ecosystem, path=lockfile.path, message=note, unpinned=unpinned)


__all__ = ["PARSERS", "Parser", "coverage_caveat", "parse_lockfile", "parser_for"]
