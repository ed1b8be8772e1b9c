from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Annotated, Iterator, Optional, Sequence

import typer
from pydantic import TypeAdapter

from .container import Container
from ..config.settings import AppConfig
from ..config.urls import get_github_advisory_url, get_osv_vuln_url
from ..core.domain.enums import VulnSource
from ..core.domain.errors import LockguardError
from ..core.domain.models import (
    CoverageCaveat,
    ScanHistory,
    ScanResult,
    ScanWarning,
    Vulnerability,
    VulnerabilityPage,
    VulnMatch,
)


app = typer.Typer(add_completion=False, help="Lockguard: scan project lockfiles for known vulnerabilities")


class LogLevel(str, Enum):
    OFF = "OFF"
    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    DEBUG = "DEBUG"
    NOTSET = "NOTSET"


@contextmanager
def provide_container() -> Iterator[Container]:
    container = Container()
    container.config.from_pydantic(AppConfig())
    container.init_resources()
    try:
        yield container
    finally:
        container.shutdown_resources()


def _fail(message: str) -> typer.Exit:
    typer.echo(message, err=True)
    return typer.Exit(code=1)


@app.callback()
def main(
    log_level: Annotated[
        Optional[LogLevel],
        typer.Option(
            "--log-level",
            help="Set log level (OFF, CRITICAL, ERROR, WARNING, INFO, DEBUG, NOTSET). Default: OFF",
            case_sensitive=False,
        ),
    ] = None,
) -> None:
    """Configure logging for the package when a level is requested."""
    if log_level in (None, LogLevel.OFF):
        return

    level = logging.getLevelNamesMapping().get(log_level.value, logging.INFO)

    package_name = __package__.split(".", 1)[0] if __package__ else "lockguard"
    logger = logging.getLogger(package_name)

    # One console handler only, even when invoked repeatedly in-process
    has_stream = any(isinstance(h, logging.StreamHandler) for h in logger.handlers)
    if not has_stream:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s | %(name)s | %(message)s"))
        logger.addHandler(handler)

    logger.propagate = False
    logger.setLevel(level)


@app.command(help="Scan PATH for lockfiles and report vulnerable dependencies from the local advisory cache.")
def scan(
    path: str = typer.Argument(..., help="Project directory to scan"),
    json_output: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    refresh: bool = typer.Option(False, "--refresh", help="Refresh advisories for the detected ecosystems first"),
) -> None:
    with provide_container() as container:
        uc = container.scan_uc(refresh_before_scan=True) if refresh else container.scan_uc()
        try:
            result = uc.execute(path)
        except LockguardError as e:
            raise _fail(str(e))
        if json_output:
            print(json.dumps(_result_payload(result), ensure_ascii=False, indent=2))
        else:
            _print_scan(result)


@app.command(help="Refresh the advisory cache for the given ecosystems (all when none are given).")
def fetch(
    ecosystems: Optional[list[str]] = typer.Argument(None, help="Ecosystems to refresh (e.g., npm, PyPI, cargo)", metavar="ECOSYSTEM"),
) -> None:
    with provide_container() as container:
        uc = container.fetch_uc()
        try:
            changed = uc.execute(ecosystems or [])
        except (LockguardError, ValueError) as e:
            raise _fail(str(e))
        typer.echo(f"{changed} advisories added or updated")


@app.command(help="Show recent scans, most recent first.")
def history(limit: int = typer.Option(20, "--limit", "-n", min=0, help="Number of rows to show (default: 20)")) -> None:
    with provide_container() as container:
        uc = container.history_uc()
        _print_history(uc.execute(limit))


@app.command(help="Show a cached advisory by id (GHSA-..., CVE-..., PYSEC-..., RUSTSEC-...).")
def detail(id: str = typer.Argument(..., help="Advisory identifier or CVE alias")) -> None:
    with provide_container() as container:
        uc = container.detail_uc()
        v = uc.execute(id)
        if v is None:
            raise _fail("Not found")
        _print_detail(v)


@app.command(help="Count cached advisories.")
def count(
    ecosystem: Optional[str] = typer.Option(None, "--ecosystem", "-e", help="Only count this ecosystem"),
) -> None:
    with provide_container() as container:
        uc = container.count_uc()
        try:
            n = uc.execute(ecosystem)
        except ValueError as e:
            raise _fail(str(e))
        typer.echo(str(n))


@app.command("list", help="Browse cached advisories, newest published first.")
def list_vulnerabilities(
    ecosystem: Optional[str] = typer.Option(None, "--ecosystem", "-e", help="Only this ecosystem (e.g., npm, PyPI, cargo)"),
    severity: Optional[str] = typer.Option(None, "--severity", "-s", help="Only this severity (critical, high, medium, low)"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Text to find in title, package name or id"),
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page number (default: 1)"),
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Rows per page (default: 20)"),
) -> None:
    with provide_container() as container:
        uc = container.list_uc()
        try:
            result = uc.execute(ecosystem=ecosystem, severity=severity, search=search, page=page, limit=limit)
        except ValueError as e:
            raise _fail(str(e))
        _print_page(result)


@app.command(help="Delete every cached advisory. Scan history is kept.")
def clear() -> None:
    with provide_container() as container:
        uc = container.clear_cache_uc()
        uc.execute()
        typer.echo("Cache cleared")


_MATCHES = TypeAdapter(list[VulnMatch])
_WARNINGS = TypeAdapter(list[ScanWarning])
_CAVEATS = TypeAdapter(list[CoverageCaveat])


def _result_payload(result: ScanResult) -> dict:
    counts = {sev.value: n for sev, n in result.summary.counts.items()}
    counts["total"] = result.summary.total
    return {
        "directory": result.directory,
        "scanned_at": result.scanned_at.isoformat(),
        "ecosystems": sorted(e.value for e in result.ecosystems),
        "lockfiles": [lf.path for lf in result.lockfiles],
        "total_packages": result.total_packages,
        "summary": counts,
        "partial": result.is_partial,
        "matches": _MATCHES.dump_python(list(result.matches), mode="json"),
        "warnings": _WARNINGS.dump_python(list(result.warnings), mode="json"),
        "caveats": _CAVEATS.dump_python(list(result.caveats), mode="json"),
    }


def _print_scan(result: ScanResult) -> None:
    """Print the summary line, then matches grouped by severity, then warnings and caveats."""
    ecos = ", ".join(sorted(e.value for e in result.ecosystems))
    print(f"Scanned {result.directory}: {result.total_packages} packages ({ecos})")
    counts = result.summary.counts
    print("  ".join(f"{sev.name}: {counts[sev]}" for sev, _ in result.summary.groups) + f"  TOTAL: {result.summary.total}")
    for sev, items in result.summary.groups:
        if not items:
            continue
        print(f"\n{sev.name}")
        for m in items:
            v = m.vulnerability
            fixed = f" (fixed: {v.fixed_versions})" if v.fixed_versions else ""
            print(f"  {m.ecosystem.value:10} {m.package_name}@{m.installed_version:12} {v.id:22} {v.title}{fixed}")
    if result.warnings:
        print("\nWarnings:")
        for w in result.warnings:
            print(f"  - {w.message}")
    if result.caveats:
        print("\nCoverage caveats:")
        for c in result.caveats:
            print(f"  - {c.path}: {c.message}")


def _print_history(rows: Sequence[ScanHistory]) -> None:
    print(f"{'ID':>6} {'Scanned at':25} {'Ecosystem':10} {'Vulns':>5}  Directory")
    for r in rows:
        print(f"{r.id:>6} {r.scanned_at.isoformat(timespec='seconds'):25} {r.ecosystem.value:10} {r.vuln_count:>5}  {r.directory}")


def _print_page(result: VulnerabilityPage) -> None:
    for v in result.items:
        published = v.published_at.date().isoformat() if v.published_at else "-"
        print(f"{v.id:22} {v.severity.name:8} {v.affected_ecosystem.value:10} {v.affected_package:30} {published:10}  {v.title}")
    print(f"Page {result.page}/{max(result.pages, 1)} ({result.total} total)")


def _print_detail(v: Vulnerability) -> None:
    print(f"ID: {v.id}")
    if v.cve_id and v.cve_id != v.id:
        print(f"CVE: {v.cve_id}")
    print(f"Source: {v.source.value}")
    if v.source is VulnSource.GITHUB:
        print(f"URL: {get_github_advisory_url(v.id)}")
    elif v.source is VulnSource.OSV:
        print(f"URL: {get_osv_vuln_url(v.id)}")
    print(f"Title: {v.title}")
    score = f" (CVSS {v.cvss_score})" if v.cvss_score is not None else ""
    print(f"Severity: {v.severity.name}{score}")
    print(f"Package: [{v.affected_ecosystem.value}] {v.affected_package}")
    if v.affected_versions:
        print(f"Affected: {v.affected_versions}")
    if v.fixed_versions:
        print(f"Fixed: {v.fixed_versions}")
    if v.published_at:
        print(f"Published: {v.published_at}")
    if v.modified_at:
        print(f"Modified:  {v.modified_at}")
    if v.aliases:
        print(f"Aliases: {', '.join(v.aliases)}")
    if v.description:
        print(f"\n{v.description}")
    if v.references:
        print("\nReferences:")
        for url in v.references:
            print(f"  - {url}")


if __name__ == "__main__":  # pragma: no cover
    app()
