from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Sequence

from .app.container import Container
from .config.settings import AppConfig
from .core.domain.models import ScanHistory, ScanResult, Vulnerability, VulnerabilityPage


@contextmanager
def _provide_container(config_override: AppConfig | None = None) -> Iterator[Container]:
    """Create and initialize a DI container.

    Args:
        config_override: Optional AppConfig to override default configuration.
                        If None, configuration is loaded from environment variables
                        and .env file using Pydantic BaseSettings.
    """
    container = Container()
    container.config.from_pydantic(config_override or AppConfig())
    container.init_resources()
    try:
        yield container
    finally:
        container.shutdown_resources()


def scan_directory(path: str, *, config: AppConfig | None = None) -> ScanResult:
    """Scan a directory's lockfiles against the cached advisories.

    Args:
        path: Project directory to scan.
        config: Optional AppConfig to override default configuration.

    Returns:
        ScanResult with severity-sorted matches and a per-severity summary.

    Raises:
        NotFoundError: Nothing scannable at ``path``.
        IoError: A directory or lockfile could not be read.
    """
    with _provide_container(config) as container:
        uc = container.scan_uc()
        return uc.execute(path)


def fetch_vulnerabilities(ecosystems: Sequence[str] = (), *, config: AppConfig | None = None) -> int:
    """Refresh the advisory cache for the named ecosystems (all when empty).

    Returns:
        Number of advisories added or changed.

    Raises:
        ValueError: Unknown ecosystem name.
        NetworkError: A feed failed or timed out; the cache is unchanged.
    """
    with _provide_container(config) as container:
        uc = container.fetch_uc()
        return uc.execute(ecosystems)


def get_scan_history(limit: int = 20, *, config: AppConfig | None = None) -> list[ScanHistory]:
    """Return up to ``limit`` scan history rows, most recent first."""
    with _provide_container(config) as container:
        uc = container.history_uc()
        return uc.execute(limit)


def get_vulnerability_detail(id: str, *, config: AppConfig | None = None) -> Vulnerability | None:
    """Return a cached advisory by id or CVE alias, or None."""
    with _provide_container(config) as container:
        uc = container.detail_uc()
        return uc.execute(id)


def get_vulnerability_count(ecosystem: str | None = None, *, config: AppConfig | None = None) -> int:
    with _provide_container(config) as container:
        uc = container.count_uc()
        return uc.execute(ecosystem)


def list_vulnerabilities(
    *,
    ecosystem: str | None = None,
    severity: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
    config: AppConfig | None = None,
) -> VulnerabilityPage:
    """Return one page of cached advisories, newest published first."""
    with _provide_container(config) as container:
        uc = container.list_uc()
        return uc.execute(ecosystem=ecosystem, severity=severity, search=search, page=page, limit=limit)


def clear_cache(*, config: AppConfig | None = None) -> None:
    """Delete every cached advisory. Scan history is kept."""
    with _provide_container(config) as container:
        uc = container.clear_cache_uc()
        uc.execute()


__all__ = [
    "AppConfig",
    "scan_directory",
    "fetch_vulnerabilities",
    "get_scan_history",
    "get_vulnerability_detail",
    "get_vulnerability_count",
    "list_vulnerabilities",
    "clear_cache",
]
