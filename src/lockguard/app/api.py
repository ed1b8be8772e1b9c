from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Sequence

from .container import Container
from ..config.settings import AppConfig
from ..core.domain.models import ScanHistory, ScanResult, Vulnerability, VulnerabilityPage
from ..core.usecases.scan_directory import ScanJob


class LockguardClient:
    """Client for scanning project directories against the local advisory cache.

    The container and its resources (disk caches, HTTP and GitHub clients) are
    initialized once and reused across calls. Scans read only the local cache;
    ``fetch_vulnerabilities`` is the only operation that goes to the network
    (unless ``refresh_before_scan`` is set).

    Example:
        # Using default configuration (from environment variables)
        client = LockguardClient()
        client.fetch_vulnerabilities(["npm"])
        result = client.scan_directory("./my-project")
        client.close()

        # Using context manager (recommended)
        with LockguardClient() as client:
            result = client.scan_directory("./my-project")
            for m in result.matches:
                print(m.package_name, m.installed_version, m.vulnerability.id)

        # Customize settings
        with LockguardClient(cache_dir="/custom/cache", sources=["osv"]) as client:
            client.fetch_vulnerabilities([])
    """

    def __init__(
        self,
        *,
        cache_dir: str | Path | None = None,
        github_token: str | None = None,
        sources: Sequence[str] | None = None,
        source_timeout_seconds: float | None = None,
        detect_max_depth: int | None = None,
        match_without_range: bool | None = None,
        refresh_before_scan: bool | None = None,
        scan_workers: int | None = None,
    ):
        """Initialize the client.

        Every argument left as None falls back to the LOCKGUARD_* environment
        variables, the ``.env`` file, then the defaults of ``AppConfig``.

        Args:
            cache_dir: Directory holding the advisory and history caches.
            github_token: GitHub token for the advisory feed.
            sources: Feeds used by refresh, e.g. ["osv", "github"].
            source_timeout_seconds: Wall-clock budget per source and ecosystem during refresh.
            detect_max_depth: How many directory levels below the target are searched for lockfiles.
            match_without_range: Report advisories without an affected range for every version.
            refresh_before_scan: Refresh the detected ecosystems before matching.
            scan_workers: Threads available to ``submit_scan``.

        Example:
            client = LockguardClient(cache_dir="/tmp/lockguard", match_without_range=True)
        """
        self._container = Container()

        # Build config dict with only provided values
        config_dict: dict = {}
        if cache_dir is not None:
            config_dict["cache_dir"] = Path(cache_dir)
        if github_token is not None:
            config_dict["github_token"] = github_token
        if sources is not None:
            config_dict["sources"] = list(sources)
        if source_timeout_seconds is not None:
            config_dict["source_timeout_seconds"] = source_timeout_seconds
        if detect_max_depth is not None:
            config_dict["detect_max_depth"] = detect_max_depth
        if match_without_range is not None:
            config_dict["match_without_range"] = match_without_range
        if refresh_before_scan is not None:
            config_dict["refresh_before_scan"] = refresh_before_scan
        if scan_workers is not None:
            config_dict["scan_workers"] = scan_workers

        # Settings are re-read here so environment changes after import are honored.
        self._config = AppConfig(**config_dict)
        self._container.config.from_pydantic(self._config)
        self._container.init_resources()

        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self._submitted: list[ScanJob] = []

    @property
    def config(self) -> AppConfig:
        return self._config

    def scan_directory(self, path: str) -> ScanResult:
        """Scan a directory's lockfiles against the cached advisories.

        Args:
            path: Project directory. Lockfiles are searched up to ``detect_max_depth`` levels down.

        Returns:
            ScanResult with matches sorted by severity, a per-severity summary,
            and any per-file warnings or coverage caveats.

        Raises:
            NotFoundError: The path does not exist, is not a directory, or holds no known lockfile.
            ScanInProgressError: Another scan of the same directory is running in this process.
            IoError: A directory or lockfile could not be read.
            ScanCancelledError: The scan was cancelled from another thread.

        Example:
            with LockguardClient() as client:
                result = client.scan_directory(".")
                print(result.summary.counts)
        """
        uc = self._container.scan_uc()
        return uc.execute(path)

    def submit_scan(self, path: str) -> ScanJob:
        """Start a scan on the client's worker pool and return its job at once.

        The directory is claimed before this returns, so a second submit for
        the same directory raises ScanInProgressError immediately.

        Example:
            with LockguardClient() as client:
                job = client.submit_scan("./service-a")
                result = job.result(timeout=60)
        """
        uc = self._container.scan_uc()
        job = uc.start(path)
        try:
            self._pool().submit(uc.run, job)
        except RuntimeError:
            self._container.scan_registry().release(job)
            raise
        with self._executor_lock:
            self._submitted = [j for j in self._submitted if not j.done()]
            self._submitted.append(job)
        return job

    def cancel_scan(self, path: str) -> bool:
        """Cancel the in-flight scan of ``path``. Returns False if none is running or it is too late."""
        job = self._container.scan_registry().get(path)
        return job.cancel() if job is not None else False

    def fetch_vulnerabilities(self, ecosystems: Sequence[str] = ()) -> int:
        """Refresh the local advisory cache from the configured feeds.

        Args:
            ecosystems: Ecosystem names (e.g. ["npm", "PyPI", "cargo"]). Empty means all.

        Returns:
            Number of advisories added or changed.

        Raises:
            ValueError: An ecosystem name is not recognized.
            NetworkError: A feed failed or timed out; the cache is left unchanged.
        """
        uc = self._container.fetch_uc()
        return uc.execute(ecosystems)

    def get_scan_history(self, limit: int = 20) -> list[ScanHistory]:
        """Return up to ``limit`` history rows, most recent first."""
        uc = self._container.history_uc()
        return uc.execute(limit)

    def get_vulnerability_detail(self, id: str) -> Vulnerability | None:
        """Return one cached advisory by id (GHSA-..., CVE-..., PYSEC-...), or None.

        CVE ids also resolve through the aliases of cached records.
        """
        uc = self._container.detail_uc()
        return uc.execute(id)

    def get_vulnerability_count(self, ecosystem: str | None = None) -> int:
        """Number of cached advisories, optionally for one ecosystem."""
        uc = self._container.count_uc()
        return uc.execute(ecosystem)

    def list_vulnerabilities(
        self,
        *,
        ecosystem: str | None = None,
        severity: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> VulnerabilityPage:
        """Browse cached advisories, newest published first.

        Args:
            ecosystem: Only records for this ecosystem (e.g. "npm", "PyPI").
            severity: Only records with this severity (critical, high, medium, low).
            search: Case-insensitive text matched against title, package name and id.
            page: 1-based page number.
            limit: Records per page.

        Raises:
            ValueError: Unknown ecosystem or severity, or page/limit below 1.

        Example:
            with LockguardClient() as client:
                page = client.list_vulnerabilities(ecosystem="npm", severity="critical")
                for v in page.items:
                    print(v.id, v.affected_package)
        """
        uc = self._container.list_uc()
        return uc.execute(ecosystem=ecosystem, severity=severity, search=search, page=page, limit=limit)

    def clear_cache(self) -> None:
        """Drop every cached advisory. Scan history is kept."""
        uc = self._container.clear_cache_uc()
        uc.execute()

    def close(self) -> None:
        """Cancel this client's running background scans, wait for them, then release resources.

        Example:
            client = LockguardClient()
            try:
                client.scan_directory(".")
            finally:
                client.close()
        """
        with self._executor_lock:
            executor, self._executor = self._executor, None
            jobs, self._submitted = self._submitted, []
        for job in jobs:
            job.cancel()
        if executor is not None:
            # Queued jobs still run so they reach the cancelled state and release their directory.
            executor.shutdown(wait=True)
        self._container.shutdown_resources()

    def _pool(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._config.scan_workers,
                    thread_name_prefix="lockguard-scan",
                )
            return self._executor

    def __enter__(self) -> LockguardClient:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


__all__ = [
    "LockguardClient",
    "AppConfig",
]
