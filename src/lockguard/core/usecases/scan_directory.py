from __future__ import annotations

import logging
import os
import threading
from typing import Optional

from ...parsers import coverage_caveat, parse_lockfile
from ..domain.enums import ScanState
from ..domain.errors import IoError, NetworkError, ParseError, ScanCancelledError, ScanInProgressError
from ..domain.models import (
    CoverageCaveat,
    PackageDeclaration,
    ScanResult,
    ScanTransition,
    ScanWarning,
)
from ..ports.clock_port import ClockPort
from ..ports.history_port import ScanHistoryPort
from ..services.advisory_cache import AdvisoryCache
from ..services.detector import LockfileDetector
from ..services.matcher import VersionMatcher
from ..services.report import aggregate, counts_by_ecosystem

logger = logging.getLogger(__name__)


def normalize_directory(path: str) -> str:
    """Resolved absolute path, used as the identity of a scan target."""
    return os.path.realpath(os.path.abspath(os.path.expanduser(path)))


class ScanJob:
    """One scan of one directory: its state, its transitions and, once finished, its outcome."""

    def __init__(self, directory: str, clock: ClockPort) -> None:
        self.directory = directory
        self._clock = clock
        self._lock = threading.Lock()
        self._cancel_requested = threading.Event()
        self._finished = threading.Event()
        self._committing = False
        self._state = ScanState.IDLE
        self._transitions = [ScanTransition(ScanState.IDLE, clock.now())]
        self._result: Optional[ScanResult] = None
        self._error: Optional[BaseException] = None

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def transitions(self) -> tuple[ScanTransition, ...]:
        with self._lock:
            return tuple(self._transitions)

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    def done(self) -> bool:
        return self._finished.is_set()

    def cancel(self) -> bool:
        """Ask the scan to stop at its next transition.

        Returns False when it is too late: the scan already finished or is
        writing its history.
        """
        with self._lock:
            if self._state.is_terminal or self._committing:
                return False
            self._cancel_requested.set()
        logger.info("Cancellation requested for %s", self.directory)
        return True

    def result(self, timeout: Optional[float] = None) -> ScanResult:
        """Wait for the scan and return its result, or raise what it raised."""
        if not self._finished.wait(timeout):
            raise TimeoutError(f"Scan of {self.directory} still running")
        if self._error is not None:
            raise self._error
        if self._result is None:
            raise RuntimeError(f"Scan of {self.directory} finished without a result")
        return self._result

    def advance(self, state: ScanState) -> None:
        with self._lock:
            if self._cancel_requested.is_set():
                raise ScanCancelledError(self.directory)
            self._record(state)

    def check_cancelled(self) -> None:
        if self._cancel_requested.is_set():
            raise ScanCancelledError(self.directory)

    def begin_commit(self) -> None:
        """Last cancellation point; after this the scan always completes."""
        with self._lock:
            if self._cancel_requested.is_set():
                raise ScanCancelledError(self.directory)
            self._committing = True

    def finish(self, state: ScanState, result: Optional[ScanResult] = None, error: Optional[BaseException] = None) -> None:
        with self._lock:
            self._record(state)
            self._result, self._error = result, error
        self._finished.set()

    def _record(self, state: ScanState) -> None:
        logger.info("Scan %s: %s -> %s", self.directory, self._state.value, state.value)
        self._state = state
        self._transitions.append(ScanTransition(state, self._clock.now()))


class ScanRegistry:
    """In-flight scans by directory. At most one scan per directory at a time."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[str, ScanJob] = {}

    def register(self, job: ScanJob) -> None:
        with self._lock:
            if job.directory in self._jobs:
                raise ScanInProgressError(job.directory)
            self._jobs[job.directory] = job

    def release(self, job: ScanJob) -> None:
        with self._lock:
            if self._jobs.get(job.directory) is job:
                del self._jobs[job.directory]

    def get(self, path: str) -> Optional[ScanJob]:
        with self._lock:
            return self._jobs.get(normalize_directory(path))

    def active(self) -> list[str]:
        with self._lock:
            return sorted(self._jobs)


# One registry per process, shared by every container and client.
SCAN_REGISTRY = ScanRegistry()


class ScanDirectoryUseCase:
    def __init__(
        self,
        detector: LockfileDetector,
        cache: AdvisoryCache,
        history: ScanHistoryPort,
        matcher: VersionMatcher,
        clock: ClockPort,
        registry: ScanRegistry,
        refresh_before_scan: bool = False,
    ) -> None:
        self._detector = detector
        self._cache = cache
        self._history = history
        self._matcher = matcher
        self._clock = clock
        self._registry = registry
        self._refresh_before_scan = refresh_before_scan

    def start(self, path: str) -> ScanJob:
        """Claim the directory. Raises ScanInProgressError if a scan of it is running."""
        job = ScanJob(normalize_directory(path), self._clock)
        self._registry.register(job)
        return job

    def run(self, job: ScanJob) -> ScanResult:
        try:
            result = self._scan(job)
        except ScanCancelledError as exc:
            job.finish(ScanState.CANCELLED, error=exc)
            raise
        except Exception as exc:
            logger.warning("Scan of %s failed: %s", job.directory, exc)
            job.finish(ScanState.FAILED, error=exc)
            raise
        else:
            job.finish(ScanState.DONE, result=result)
            return result
        finally:
            self._registry.release(job)

    def execute(self, path: str) -> ScanResult:
        return self.run(self.start(path))

    def _scan(self, job: ScanJob) -> ScanResult:
        job.advance(ScanState.DETECTING)
        lockfiles = self._detector.detect(job.directory)
        ecosystems = frozenset(lf.ecosystem for lf in lockfiles)

        job.advance(ScanState.PARSING)
        packages: dict[tuple, PackageDeclaration] = {}
        warnings: list[ScanWarning] = []
        caveats: list[CoverageCaveat] = []
        for lockfile in lockfiles:
            job.check_cancelled()
            try:
                with open(lockfile.path, "rb") as fh:
                    content = fh.read()
            except OSError as exc:
                raise IoError(lockfile.path, exc.strerror or str(exc)) from exc
            try:
                parsed = parse_lockfile(lockfile, content)
            except ParseError as exc:
                logger.warning("%s", exc)
                warnings.append(ScanWarning(message=str(exc), path=lockfile.path, ecosystem=lockfile.ecosystem))
                continue
            for p in parsed:
                packages.setdefault((p.ecosystem, p.name, p.version), p)
            caveat = coverage_caveat(lockfile, parsed)
            if caveat is not None:
                caveats.append(caveat)

        job.advance(ScanState.MATCHING)
        if self._refresh_before_scan:
            try:
                self._cache.refresh(ecosystems)
            except NetworkError as exc:
                logger.warning("Refresh before scan failed, matching against cached data: %s", exc)
                warnings.append(ScanWarning(message=str(exc), ecosystem=exc.ecosystem))
            job.check_cancelled()
        matches = self._matcher.match_all(packages.values(), self._cache.lookup)

        job.advance(ScanState.AGGREGATING)
        scanned_at = self._clock.now()
        result = ScanResult(
            directory=job.directory,
            ecosystems=ecosystems,
            matches=tuple(matches),
            scanned_at=scanned_at,
            total_packages=len(packages),
            summary=aggregate(matches),
            lockfiles=tuple(lockfiles),
            warnings=tuple(warnings),
            caveats=tuple(caveats),
        )

        job.begin_commit()
        self._history.append(job.directory, counts_by_ecosystem(ecosystems, matches), scanned_at)
        logger.info(
            "Scanned %s: %d packages in %d ecosystems, %d vulnerabilities",
            job.directory,
            result.total_packages,
            len(ecosystems),
            len(matches),
        )
        return result
