"""tests/lockguard/conftest.py

Common fixtures for the entire test suite.
"""

import json
import os
import zipfile
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from lockguard.core.domain.enums import Ecosystem, Severity, VulnSource
from lockguard.core.domain.models import Vulnerability
from lockguard.core.ports.clock_port import ClockPort
from lockguard.core.ports.feed_port import AdvisoryFeedPort
from lockguard.infra.cache_diskcache import DiskCacheAdapter

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock(ClockPort):
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current


class StubFeed(AdvisoryFeedPort):
    """Feed returning canned records; can fail or block until released."""

    def __init__(self, source=VulnSource.OSV, records=(), error=None, ecosystems=None, block=None):
        self.source = source
        self.records = list(records)
        self.error = error
        self.ecosystems = ecosystems
        self.block = block
        self.calls: list[Ecosystem] = []

    def supports(self, ecosystem: Ecosystem) -> bool:
        return self.ecosystems is None or ecosystem in self.ecosystems

    def fetch(self, ecosystem: Ecosystem):
        self.calls.append(ecosystem)
        if self.block is not None:
            self.block.wait(5)
        if self.error is not None:
            raise self.error
        return [r for r in self.records if r.affected_ecosystem is ecosystem]


@pytest.fixture(scope="session")
def runner() -> CliRunner:
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def cache_dir(tmp_path: Path, monkeypatch):
    """
    Redirects the cache directory to a temporary location for test isolation
    and drops any LOCKGUARD_* settings from the developer's environment.
    This fixture runs automatically for every test function.
    """
    for name in list(os.environ):
        if name.startswith("LOCKGUARD_"):
            monkeypatch.delenv(name)
    path = tmp_path / "cache"
    path.mkdir()
    monkeypatch.setenv("LOCKGUARD_CACHE_DIR", str(path))
    # AppConfig reads .env from the working directory
    monkeypatch.chdir(tmp_path)
    yield path


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def advisory_disk(cache_dir):
    with DiskCacheAdapter(namespace="advisories", base_dir=str(cache_dir)) as cache:
        yield cache


@pytest.fixture
def history_disk(cache_dir):
    with DiskCacheAdapter(namespace="history", base_dir=str(cache_dir)) as cache:
        yield cache


@pytest.fixture
def stub_feed():
    """Factory for StubFeed instances."""
    return StubFeed


@pytest.fixture
def make_vuln():
    """Factory for advisory records with sensible npm/lodash defaults."""

    def _make(
        id: str = "GHSA-test-0001",
        package: str = "lodash",
        ecosystem: Ecosystem = Ecosystem.NPM,
        affected: str | None = "<4.17.21",
        fixed: str | None = ">=4.17.21",
        severity: Severity = Severity.HIGH,
        source: VulnSource = VulnSource.OSV,
        **kwargs,
    ) -> Vulnerability:
        kwargs.setdefault("title", f"{id} in {package}")
        return Vulnerability(
            id=id,
            source=source,
            severity=severity,
            affected_package=package,
            affected_ecosystem=ecosystem,
            affected_versions=affected,
            fixed_versions=fixed,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_project(tmp_path: Path):
    """Factory fixture writing a directory tree of lockfiles and returning its root."""

    def _make(files: dict[str, str | bytes], name: str = "project") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            p = root / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                p.write_bytes(content)
            else:
                p.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def mock_httpx_client(monkeypatch):
    """
    Replaces httpx.Client with a mock that uses a MockTransport.

    Returns a handler function that tests can use to register mock responses.
    """
    responses = {}
    calls_log: list[tuple[str, str]] = []
    original_client = httpx.Client

    def add_response(
        url: str,
        method: str = "GET",
        status_code: int = 200,
        json_payload: dict | None = None,
        content: bytes | None = None,
    ):
        """Register a mock response for a given URL and method."""
        if json_payload is not None:
            body = json.dumps(json_payload).encode("utf-8")
        else:
            body = content if content is not None else b""
        responses[(method.upper(), url)] = (status_code, body)

    def mock_transport(request: httpx.Request) -> httpx.Response:
        """The transport logic that returns registered responses or a 404."""
        key = (request.method, str(request.url))
        calls_log.append(key)
        if key in responses:
            status, body = responses[key]
            return httpx.Response(status, content=body, headers={"Content-Length": str(len(body))})
        return httpx.Response(404, text=f"Mock URL not found: {request.method} {request.url}")

    def patched_client(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(mock_transport)
        return original_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "Client", patched_client)
    add_response.calls = calls_log  # type: ignore[attr-defined]
    return add_response


@pytest.fixture
def create_zip_file():
    """Factory fixture to create a zip file in memory containing JSON files."""

    def _create_zip(file_contents: dict[str, dict]) -> bytes:
        """
        Args:
            file_contents: e.g., {"GHSA-1234.json": {"id": "GHSA-1234", ...}}

        Returns:
            The binary content of the zip file.
        """
        zip_buffer = BytesIO()
        with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED) as zipf:
            for filename, data in file_contents.items():
                zipf.writestr(filename, json.dumps(data))
        return zip_buffer.getvalue()

    return _create_zip
