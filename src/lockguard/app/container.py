from __future__ import annotations

import logging

from dependency_injector import containers, providers
from github import Auth, Github

from ..config.settings import AppConfig
from ..core.domain.enums import VulnSource
from ..core.ports.clock_port import SystemClock
from ..core.services.advisory_cache import AdvisoryCache
from ..core.services.detector import LockfileDetector
from ..core.services.matcher import VersionMatcher
from ..core.usecases.clear_cache import ClearCacheUseCase
from ..core.usecases.fetch_vulnerabilities import FetchVulnerabilitiesUseCase
from ..core.usecases.list_vulnerabilities import ListVulnerabilitiesUseCase
from ..core.usecases.scan_directory import SCAN_REGISTRY, ScanDirectoryUseCase
from ..core.usecases.scan_history import ScanHistoryUseCase
from ..core.usecases.vulnerability_detail import CountVulnerabilitiesUseCase, VulnerabilityDetailUseCase
from ..infra.advisory_store import DiskCacheAdvisoryStore
from ..infra.cache_diskcache import DiskCacheAdapter
from ..infra.github_feed import GitHubAdvisoryFeed
from ..infra.history_store import DiskCacheHistoryStore
from ..infra.http_client import HttpClient
from ..infra.osv_feed import OsvFeed

logger = logging.getLogger(__name__)


def disk_cache_resource(namespace, cache_dir):
	cache_dir_str = str(cache_dir) if cache_dir else None
	logger.info(f"Opening {namespace} cache at: {cache_dir_str or 'default user cache directory'}")
	with DiskCacheAdapter(namespace=namespace, base_dir=cache_dir_str) as cache:
		yield cache
	logger.debug(f"{namespace} cache closed")


def http_client_resource(timeout_seconds):
	client = HttpClient(timeout_seconds=timeout_seconds)
	try:
		yield client
	finally:
		client.close()


def github_client_resource(github_token, timeout_seconds):
	"""PyGithub client; authenticated when a token is configured, anonymous otherwise."""
	if github_token:
		logger.info(f"GitHub token found (length: {len(github_token)})")
		client = Github(auth=Auth.Token(github_token), timeout=int(timeout_seconds))
	else:
		logger.info("No GitHub token configured - using anonymous client (rate limit: 60/hour)")
		client = Github(timeout=int(timeout_seconds))

	try:
		yield client
	finally:
		logger.debug("Closing GitHub client")
		client.close()


def select_feeds(sources, osv, github, github_token=None):
	available = {VulnSource.OSV: osv, VulnSource.GITHUB: github}
	feeds = []
	for name in sources or ():
		source = VulnSource(name)
		if source is VulnSource.GITHUB and not github_token:
			# anonymous access is capped at 60 requests/hour
			logger.warning("GitHub advisory feed skipped: set LOCKGUARD_GITHUB_TOKEN to enable it")
			continue
		feed = available.get(source)
		if feed is None:
			logger.warning(f"No feed available for source {name}; skipped")
			continue
		feeds.append(feed)
	return feeds


class Container(containers.DeclarativeContainer):
	config = providers.Configuration(pydantic_settings=[AppConfig()])

	advisory_disk = providers.Resource(disk_cache_resource, namespace="advisories", cache_dir=config.cache_dir)
	history_disk = providers.Resource(disk_cache_resource, namespace="history", cache_dir=config.cache_dir)

	http_client = providers.Resource(http_client_resource, timeout_seconds=config.http_timeout_seconds)

	github_client = providers.Resource(
		github_client_resource,
		github_token=config.github_token,
		timeout_seconds=config.http_timeout_seconds,
	)

	clock = providers.Singleton(SystemClock)

	feeds = providers.Callable(
		select_feeds,
		sources=config.sources,
		github_token=config.github_token,
		osv=providers.Factory(OsvFeed, http_client=http_client, clock=clock),
		github=providers.Factory(GitHubAdvisoryFeed, github_client=github_client, clock=clock),
	)

	# The store holds per-source locks; the scan registry is process-wide.
	advisory_store = providers.Singleton(DiskCacheAdvisoryStore, cache=advisory_disk)
	history_store = providers.Singleton(DiskCacheHistoryStore, cache=history_disk)
	advisories = providers.Singleton(
		AdvisoryCache,
		store=advisory_store,
		feeds=feeds,
		source_timeout_seconds=config.source_timeout_seconds,
	)
	scan_registry = providers.Object(SCAN_REGISTRY)

	detector = providers.Factory(LockfileDetector, max_depth=config.detect_max_depth)
	matcher = providers.Factory(VersionMatcher, match_without_range=config.match_without_range)

	scan_uc = providers.Factory(
		ScanDirectoryUseCase,
		detector=detector,
		cache=advisories,
		history=history_store,
		matcher=matcher,
		clock=clock,
		registry=scan_registry,
		refresh_before_scan=config.refresh_before_scan,
	)
	fetch_uc = providers.Factory(FetchVulnerabilitiesUseCase, cache=advisories)
	history_uc = providers.Factory(ScanHistoryUseCase, history=history_store)
	detail_uc = providers.Factory(VulnerabilityDetailUseCase, cache=advisories)
	count_uc = providers.Factory(CountVulnerabilitiesUseCase, cache=advisories)
	list_uc = providers.Factory(ListVulnerabilitiesUseCase, cache=advisories)
	clear_cache_uc = providers.Factory(ClearCacheUseCase, cache=advisories)
