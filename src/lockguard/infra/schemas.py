from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.domain.enums import Ecosystem
from ..core.domain.models import ScanHistory, Vulnerability


class OsvSeverity(BaseModel):
	"""Severity entry, e.g. a CVSS vector"""
	type: str
	score: str | float


class OsvPackage(BaseModel):
	ecosystem: str
	name: str
	purl: Optional[str] = None


class OsvEvent(BaseModel):
	"""One boundary of a version range"""
	introduced: Optional[str] = None
	fixed: Optional[str] = None
	last_affected: Optional[str] = None
	limit: Optional[str] = None


class OsvRange(BaseModel):
	type: str
	repo: Optional[str] = None
	events: list[OsvEvent]


class OsvAffected(BaseModel):
	package: OsvPackage
	severity: Optional[list[OsvSeverity]] = None
	ranges: Optional[list[OsvRange]] = None
	versions: Optional[list[str]] = None
	ecosystem_specific: Optional[dict[str, Any]] = None
	database_specific: Optional[dict[str, Any]] = None


class OsvReference(BaseModel):
	type: str | None = None
	url: str


class OsvDatabaseSpecific(BaseModel):
	model_config = ConfigDict(extra="allow")

	severity: Optional[str] = None
	nvd_published_at: Optional[str] = None
	cwe_ids: list[str] | None = None
	github_reviewed: Optional[bool] = None


class OsvVulnerability(BaseModel):
	"""Top-level OSV record"""
	schema_version: Optional[str] = Field(None, alias='schema_version')
	id: str
	modified: Optional[str] = None
	published: Optional[str] = None
	withdrawn: Optional[str] = None
	aliases: Optional[list[str]] = None
	related: Optional[list[str]] = None
	summary: Optional[str] = None
	details: Optional[str] = None
	severity: Optional[list[OsvSeverity]] = None
	affected: list[OsvAffected] | None = None
	references: Optional[list[OsvReference]] = None
	database_specific: Optional[OsvDatabaseSpecific] = None


class GhIdentifier(BaseModel):
	type: str
	value: str


class GhReference(BaseModel):
	url: str


class GhCvss(BaseModel):
	vector_string: Optional[str] = None
	score: Optional[float] = None


class GhPackage(BaseModel):
	ecosystem: str
	name: str


class GhVulnerability(BaseModel):
	package: Optional[GhPackage] = None
	vulnerable_version_range: Optional[str] = None
	# a plain string on /advisories, {"identifier": ...} on older payloads
	first_patched_version: str | dict[str, Any] | None = None

	@property
	def patched(self) -> Optional[str]:
		fpv = self.first_patched_version
		if isinstance(fpv, dict):
			fpv = fpv.get("identifier")
		return fpv or None


class GitHubAdvisory(BaseModel):
	"""Global security advisory as returned by GET /advisories"""
	ghsa_id: str
	cve_id: Optional[str] = None
	summary: Optional[str] = None
	description: Optional[str] = None
	severity: Optional[str] = None
	cvss: Optional[GhCvss] = None
	identifiers: list[GhIdentifier] | None = None
	# GitHub REST can return references as strings or objects depending on endpoint/version
	references: list[GhReference | str] | None = None
	vulnerabilities: list[GhVulnerability] | None = None
	published_at: Optional[str] = None
	updated_at: Optional[str] = None
	withdrawn_at: Optional[str] = None


class PackageBucket(BaseModel):
	"""Every stored record of one (ecosystem, package), keyed by "source:id"."""
	records: dict[str, Vulnerability] = Field(default_factory=dict)


class AdvisoryGroup(BaseModel):
	"""Records of one (source, id) advisory, one per affected package."""
	records: list[Vulnerability] = Field(default_factory=list)


class AliasIndex(BaseModel):
	keys: list[str] = Field(default_factory=list)


class StoredScanHistory(BaseModel):
	id: int
	directory: str
	ecosystem: Ecosystem
	vuln_count: int
	scanned_at: datetime

	@classmethod
	def from_domain(cls, row: ScanHistory) -> "StoredScanHistory":
		return cls(
			id=row.id,
			directory=row.directory,
			ecosystem=row.ecosystem,
			vuln_count=row.vuln_count,
			scanned_at=row.scanned_at,
		)

	def to_domain(self) -> ScanHistory:
		return ScanHistory(
			id=self.id,
			directory=self.directory,
			ecosystem=self.ecosystem,
			vuln_count=self.vuln_count,
			scanned_at=self.scanned_at,
		)
