from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ..core.domain.enums import VulnSource


class AppConfig(BaseSettings):
    """Application configuration with automatic environment variable loading.

    All settings can be overridden via environment variables with the LOCKGUARD_ prefix,
    or a ``.env`` file in the working directory. For example:
        - LOCKGUARD_CACHE_DIR=/path/to/cache
        - LOCKGUARD_GITHUB_TOKEN=ghp_xxx
        - LOCKGUARD_SOURCES=osv
        - LOCKGUARD_REFRESH_BEFORE_SCAN=true

    Alternatively, settings can be provided programmatically when creating the Container:
        container = Container()
        container.config.from_pydantic(AppConfig(sources=["osv"]))
    """

    model_config = SettingsConfigDict(
        env_prefix="LOCKGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    cache_dir: Optional[Path] = Field(
        default=None,
        description="Custom cache directory path. If None, uses platformdirs.user_cache_dir('lockguard')",
    )

    github_token: Optional[str] = Field(
        default=None,
        description="GitHub token; the GitHub advisory feed is only used when one is set",
    )

    sources: Annotated[list[VulnSource], NoDecode] = Field(
        default_factory=lambda: [VulnSource.OSV, VulnSource.GITHUB],
        description="Advisory feeds used by refresh, comma separated in the environment",
    )

    http_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request HTTP timeout")

    source_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Wall-clock budget for fetching one source/ecosystem during refresh",
    )

    detect_max_depth: int = Field(default=1, ge=0, description="Directory depth searched for lockfiles")

    match_without_range: bool = Field(
        default=False,
        description="Report advisories that carry no affected range for every version of the package",
    )

    refresh_before_scan: bool = Field(default=False, description="Refresh advisories for detected ecosystems before matching")

    scan_workers: int = Field(default=4, ge=1, description="Threads used for background scans")

    @field_validator("sources", mode="before")
    @classmethod
    def _split_sources(cls, value):
        if isinstance(value, str):
            return [s.strip().lower() for s in value.split(",") if s.strip()]
        return value
