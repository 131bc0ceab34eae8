"""Configuration schema for linkedin-vault."""

from typing import List

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from .common import LoggingConfig

MB = 1024 * 1024


class ArchiveLimitsConfig(BaseModel):
    """Resource ceilings enforced before any archive entry is inflated."""

    model_config = ConfigDict(extra='forbid')

    max_upload_bytes: int = Field(
        default=100 * MB,
        ge=1,
        description="Largest raw (compressed) archive accepted for processing"
    )
    max_total_uncompressed_bytes: int = Field(
        default=500 * MB,
        ge=1,
        description="Ceiling on the summed uncompressed size of all entries"
    )
    max_file_bytes: int = Field(
        default=50 * MB,
        ge=1,
        description="Ceiling on the uncompressed size of a single entry"
    )
    max_entries: int = Field(
        default=10000,
        ge=1,
        description="Maximum number of entries (files and directories) in an archive"
    )
    large_archive_warning_bytes: int = Field(
        default=100 * MB,
        ge=0,
        description="Uncompressed total above which a slow-processing warning is attached"
    )

    @model_validator(mode='after')
    def check_ordering(self) -> "ArchiveLimitsConfig":
        if self.max_file_bytes > self.max_total_uncompressed_bytes:
            raise ValueError("max_file_bytes cannot exceed max_total_uncompressed_bytes")
        return self


class CompletenessTargets(BaseModel):
    """Counts at which a profile-completeness dimension scores 100."""

    model_config = ConfigDict(extra='forbid')

    experience: int = Field(default=3, ge=1)
    education: int = Field(default=2, ge=1)
    skills: int = Field(default=10, ge=1)
    recommendations: int = Field(default=3, ge=1)


class AggregationConfig(BaseModel):
    """Configuration for statistics aggregation."""

    model_config = ConfigDict(extra='forbid')

    top_n: int = Field(
        default=20,
        ge=1,
        le=20,
        description="Entries kept in each frequency distribution"
    )
    unknown_values: List[str] = Field(
        default_factory=lambda: ["N/A", "--"],
        description="Values treated as unknown and left out of distributions"
    )
    completeness_targets: CompletenessTargets = Field(default_factory=CompletenessTargets)


class HealthScoreConfig(BaseModel):
    """Thresholds for the deterministic network-health score.

    Each threshold that is strictly exceeded adds its increment once.
    """

    model_config = ConfigDict(extra='forbid')

    base: int = Field(default=50, ge=0, le=100)
    cap: int = Field(default=100, ge=0, le=100)
    connection_thresholds: List[int] = Field(default_factory=lambda: [500, 1000, 3000, 5000])
    connection_increment: int = Field(default=10, ge=0)
    post_thresholds: List[int] = Field(default_factory=lambda: [50, 100])
    post_increment: int = Field(default=10, ge=0)
    engagement_thresholds: List[float] = Field(
        default_factory=lambda: [2.0, 5.0],
        description="Comments-per-post ratios"
    )
    engagement_increment: int = Field(default=10, ge=0)
    skill_thresholds: List[int] = Field(default_factory=lambda: [10, 20])
    skill_increment: int = Field(default=5, ge=0)


class InsightsConfig(BaseModel):
    """Configuration for insight generation and the enrichment service."""

    model_config = ConfigDict(extra='forbid')

    enrichment_enabled: bool = Field(
        default=False,
        description="Use the external enrichment service for elevated tiers"
    )
    endpoint: str | None = Field(
        default=None,
        description="URL of the text-generation endpoint"
    )
    api_key: str | None = Field(default=None, description="Bearer token for the endpoint")
    model: str = Field(default="default", description="Model name passed to the endpoint")
    timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        le=300,
        description="Hard deadline for one enrichment call"
    )
    health: HealthScoreConfig = Field(default_factory=HealthScoreConfig)


class RetentionConfig(BaseModel):
    """Retention policy applied when a backup is accepted."""

    model_config = ConfigDict(extra='forbid')

    raw_days: int = Field(default=30, ge=1, description="Days the raw archive is kept")
    derived_days: int = Field(default=730, ge=1, description="Days derived artifacts are kept")
    processing_timeout_minutes: int = Field(
        default=30,
        ge=1,
        description="Runs stuck in processing longer than this are moved to error"
    )

    @model_validator(mode='after')
    def check_ordering(self) -> "RetentionConfig":
        if self.derived_days < self.raw_days:
            raise ValueError("derived_days must be at least raw_days")
        return self


class StorageConfig(BaseModel):
    """Locations of the object store and document store."""

    model_config = ConfigDict(extra='forbid')

    object_store_path: str = Field(
        default="./vault/objects",
        description="Root directory of the object store"
    )
    database_path: str = Field(
        default="./vault/vault.db",
        description="Path to the SQLite document store"
    )


class ApiConfig(BaseModel):
    """HTTP server configuration."""

    model_config = ConfigDict(extra='forbid')

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080, ge=1, le=65535)
    user_header: str = Field(
        default="X-User-Id",
        description="Header carrying the user id verified by the identity provider"
    )
    plan_header: str = Field(
        default="X-User-Plan",
        description="Header carrying the user's subscription plan (free, pro, business, enterprise)"
    )
    maintenance_secret: str | None = Field(
        default=None,
        description="Shared secret required by maintenance endpoints (disabled when unset)"
    )
    enable_cors: bool = Field(default=False)
    cors_origins: List[str] = Field(default_factory=list)

    @field_validator('user_header')
    @classmethod
    def header_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("user_header cannot be blank")
        return v.strip()


class VaultConfig(BaseModel):
    """Root configuration for linkedin-vault."""

    model_config = ConfigDict(extra='forbid')

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    limits: ArchiveLimitsConfig = Field(default_factory=ArchiveLimitsConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    insights: InsightsConfig = Field(default_factory=InsightsConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
