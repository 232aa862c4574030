"""Ingestion and sync orchestration schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from provider_sync.models.enums import SourceType
from provider_sync.schemas.matching import MatchResult
from provider_sync.schemas.merge import DeactivationResult, MergeResult, RankingRebuildResult
from provider_sync.schemas.provider import CanonicalProviderRead


class SyncOptions(BaseModel):
    """Caller options for full and ingestion-only runs; unset values use settings."""

    categories: list[str] | None = Field(default=None, min_length=1)
    location: str | None = Field(default=None, min_length=1)
    limit: int | None = Field(default=None, ge=1, le=1000)
    skip_ingestion: bool = False
    skip_matching: bool = False
    skip_rankings: bool = False


class IngestionResult(BaseModel):
    """Outcome of one source query for one category."""

    source_type: SourceType
    category_slug: str
    total: int = 0
    inserted: int = 0
    updated: int = 0
    errors: list[str] = Field(default_factory=list)
    success: bool = True


class IngestionRunResult(BaseModel):
    """Per-source ingestion outcomes across categories."""

    primary: list[IngestionResult] = Field(default_factory=list)
    secondary: list[IngestionResult] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    success: bool = True
    cancelled: bool = False

    @property
    def primary_total(self) -> int:
        return sum(result.total for result in self.primary)

    @property
    def secondary_total(self) -> int:
        return sum(result.total for result in self.secondary)


class MatchAndMergeResult(BaseModel):
    matching: MatchResult
    merge: MergeResult
    rankings: RankingRebuildResult | None = None
    errors: list[str] = Field(default_factory=list)
    success: bool = True


class FullSyncResult(BaseModel):
    """Aggregated outcome of ingest, match, merge, and ranking stages."""

    run_id: int | None = None
    ingestion: IngestionRunResult | None = None
    matching: MatchResult | None = None
    merge: MergeResult | None = None
    deactivation: DeactivationResult | None = None
    rankings: RankingRebuildResult | None = None
    duration_ms: int = 0
    timestamp: datetime
    errors: list[str] = Field(default_factory=list)
    success: bool = True
    cancelled: bool = False


class SingleProviderSyncResult(BaseModel):
    success: bool
    provider_id: int | None = None
    provider: CanonicalProviderRead | None = None
    source: Literal["primary", "secondary", "both"] | None = None
    merge: MergeResult | None = None
    error: str | None = None


class SyncRunRead(BaseModel):
    """Serialized sync run history record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    mode: str
    started_at: datetime
    finished_at: datetime | None
    duration_ms: int
    success: bool
    cancelled: bool
    summary_json: dict[str, object]
    errors_json: list[str]


class SourceStats(BaseModel):
    total: int = 0
    primary: int = 0
    secondary: int = 0
    linked: int = 0
    unlinked: int = 0


class CandidateStats(BaseModel):
    total: int = 0
    auto: int = 0
    partial: int = 0
    none: int = 0


class ProviderStats(BaseModel):
    total: int = 0
    verified: int = 0
    synced: int = 0
    partial: int = 0
    other: int = 0
    needs_review: int = 0


class SyncStats(BaseModel):
    """Aggregate health of the reconciliation pipeline."""

    sources: SourceStats
    candidates: CandidateStats
    providers: ProviderStats
    last_run: SyncRunRead | None = None


class SyncFreshness(BaseModel):
    sync_needed: bool
    max_age_hours: float
    last_run: SyncRunRead | None = None


class SyncOverview(BaseModel):
    """Status payload for the sync dashboard."""

    stats: SyncStats
    freshness: SyncFreshness
    recent_runs: list[SyncRunRead]


class SyncRequest(BaseModel):
    """Body of the manual sync endpoint."""

    mode: Literal["full", "ingestion", "match", "single"] = "full"
    categories: list[str] | None = Field(default=None, min_length=1)
    location: str | None = Field(default=None, min_length=1)
    limit: int | None = Field(default=None, ge=1, le=1000)
    name: str | None = Field(default=None, min_length=1)
    category: str | None = Field(default=None, min_length=1)
    skip_ingestion: bool = False
    skip_matching: bool = False
    skip_rankings: bool = False

    @model_validator(mode="after")
    def validate_single_mode(self) -> "SyncRequest":
        if self.mode == "single" and (self.name is None or self.category is None):
            raise ValueError("Single provider sync requires both name and category.")
        return self

    def to_options(self) -> SyncOptions:
        return SyncOptions(
            categories=self.categories,
            location=self.location,
            limit=self.limit,
            skip_ingestion=self.skip_ingestion,
            skip_matching=self.skip_matching,
            skip_rankings=self.skip_rankings,
        )


class RankingRebuildRequest(BaseModel):
    category: str | None = Field(default=None, min_length=1)


class MatchRequest(BaseModel):
    category: str | None = Field(default=None, min_length=1)
