"""Matching stage schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from provider_sync.models.enums import MatchClassification


class MatchCandidateRead(BaseModel):
    """Serialized match candidate audit record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    run_id: int | None
    category_slug: str
    primary_record_id: int | None
    secondary_record_id: int | None
    confidence: float
    classification: MatchClassification
    breakdown_json: dict[str, object]
    created_at: datetime


class MatchResult(BaseModel):
    """Matching stage summary."""

    candidates: list[MatchCandidateRead] = Field(default_factory=list)
    auto_matches: int = 0
    partial_matches: int = 0
    no_matches: int = 0
    unmatched_primary: int = 0
    unmatched_secondary: int = 0
    success: bool = True
    errors: list[str] = Field(default_factory=list)


class CategoryMatchingStats(BaseModel):
    category_slug: str
    primary_linked: int = 0
    primary_unlinked: int = 0
    secondary_linked: int = 0
    secondary_unlinked: int = 0


class MatchingStats(BaseModel):
    """Linked/unlinked source counts and candidate history totals."""

    categories: list[CategoryMatchingStats] = Field(default_factory=list)
    total_sources: int = 0
    linked_sources: int = 0
    unlinked_sources: int = 0
    total_candidates: int = 0
    auto_candidates: int = 0
    partial_candidates: int = 0
    no_match_candidates: int = 0
