"""Merge and ranking stage schemas."""

from pydantic import BaseModel, Field


class MergeResult(BaseModel):
    """Merge stage summary."""

    providers_created: int = 0
    providers_updated: int = 0
    single_source_created: int = 0
    matches_recorded: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    success: bool = True
    cancelled: bool = False


class RankingRebuildResult(BaseModel):
    """Positions reassigned per category."""

    success: bool = True
    updated: int = 0
    categories: dict[str, int] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)


class DeactivationResult(BaseModel):
    success: bool = True
    deactivated: int = 0
    provider_ids: list[int] = Field(default_factory=list)
