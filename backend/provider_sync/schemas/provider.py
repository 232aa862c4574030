"""Canonical provider response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from provider_sync.models.enums import MatchClassification, SyncStatus


class CanonicalProviderRead(BaseModel):
    """Serialized canonical provider."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category_id: int
    address: str | None
    city: str | None
    state: str | None
    latitude: float | None
    longitude: float | None
    phone: str | None
    website: str | None
    image_url: str | None
    rating: float
    review_count: int
    primary_source_id: str | None
    primary_rating: float | None
    secondary_source_id: str | None
    secondary_rating: float | None
    sync_status: SyncStatus
    match_confidence: float | None
    match_classification: MatchClassification | None
    needs_review: bool
    quality_score: float
    position: int | None
    is_verified: bool
    is_claimed: bool
    is_active: bool
    is_public: bool
    view_count: int
    contact_count: int
    last_synced_at: datetime | None
