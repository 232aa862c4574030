"""Canonical provider ORM model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from provider_sync.models.base import Base, CreatedAtMixin, IdMixin, UpdatedAtMixin
from provider_sync.models.enums import MatchClassification, SyncStatus


def _enum_column(enum_cls: type, length: int = 16) -> Enum:
    return Enum(enum_cls, native_enum=False, length=length, values_callable=lambda enum: [m.value for m in enum])


class CanonicalProvider(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin):
    """Single public-facing record for one real-world provider."""

    __tablename__ = "canonical_providers"
    __table_args__ = (
        UniqueConstraint("category_id", "primary_source_id", name="uq_canonical_providers_primary"),
        UniqueConstraint("category_id", "secondary_source_id", name="uq_canonical_providers_secondary"),
    )

    name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), index=True, nullable=False)

    # Merged view.
    address: Mapped[str | None] = mapped_column(String(512), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    website: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    price_range: Mapped[str | None] = mapped_column(String(16), nullable=True)
    rating: Mapped[float] = mapped_column(Float, nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Per-source slots kept for traceability.
    primary_source_id: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)
    primary_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    primary_review_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    primary_photo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    secondary_source_id: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)
    secondary_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    secondary_review_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    secondary_photo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    sync_status: Mapped[SyncStatus] = mapped_column(_enum_column(SyncStatus), nullable=False)
    match_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    match_classification: Mapped[MatchClassification | None] = mapped_column(
        _enum_column(MatchClassification),
        nullable=True,
    )
    needs_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    client_satisfaction: Mapped[float] = mapped_column(Float, nullable=False)
    service_quality: Mapped[float] = mapped_column(Float, nullable=False)
    punctuality: Mapped[float] = mapped_column(Float, nullable=False)
    communication: Mapped[float] = mapped_column(Float, nullable=False)
    value_perceived: Mapped[float] = mapped_column(Float, nullable=False)
    quality_score: Mapped[float] = mapped_column(Float, index=True, nullable=False)
    score_calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    position: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Curated fields: owned by admins and engagement tracking, never written by merges.
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_claimed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_direct_provider: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    contact_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


CURATED_FIELDS: tuple[str, ...] = (
    "is_verified",
    "is_claimed",
    "is_active",
    "is_public",
    "is_direct_provider",
    "view_count",
    "contact_count",
)
