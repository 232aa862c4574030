"""Raw per-source observation ORM model."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from provider_sync.models.base import Base, CreatedAtMixin, IdMixin, UpdatedAtMixin
from provider_sync.models.enums import SourceType


class SourceRecord(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin):
    """One observation of a business from one upstream source.

    ``canonical_provider_id`` doubles as the matched marker: records with a link
    are excluded from candidate generation until explicitly reset.
    """

    __tablename__ = "source_records"
    __table_args__ = (
        UniqueConstraint("source_type", "native_id", "category_slug", name="uq_source_records_identity"),
    )

    source_type: Mapped[SourceType] = mapped_column(
        Enum(SourceType, native_enum=False, length=16, values_callable=lambda enum: [m.value for m in enum]),
        index=True,
        nullable=False,
    )
    native_id: Mapped[str] = mapped_column(String(255), nullable=False)
    category_slug: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    photo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    address: Mapped[str | None] = mapped_column(String(512), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    phone_normalized: Mapped[str | None] = mapped_column(String(32), index=True, nullable=True)
    website: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    price_range: Mapped[str | None] = mapped_column(String(16), nullable=True)
    tags_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    raw_data_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    canonical_provider_id: Mapped[int | None] = mapped_column(
        ForeignKey("canonical_providers.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    matched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
