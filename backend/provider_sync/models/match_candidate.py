"""Match candidate audit ORM model."""

from sqlalchemy import JSON, Enum, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from provider_sync.models.base import Base, CreatedAtMixin, IdMixin
from provider_sync.models.enums import MatchClassification


class MatchCandidate(Base, IdMixin, CreatedAtMixin):
    """Insert-only identity proposal between one primary and one secondary record.

    Unmatched markers leave the opposite side null.
    """

    __tablename__ = "match_candidates"

    run_id: Mapped[int | None] = mapped_column(
        ForeignKey("sync_runs.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    category_slug: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    primary_record_id: Mapped[int | None] = mapped_column(
        ForeignKey("source_records.id", ondelete="CASCADE"),
        index=True,
        nullable=True,
    )
    secondary_record_id: Mapped[int | None] = mapped_column(
        ForeignKey("source_records.id", ondelete="CASCADE"),
        index=True,
        nullable=True,
    )
    confidence: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    classification: Mapped[MatchClassification] = mapped_column(
        Enum(
            MatchClassification,
            native_enum=False,
            length=16,
            values_callable=lambda enum: [m.value for m in enum],
        ),
        index=True,
        nullable=False,
    )
    breakdown_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
