"""initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("slug", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_categories_slug", "categories", ["slug"], unique=True)

    op.create_table(
        "sync_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("mode", sa.String(length=32), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("summary_json", sa.JSON(), nullable=False),
        sa.Column("errors_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sync_runs_mode", "sync_runs", ["mode"], unique=False)
    op.create_index("ix_sync_runs_finished_at", "sync_runs", ["finished_at"], unique=False)

    op.create_table(
        "canonical_providers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("address", sa.String(length=512), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("zip_code", sa.String(length=16), nullable=True),
        sa.Column("country", sa.String(length=64), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("website", sa.String(length=1024), nullable=True),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("price_range", sa.String(length=16), nullable=True),
        sa.Column("rating", sa.Float(), nullable=False),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("primary_source_id", sa.String(length=255), nullable=True),
        sa.Column("primary_rating", sa.Float(), nullable=True),
        sa.Column("primary_review_count", sa.Integer(), nullable=True),
        sa.Column("primary_photo_url", sa.String(length=1024), nullable=True),
        sa.Column("secondary_source_id", sa.String(length=255), nullable=True),
        sa.Column("secondary_rating", sa.Float(), nullable=True),
        sa.Column("secondary_review_count", sa.Integer(), nullable=True),
        sa.Column("secondary_photo_url", sa.String(length=1024), nullable=True),
        sa.Column("sync_status", sa.String(length=16), nullable=False),
        sa.Column("match_confidence", sa.Float(), nullable=True),
        sa.Column("match_classification", sa.String(length=16), nullable=True),
        sa.Column("needs_review", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("client_satisfaction", sa.Float(), nullable=False),
        sa.Column("service_quality", sa.Float(), nullable=False),
        sa.Column("punctuality", sa.Float(), nullable=False),
        sa.Column("communication", sa.Float(), nullable=False),
        sa.Column("value_perceived", sa.Float(), nullable=False),
        sa.Column("quality_score", sa.Float(), nullable=False),
        sa.Column("score_calculated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_direct_provider", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("contact_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("category_id", "primary_source_id", name="uq_canonical_providers_primary"),
        sa.UniqueConstraint("category_id", "secondary_source_id", name="uq_canonical_providers_secondary"),
    )
    op.create_index("ix_canonical_providers_name", "canonical_providers", ["name"], unique=False)
    op.create_index("ix_canonical_providers_category_id", "canonical_providers", ["category_id"], unique=False)
    op.create_index(
        "ix_canonical_providers_primary_source_id", "canonical_providers", ["primary_source_id"], unique=False
    )
    op.create_index(
        "ix_canonical_providers_secondary_source_id", "canonical_providers", ["secondary_source_id"], unique=False
    )
    op.create_index("ix_canonical_providers_quality_score", "canonical_providers", ["quality_score"], unique=False)

    op.create_table(
        "source_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_type", sa.String(length=16), nullable=False),
        sa.Column("native_id", sa.String(length=255), nullable=False),
        sa.Column("category_slug", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("photo_url", sa.String(length=1024), nullable=True),
        sa.Column("address", sa.String(length=512), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("zip_code", sa.String(length=16), nullable=True),
        sa.Column("country", sa.String(length=64), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("phone_normalized", sa.String(length=32), nullable=True),
        sa.Column("website", sa.String(length=1024), nullable=True),
        sa.Column("price_range", sa.String(length=16), nullable=True),
        sa.Column("tags_json", sa.JSON(), nullable=False),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("raw_data_json", sa.JSON(), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("canonical_provider_id", sa.Integer(), nullable=True),
        sa.Column("matched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["canonical_provider_id"], ["canonical_providers.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_type", "native_id", "category_slug", name="uq_source_records_identity"),
    )
    op.create_index("ix_source_records_source_type", "source_records", ["source_type"], unique=False)
    op.create_index("ix_source_records_category_slug", "source_records", ["category_slug"], unique=False)
    op.create_index("ix_source_records_phone_normalized", "source_records", ["phone_normalized"], unique=False)
    op.create_index(
        "ix_source_records_canonical_provider_id", "source_records", ["canonical_provider_id"], unique=False
    )

    op.create_table(
        "match_candidates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("run_id", sa.Integer(), nullable=True),
        sa.Column("category_slug", sa.String(length=64), nullable=False),
        sa.Column("primary_record_id", sa.Integer(), nullable=True),
        sa.Column("secondary_record_id", sa.Integer(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False, server_default=sa.text("0.0")),
        sa.Column("classification", sa.String(length=16), nullable=False),
        sa.Column("breakdown_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["run_id"], ["sync_runs.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["primary_record_id"], ["source_records.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["secondary_record_id"], ["source_records.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_match_candidates_run_id", "match_candidates", ["run_id"], unique=False)
    op.create_index("ix_match_candidates_category_slug", "match_candidates", ["category_slug"], unique=False)
    op.create_index("ix_match_candidates_primary_record_id", "match_candidates", ["primary_record_id"], unique=False)
    op.create_index(
        "ix_match_candidates_secondary_record_id", "match_candidates", ["secondary_record_id"], unique=False
    )
    op.create_index("ix_match_candidates_classification", "match_candidates", ["classification"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_match_candidates_classification", table_name="match_candidates")
    op.drop_index("ix_match_candidates_secondary_record_id", table_name="match_candidates")
    op.drop_index("ix_match_candidates_primary_record_id", table_name="match_candidates")
    op.drop_index("ix_match_candidates_category_slug", table_name="match_candidates")
    op.drop_index("ix_match_candidates_run_id", table_name="match_candidates")
    op.drop_table("match_candidates")
    op.drop_index("ix_source_records_canonical_provider_id", table_name="source_records")
    op.drop_index("ix_source_records_phone_normalized", table_name="source_records")
    op.drop_index("ix_source_records_category_slug", table_name="source_records")
    op.drop_index("ix_source_records_source_type", table_name="source_records")
    op.drop_table("source_records")
    op.drop_index("ix_canonical_providers_quality_score", table_name="canonical_providers")
    op.drop_index("ix_canonical_providers_secondary_source_id", table_name="canonical_providers")
    op.drop_index("ix_canonical_providers_primary_source_id", table_name="canonical_providers")
    op.drop_index("ix_canonical_providers_category_id", table_name="canonical_providers")
    op.drop_index("ix_canonical_providers_name", table_name="canonical_providers")
    op.drop_table("canonical_providers")
    op.drop_index("ix_sync_runs_finished_at", table_name="sync_runs")
    op.drop_index("ix_sync_runs_mode", table_name="sync_runs")
    op.drop_table("sync_runs")
    op.drop_index("ix_categories_slug", table_name="categories")
    op.drop_table("categories")
