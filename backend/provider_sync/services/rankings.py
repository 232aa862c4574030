"""Per-category ranking positions and the optional stale-provider policy."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from time import perf_counter

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from provider_sync.errors import CategoryNotFoundError
from provider_sync.models.canonical_provider import CanonicalProvider
from provider_sync.models.category import Category
from provider_sync.models.source_record import SourceRecord
from provider_sync.schemas.merge import DeactivationResult, RankingRebuildResult
from provider_sync.services.identity import resolve_category

logger = logging.getLogger(__name__)


def rebuild_rankings(db: Session, category: str | None = None) -> RankingRebuildResult:
    """Assign positions 1..N to active, public providers of each category.

    Order is quality score descending with the provider id as tie-break.
    Inactive or hidden providers lose their position.
    """

    started = perf_counter()
    result = RankingRebuildResult()
    try:
        if category is not None:
            categories = [resolve_category(db, category)]
        else:
            categories = list(db.scalars(select(Category).order_by(Category.slug.asc())).all())
    except CategoryNotFoundError as exc:
        result.success = False
        result.errors.append(str(exc))
        return result

    for category_row in categories:
        try:
            ranked = _rank_category(db, category_row)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            result.success = False
            result.errors.append(f"Ranking rebuild failed for {category_row.slug}: {exc}")
            logger.warning("sync.rankings_category_failed category=%s error=%s", category_row.slug, exc)
            continue
        result.categories[category_row.slug] = ranked
        result.updated += ranked

    logger.info(
        "sync.rankings_timing category=%s ranked=%d total_ms=%.2f",
        category or "*",
        result.updated,
        (perf_counter() - started) * 1000.0,
    )
    return result


def _rank_category(db: Session, category: Category) -> int:
    providers = db.scalars(
        select(CanonicalProvider)
        .where(CanonicalProvider.category_id == category.id)
        .order_by(CanonicalProvider.quality_score.desc(), CanonicalProvider.id.asc())
    ).all()
    position = 0
    for provider in providers:
        if provider.is_active and provider.is_public:
            position += 1
            provider.position = position
        else:
            provider.position = None
    db.flush()
    return position


def deactivate_stale_providers(
    db: Session,
    max_age_days: int,
    *,
    now: datetime | None = None,
) -> DeactivationResult:
    """Soft-deactivate active providers whose linked records all predate the cut-off.

    Providers without any linked record are left untouched.
    """

    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=max_age_days)
    newest_fetch = (
        select(SourceRecord.canonical_provider_id)
        .where(SourceRecord.canonical_provider_id.is_not(None))
        .group_by(SourceRecord.canonical_provider_id)
        .having(func.max(SourceRecord.fetched_at) < cutoff)
    )
    providers = db.scalars(
        select(CanonicalProvider)
        .where(CanonicalProvider.is_active.is_(True), CanonicalProvider.id.in_(newest_fetch))
        .order_by(CanonicalProvider.id.asc())
    ).all()

    result = DeactivationResult()
    for provider in providers:
        provider.is_active = False
        result.provider_ids.append(provider.id)
    result.deactivated = len(result.provider_ids)
    db.commit()
    logger.info("sync.providers_deactivated count=%d max_age_days=%d", result.deactivated, max_age_days)
    return result
