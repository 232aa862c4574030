"""Merge stage: fold matched and unmatched source records into canonical providers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Event
from time import perf_counter
from typing import Iterable

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from provider_sync.config import Settings, get_settings
from provider_sync.errors import ProviderSyncError
from provider_sync.matching.similarity import extract_domain
from provider_sync.models.canonical_provider import CanonicalProvider
from provider_sync.models.category import Category
from provider_sync.models.enums import MatchClassification, SourceType, SyncStatus
from provider_sync.models.source_record import SourceRecord
from provider_sync.schemas.matching import MatchCandidateRead
from provider_sync.schemas.merge import MergeResult
from provider_sync.scoring import combined_rating, compute_quality_score
from provider_sync.services.identity import ProviderIdentity, resolve_category, resolve_provider

logger = logging.getLogger(__name__)

_PRECEDENCE_FIELDS = ("address", "city", "state", "zip_code", "country", "phone", "price_range")


@dataclass(slots=True)
class _MergeOutcome:
    provider: CanonicalProvider
    created: bool
    linked: int


class _MergeContext:
    """Per-call caches and tallies shared by the three merge phases."""

    def __init__(self, db: Session, settings: Settings, merged_at: datetime, cancel_event: Event | None) -> None:
        self.db = db
        self.settings = settings
        self.merged_at = merged_at
        self.cancel_event = cancel_event
        self.result = MergeResult()
        self.attempted = 0
        self.failed = 0
        self.touched_provider_ids: set[int] = set()
        self._categories: dict[str, Category] = {}

    def category(self, slug: str) -> Category:
        if slug not in self._categories:
            self._categories[slug] = resolve_category(self.db, slug)
        return self._categories[slug]

    def cancelled(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            self.result.cancelled = True
            return True
        return False

    def record_failure(self, label: str, exc: Exception) -> None:
        self.failed += 1
        self.result.errors.append(f"Merge failed for {label}: {exc}")
        logger.warning("sync.merge_record_failed record=%s error=%s", label, exc)


def merge_providers(
    db: Session,
    candidates: Iterable[MatchCandidateRead],
    *,
    category: str | None = None,
    settings: Settings | None = None,
    now: datetime | None = None,
    cancel_event: Event | None = None,
) -> MergeResult:
    """Create or update canonical providers from match candidates and unmatched records.

    Runs three phases in order:

    1. pairs: auto candidates, plus partial candidates when partial merging is
       enabled (those rows are flagged for review);
    2. singles: every unlinked, open source record left in scope;
    3. refresh: linked providers whose records were re-ingested since the last
       merge are rebuilt from their linked records.

    Each record is written in its own savepoint. Per-record failures land in
    ``errors``; ``success`` is False only when every attempted record failed.
    """

    started = perf_counter()
    ctx = _MergeContext(db, settings or get_settings(), now or datetime.now(timezone.utc), cancel_event)

    _merge_pairs(ctx, candidates, category)
    if not ctx.result.cancelled:
        _merge_singles(ctx, category)
    if not ctx.result.cancelled:
        _refresh_linked_providers(ctx, category)

    db.commit()
    ctx.result.success = ctx.attempted == 0 or ctx.failed < ctx.attempted
    logger.info(
        "sync.merge_timing category=%s created=%d updated=%d single=%d linked=%d skipped=%d errors=%d cancelled=%s total_ms=%.2f",
        category or "*",
        ctx.result.providers_created,
        ctx.result.providers_updated,
        ctx.result.single_source_created,
        ctx.result.matches_recorded,
        ctx.result.skipped,
        len(ctx.result.errors),
        ctx.result.cancelled,
        (perf_counter() - started) * 1000.0,
    )
    return ctx.result


def _merge_pairs(ctx: _MergeContext, candidates: Iterable[MatchCandidateRead], category: str | None) -> None:
    for candidate in candidates:
        if category is not None and candidate.category_slug != category:
            continue
        if candidate.primary_record_id is None or candidate.secondary_record_id is None:
            continue
        if candidate.classification is MatchClassification.NONE:
            continue
        if candidate.classification is MatchClassification.PARTIAL and not ctx.settings.merge_partial_matches:
            ctx.result.skipped += 1
            continue
        if ctx.cancelled():
            return

        primary = ctx.db.get(SourceRecord, candidate.primary_record_id)
        secondary = ctx.db.get(SourceRecord, candidate.secondary_record_id)
        if primary is None or secondary is None or primary.canonical_provider_id or secondary.canonical_provider_id:
            ctx.result.skipped += 1
            continue

        ctx.attempted += 1
        label = f"{primary.native_id}+{secondary.native_id}"
        try:
            with ctx.db.begin_nested():
                outcome = _merge_records(
                    ctx,
                    ctx.category(candidate.category_slug),
                    primary,
                    primary=primary,
                    secondary=secondary,
                    confidence=candidate.confidence,
                    classification=candidate.classification,
                )
        except (ProviderSyncError, SQLAlchemyError) as exc:
            ctx.record_failure(label, exc)
            continue

        if outcome.created:
            ctx.result.providers_created += 1
        else:
            ctx.result.providers_updated += 1
        ctx.result.matches_recorded += outcome.linked


def _merge_singles(ctx: _MergeContext, category: str | None) -> None:
    stmt = select(SourceRecord).where(SourceRecord.canonical_provider_id.is_(None))
    if category is not None:
        stmt = stmt.where(SourceRecord.category_slug == category)
    records = ctx.db.scalars(stmt.order_by(SourceRecord.id.asc())).all()

    for record in records:
        if record.is_closed:
            ctx.result.skipped += 1
            continue
        if ctx.cancelled():
            return

        ctx.attempted += 1
        label = f"{record.source_type.value}:{record.native_id}"
        try:
            with ctx.db.begin_nested():
                outcome = _merge_records(
                    ctx,
                    ctx.category(record.category_slug),
                    record,
                    primary=record if record.source_type is SourceType.PRIMARY else None,
                    secondary=record if record.source_type is SourceType.SECONDARY else None,
                )
        except (ProviderSyncError, SQLAlchemyError) as exc:
            ctx.record_failure(label, exc)
            continue

        if outcome.created:
            ctx.result.single_source_created += 1
        else:
            ctx.result.providers_updated += 1
        ctx.result.matches_recorded += outcome.linked


def _refresh_linked_providers(ctx: _MergeContext, category: str | None) -> None:
    stmt = (
        select(CanonicalProvider)
        .join(SourceRecord, SourceRecord.canonical_provider_id == CanonicalProvider.id)
        .where(
            or_(
                CanonicalProvider.last_synced_at.is_(None),
                SourceRecord.fetched_at > CanonicalProvider.last_synced_at,
            )
        )
        .distinct()
        .order_by(CanonicalProvider.id.asc())
    )
    if category is not None:
        stmt = stmt.join(Category, Category.id == CanonicalProvider.category_id).where(Category.slug == category)

    for provider in ctx.db.scalars(stmt).all():
        if provider.id in ctx.touched_provider_ids:
            continue
        if ctx.cancelled():
            return

        ctx.attempted += 1
        try:
            with ctx.db.begin_nested():
                linked = _linked_records(ctx.db, provider.id)
                _apply_merged_view(
                    provider,
                    linked.get(SourceType.PRIMARY),
                    linked.get(SourceType.SECONDARY),
                    settings=ctx.settings,
                    merged_at=ctx.merged_at,
                )
                ctx.db.flush()
        except SQLAlchemyError as exc:
            ctx.record_failure(f"provider:{provider.id}", exc)
            continue
        ctx.result.providers_updated += 1


def _merge_records(
    ctx: _MergeContext,
    category: Category,
    anchor: SourceRecord,
    *,
    primary: SourceRecord | None,
    secondary: SourceRecord | None,
    confidence: float | None = None,
    classification: MatchClassification | None = None,
) -> _MergeOutcome:
    """Merge ``primary``/``secondary`` into the provider resolved for ``anchor``."""

    identity = ProviderIdentity(
        category_id=category.id,
        name=anchor.name,
        primary_source_id=primary.native_id if primary is not None else None,
        secondary_source_id=secondary.native_id if secondary is not None else None,
    )
    provider = resolve_provider(ctx.db, identity)
    created = provider is None
    if provider is None:
        provider = CanonicalProvider(
            category_id=category.id,
            name=anchor.name,
            rating=0.0,
            is_verified=False,
            is_claimed=False,
            is_active=True,
            is_public=True,
            is_direct_provider=True,
            view_count=0,
            contact_count=0,
            needs_review=False,
        )
        ctx.db.add(provider)
        linked: dict[SourceType, SourceRecord] = {}
    else:
        linked = _linked_records(ctx.db, provider.id)

    effective_primary = primary or linked.get(SourceType.PRIMARY)
    effective_secondary = secondary or linked.get(SourceType.SECONDARY)
    _apply_merged_view(
        provider,
        effective_primary,
        effective_secondary,
        settings=ctx.settings,
        merged_at=ctx.merged_at,
    )
    if classification is not None:
        provider.match_confidence = confidence
        provider.match_classification = classification
        if classification is MatchClassification.PARTIAL:
            provider.needs_review = True
    ctx.db.flush()

    linked_count = 0
    for record in (primary, secondary):
        if record is None:
            continue
        record.canonical_provider_id = provider.id
        record.matched_at = ctx.merged_at
        linked_count += 1
    ctx.db.flush()
    ctx.touched_provider_ids.add(provider.id)
    return _MergeOutcome(provider=provider, created=created, linked=linked_count)


def _linked_records(db: Session, provider_id: int) -> dict[SourceType, SourceRecord]:
    records = db.scalars(
        select(SourceRecord)
        .where(SourceRecord.canonical_provider_id == provider_id)
        .order_by(SourceRecord.fetched_at.desc(), SourceRecord.id.desc())
    ).all()
    linked: dict[SourceType, SourceRecord] = {}
    for record in records:
        linked.setdefault(record.source_type, record)
    return linked


def _apply_merged_view(
    provider: CanonicalProvider,
    primary: SourceRecord | None,
    secondary: SourceRecord | None,
    *,
    settings: Settings,
    merged_at: datetime,
) -> None:
    """Write the merged view, source slots, and scores. Curated fields are left alone."""

    provider.name = _first_present(
        primary.name if primary else None,
        secondary.name if secondary else None,
    ) or provider.name
    for field_name in _PRECEDENCE_FIELDS:
        setattr(
            provider,
            field_name,
            _first_present(
                getattr(primary, field_name) if primary else None,
                getattr(secondary, field_name) if secondary else None,
            ),
        )

    coordinates_source = next(
        (record for record in (primary, secondary) if record is not None and _has_coordinates(record)),
        None,
    )
    provider.latitude = coordinates_source.latitude if coordinates_source else None
    provider.longitude = coordinates_source.longitude if coordinates_source else None

    secondary_website = secondary.website if secondary else None
    if _is_listing_url(secondary_website, settings.secondary_listing_domain):
        secondary_website = None
    provider.website = _first_present(primary.website if primary else None, secondary_website)
    provider.image_url = _first_present(
        primary.photo_url if primary else None,
        secondary.photo_url if secondary else None,
    )

    primary_rating = primary.rating if primary else None
    secondary_rating = secondary.rating if secondary else None
    provider.rating = combined_rating(primary_rating, secondary_rating)
    provider.review_count = sum(record.review_count or 0 for record in (primary, secondary) if record is not None)

    provider.primary_source_id = primary.native_id if primary else None
    provider.primary_rating = primary_rating
    provider.primary_review_count = primary.review_count if primary else None
    provider.primary_photo_url = primary.photo_url if primary else None
    provider.secondary_source_id = secondary.native_id if secondary else None
    provider.secondary_rating = secondary_rating
    provider.secondary_review_count = secondary.review_count if secondary else None
    provider.secondary_photo_url = secondary.photo_url if secondary else None

    score = compute_quality_score(primary_rating, secondary_rating)
    provider.client_satisfaction = score.client_satisfaction
    provider.service_quality = score.service_quality
    provider.punctuality = score.punctuality
    provider.communication = score.communication
    provider.value_perceived = score.value_perceived
    provider.quality_score = score.overall
    provider.score_calculated_at = merged_at

    provider.sync_status = SyncStatus.SYNCED if primary is not None and secondary is not None else SyncStatus.PARTIAL
    provider.last_synced_at = merged_at


def _first_present(*values: str | None) -> str | None:
    for value in values:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _has_coordinates(record: SourceRecord) -> bool:
    return record.latitude is not None and record.longitude is not None


def _is_listing_url(url: str | None, listing_domain: str) -> bool:
    domain = extract_domain(url)
    if domain is None or not listing_domain:
        return False
    return domain == listing_domain or domain.endswith(f".{listing_domain}")
