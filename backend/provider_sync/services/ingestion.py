"""Ingestion store: persist adapter observations into ``source_records``.

Ingestion never writes canonical providers; it only upserts raw observations
keyed by (source type, native id, category) and preserves any existing link to
a canonical provider.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Event
from time import perf_counter

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from provider_sync.models.source_record import SourceRecord
from provider_sync.schemas.source_record import SourceRecordCreate
from provider_sync.schemas.sync import IngestionResult
from provider_sync.sources.adapter_interface import SourceAdapter
from provider_sync.sources.errors import SourceAdapterError

logger = logging.getLogger(__name__)

_OBSERVATION_FIELDS = (
    "name",
    "rating",
    "review_count",
    "photo_url",
    "address",
    "city",
    "state",
    "zip_code",
    "country",
    "latitude",
    "longitude",
    "phone",
    "phone_normalized",
    "website",
    "price_range",
    "is_closed",
)


def upsert_source_record(
    db: Session,
    payload: SourceRecordCreate,
    *,
    fetched_at: datetime | None = None,
) -> tuple[SourceRecord, bool]:
    """Insert or overwrite one observation; returns (record, created)."""

    observed_at = fetched_at or datetime.now(timezone.utc)
    record = db.scalar(
        select(SourceRecord).where(
            SourceRecord.source_type == payload.source_type,
            SourceRecord.native_id == payload.native_id,
            SourceRecord.category_slug == payload.category_slug,
        )
    )
    created = record is None
    if record is None:
        record = SourceRecord(
            source_type=payload.source_type,
            native_id=payload.native_id,
            category_slug=payload.category_slug,
        )
        db.add(record)

    for field_name in _OBSERVATION_FIELDS:
        setattr(record, field_name, getattr(payload, field_name))
    record.tags_json = list(payload.tags)
    record.raw_data_json = dict(payload.raw_data)
    record.fetched_at = observed_at
    db.flush()
    return record, created


def ingest_from_adapter(
    db: Session,
    adapter: SourceAdapter,
    category: str,
    location: str,
    limit: int,
    *,
    cancel_event: Event | None = None,
    fetched_at: datetime | None = None,
) -> IngestionResult:
    """Query one adapter for one category and persist every returned record.

    Adapter failures are reported on the result, never raised. Each record is
    written in its own savepoint so one bad row does not discard the batch.
    """

    started = perf_counter()
    source_label = adapter.source_type.value
    result = IngestionResult(source_type=adapter.source_type, category_slug=category)
    try:
        payloads = adapter.search(category, location, limit)
    except SourceAdapterError as exc:
        result.success = False
        result.errors.append(f"{source_label} ingestion failed for {category}: {exc}")
        logger.warning(
            "sync.ingestion_source_failed source=%s category=%s error=%s",
            source_label,
            category,
            exc,
        )
        return result

    observed_at = fetched_at or datetime.now(timezone.utc)
    for payload in payloads[:limit]:
        if cancel_event is not None and cancel_event.is_set():
            break
        if payload.source_type is not adapter.source_type or payload.category_slug != category:
            result.errors.append(
                f"{source_label} record {payload.native_id} rejected: "
                f"expected {source_label}/{category}, got {payload.source_type.value}/{payload.category_slug}"
            )
            continue
        try:
            with db.begin_nested():
                _, created = upsert_source_record(db, payload, fetched_at=observed_at)
        except SQLAlchemyError as exc:
            result.errors.append(f"{source_label} record {payload.native_id} failed to persist: {exc}")
            logger.warning(
                "sync.ingestion_record_failed source=%s native_id=%s error=%s",
                source_label,
                payload.native_id,
                exc,
            )
            continue
        result.total += 1
        if created:
            result.inserted += 1
        else:
            result.updated += 1

    db.commit()
    logger.info(
        "sync.ingestion_timing source=%s category=%s total=%d inserted=%d updated=%d errors=%d total_ms=%.2f",
        source_label,
        category,
        result.total,
        result.inserted,
        result.updated,
        len(result.errors),
        (perf_counter() - started) * 1000.0,
    )
    return result


def reset_source_links(db: Session, category: str | None = None) -> int:
    """Unlink source records so the next run matches them again."""

    stmt = (
        update(SourceRecord)
        .where(SourceRecord.canonical_provider_id.is_not(None))
        .values(canonical_provider_id=None, matched_at=None)
    )
    if category is not None:
        stmt = stmt.where(SourceRecord.category_slug == category)
    reset_count = db.execute(stmt).rowcount or 0
    db.commit()
    logger.info("sync.source_links_reset category=%s records=%d", category or "*", reset_count)
    return reset_count
