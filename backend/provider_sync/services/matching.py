"""Matching stage: pair unmatched primary and secondary records per category."""

from __future__ import annotations

import logging
from collections import defaultdict
from time import perf_counter

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from provider_sync.matching import SCORER_VERSION, PairingPlan, plan_pairs
from provider_sync.matching.pairing import UnpairedRecord
from provider_sync.models.enums import MatchClassification, SourceType
from provider_sync.models.match_candidate import MatchCandidate
from provider_sync.models.source_record import SourceRecord
from provider_sync.schemas.matching import CategoryMatchingStats, MatchCandidateRead, MatchingStats, MatchResult

logger = logging.getLogger(__name__)


def match_providers(
    db: Session,
    category: str | None = None,
    *,
    run_id: int | None = None,
) -> MatchResult:
    """Score and pair every unmatched record in scope, persisting audit candidates.

    Source records are only read here; linking them to canonical providers is
    the merge stage's job.
    """

    total_started = perf_counter()
    result = MatchResult()
    try:
        grouped = _load_unmatched_by_category(db, category)
        candidates: list[MatchCandidate] = []
        for category_slug in sorted(grouped):
            primary_records = grouped[category_slug][SourceType.PRIMARY]
            secondary_records = grouped[category_slug][SourceType.SECONDARY]
            if not primary_records and not secondary_records:
                continue
            plan = plan_pairs(primary_records, secondary_records)
            candidates.extend(_build_candidates(plan, category_slug=category_slug, run_id=run_id))
            for pair in plan.pairs:
                if pair.classification is MatchClassification.AUTO:
                    result.auto_matches += 1
                else:
                    result.partial_matches += 1
            result.unmatched_primary += len(plan.unpaired_primary)
            result.unmatched_secondary += len(plan.unpaired_secondary)
            logger.info(
                "sync.matching_category category=%s primary=%d secondary=%d pairs=%d",
                category_slug,
                len(primary_records),
                len(secondary_records),
                len(plan.pairs),
            )

        db.add_all(candidates)
        db.commit()
        result.no_matches = result.unmatched_primary + result.unmatched_secondary
        result.candidates = [MatchCandidateRead.model_validate(candidate) for candidate in candidates]
    except Exception:
        logger.exception(
            "sync.matching_failed category=%s elapsed_ms=%.2f",
            category or "*",
            (perf_counter() - total_started) * 1000.0,
        )
        raise

    logger.info(
        "sync.matching_timing category=%s auto=%d partial=%d unmatched_primary=%d unmatched_secondary=%d total_ms=%.2f",
        category or "*",
        result.auto_matches,
        result.partial_matches,
        result.unmatched_primary,
        result.unmatched_secondary,
        (perf_counter() - total_started) * 1000.0,
    )
    return result


def get_matching_stats(db: Session) -> MatchingStats:
    """Linked/unlinked counts per category and source, plus candidate totals."""

    stmt = (
        select(
            SourceRecord.category_slug,
            SourceRecord.source_type,
            func.count(SourceRecord.id),
            func.count(SourceRecord.canonical_provider_id),
        )
        .group_by(SourceRecord.category_slug, SourceRecord.source_type)
        .order_by(SourceRecord.category_slug.asc())
    )
    per_category: dict[str, CategoryMatchingStats] = {}
    stats = MatchingStats()
    for category_slug, source_type, total, linked in db.execute(stmt).all():
        entry = per_category.setdefault(category_slug, CategoryMatchingStats(category_slug=category_slug))
        if source_type is SourceType.PRIMARY:
            entry.primary_linked += linked
            entry.primary_unlinked += total - linked
        else:
            entry.secondary_linked += linked
            entry.secondary_unlinked += total - linked
        stats.total_sources += total
        stats.linked_sources += linked
    stats.unlinked_sources = stats.total_sources - stats.linked_sources
    stats.categories = list(per_category.values())

    candidate_counts = dict(
        db.execute(
            select(MatchCandidate.classification, func.count(MatchCandidate.id)).group_by(
                MatchCandidate.classification
            )
        ).all()
    )
    stats.auto_candidates = candidate_counts.get(MatchClassification.AUTO, 0)
    stats.partial_candidates = candidate_counts.get(MatchClassification.PARTIAL, 0)
    stats.no_match_candidates = candidate_counts.get(MatchClassification.NONE, 0)
    stats.total_candidates = sum(candidate_counts.values())
    return stats


def _load_unmatched_by_category(
    db: Session,
    category: str | None,
) -> dict[str, dict[SourceType, list[SourceRecord]]]:
    # Closed records are never merged, so they never get a candidate row either.
    stmt = select(SourceRecord).where(
        SourceRecord.canonical_provider_id.is_(None),
        SourceRecord.is_closed.is_(False),
    )
    if category is not None:
        stmt = stmt.where(SourceRecord.category_slug == category)
    stmt = stmt.order_by(SourceRecord.id.asc())

    grouped: dict[str, dict[SourceType, list[SourceRecord]]] = defaultdict(
        lambda: {SourceType.PRIMARY: [], SourceType.SECONDARY: []}
    )
    for record in db.scalars(stmt).all():
        grouped[record.category_slug][record.source_type].append(record)
    return grouped


def _build_candidates(
    plan: PairingPlan[SourceRecord],
    *,
    category_slug: str,
    run_id: int | None,
) -> list[MatchCandidate]:
    candidates = [
        MatchCandidate(
            run_id=run_id,
            category_slug=category_slug,
            primary_record_id=pair.primary.id,
            secondary_record_id=pair.secondary.id,
            confidence=pair.confidence,
            classification=pair.classification,
            breakdown_json=pair.breakdown.as_dict(),
        )
        for pair in plan.pairs
    ]
    for unpaired in plan.unpaired_primary:
        candidates.append(
            _unmatched_marker(unpaired, category_slug=category_slug, run_id=run_id, primary=True)
        )
    for unpaired in plan.unpaired_secondary:
        candidates.append(
            _unmatched_marker(unpaired, category_slug=category_slug, run_id=run_id, primary=False)
        )
    return candidates


def _unmatched_marker(
    unpaired: UnpairedRecord[SourceRecord],
    *,
    category_slug: str,
    run_id: int | None,
    primary: bool,
) -> MatchCandidate:
    best = unpaired.best_breakdown
    if best is None:
        breakdown: dict[str, object] = {"scorer_version": SCORER_VERSION, "reason": "no_counterpart"}
    else:
        breakdown = best.as_dict()
        breakdown["reason"] = (
            "below_threshold" if best.classification is MatchClassification.NONE else "lost_contested_pair"
        )
    return MatchCandidate(
        run_id=run_id,
        category_slug=category_slug,
        primary_record_id=unpaired.record.id if primary else None,
        secondary_record_id=None if primary else unpaired.record.id,
        confidence=unpaired.best_confidence,
        classification=MatchClassification.NONE,
        breakdown_json=breakdown,
    )
