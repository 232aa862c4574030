"""Sync orchestrator: ingest, match, merge, and rank in one recorded run."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from threading import Event
from time import perf_counter
from typing import Callable, Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from provider_sync.config import Settings, get_settings
from provider_sync.models.canonical_provider import CanonicalProvider
from provider_sync.models.enums import MatchClassification, SourceType, SyncMode, SyncStatus
from provider_sync.models.match_candidate import MatchCandidate
from provider_sync.models.source_record import SourceRecord
from provider_sync.models.sync_run import SyncRun
from provider_sync.schemas.matching import MatchingStats, MatchResult
from provider_sync.schemas.merge import MergeResult, RankingRebuildResult
from provider_sync.schemas.provider import CanonicalProviderRead
from provider_sync.schemas.sync import (
    CandidateStats,
    FullSyncResult,
    IngestionRunResult,
    MatchAndMergeResult,
    ProviderStats,
    SingleProviderSyncResult,
    SourceStats,
    SyncFreshness,
    SyncOptions,
    SyncRunRead,
    SyncStats,
)
from provider_sync.services.ingestion import ingest_from_adapter, upsert_source_record
from provider_sync.services.matching import get_matching_stats, match_providers
from provider_sync.services.merge import merge_providers
from provider_sync.services.rankings import deactivate_stale_providers, rebuild_rankings
from provider_sync.sources.adapter_interface import SourceAdapter
from provider_sync.sources.errors import SourceAdapterError

logger = logging.getLogger(__name__)

_SOURCE_ORDER = (SourceType.PRIMARY, SourceType.SECONDARY)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class SyncOrchestrator:
    """Run the reconciliation pipeline against injected adapters.

    Every public mode persists one ``SyncRun`` row. Stage-level failures are
    reported on the returned result; anything unexpected is logged, recorded
    as a failed run, and re-raised.
    """

    def __init__(
        self,
        db: Session,
        adapters: Iterable[SourceAdapter],
        *,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.sleep = sleep
        self.clock = clock
        self.adapters: dict[SourceType, SourceAdapter] = {}
        for adapter in adapters:
            if adapter.source_type in self.adapters:
                raise ValueError(f"Duplicate adapter for source '{adapter.source_type.value}'")
            self.adapters[adapter.source_type] = adapter

    def run_full_sync(
        self,
        options: SyncOptions | None = None,
        *,
        cancel_event: Event | None = None,
    ) -> FullSyncResult:
        """Ingest every category, then match, merge, optionally deactivate, and rank."""

        options = options or SyncOptions()
        categories = self._categories(options)
        started = perf_counter()
        timestamp = self.clock()
        run = self._start_run(SyncMode.FULL, started_at=timestamp)
        result = FullSyncResult(run_id=run.id, timestamp=timestamp)
        try:
            if not options.skip_ingestion:
                result.ingestion = self._ingest(
                    categories,
                    options.location or self.settings.default_location,
                    options.limit or self.settings.default_limit,
                    cancel_event,
                )
                result.cancelled = result.ingestion.cancelled
            if not options.skip_matching and not result.cancelled:
                result.matching, result.merge = self._match_and_merge(categories, run.id, cancel_event)
                result.cancelled = result.merge.cancelled
            if self.settings.deactivate_stale_providers and not result.cancelled:
                result.deactivation = deactivate_stale_providers(
                    self.db,
                    self.settings.stale_provider_max_age_days,
                    now=self.clock(),
                )
            if not options.skip_rankings and not result.cancelled:
                result.rankings = self._rebuild_rankings(categories)
        except Exception as exc:
            self._fail_run(run, started, exc)
            raise

        for stage in (result.ingestion, result.matching, result.merge, result.rankings):
            if stage is not None:
                result.errors.extend(stage.errors)
        stages = [result.ingestion, result.matching, result.merge, result.deactivation, result.rankings]
        result.success = all(stage.success for stage in stages if stage is not None)
        result.duration_ms = self._finish_run(
            run,
            started,
            success=result.success,
            cancelled=result.cancelled,
            summary=_full_sync_summary(result),
            errors=result.errors,
        )
        return result

    def run_ingestion_only(
        self,
        options: SyncOptions | None = None,
        *,
        cancel_event: Event | None = None,
    ) -> IngestionRunResult:
        options = options or SyncOptions()
        started = perf_counter()
        run = self._start_run(SyncMode.INGESTION)
        try:
            result = self._ingest(
                self._categories(options),
                options.location or self.settings.default_location,
                options.limit or self.settings.default_limit,
                cancel_event,
            )
        except Exception as exc:
            self._fail_run(run, started, exc)
            raise
        self._finish_run(
            run,
            started,
            success=result.success,
            cancelled=result.cancelled,
            summary={"primary_total": result.primary_total, "secondary_total": result.secondary_total},
            errors=result.errors,
        )
        return result

    def run_match_and_merge(
        self,
        category: str | None = None,
        *,
        cancel_event: Event | None = None,
    ) -> MatchAndMergeResult:
        """Match and merge whatever is already ingested, then re-rank."""

        started = perf_counter()
        run = self._start_run(SyncMode.MATCH)
        try:
            matching = match_providers(self.db, category, run_id=run.id)
            merge = merge_providers(
                self.db,
                matching.candidates,
                category=category,
                settings=self.settings,
                now=self.clock(),
                cancel_event=cancel_event,
            )
            rankings = None if merge.cancelled else rebuild_rankings(self.db, category)
        except Exception as exc:
            self._fail_run(run, started, exc)
            raise

        result = MatchAndMergeResult(matching=matching, merge=merge, rankings=rankings)
        result.errors = [*matching.errors, *merge.errors, *(rankings.errors if rankings else [])]
        result.success = matching.success and merge.success and (rankings is None or rankings.success)
        self._finish_run(
            run,
            started,
            success=result.success,
            cancelled=merge.cancelled,
            summary=_match_merge_summary(matching, merge),
            errors=result.errors,
        )
        return result

    def sync_single_provider(
        self,
        name: str,
        category: str,
        location: str | None = None,
    ) -> SingleProviderSyncResult:
        """Look a provider up in every source, ingest the hits, and merge the category."""

        started = perf_counter()
        run = self._start_run(SyncMode.SINGLE)
        location = location or self.settings.default_location
        errors: list[str] = []
        found: dict[SourceType, SourceRecord] = {}
        try:
            for index, source_type in enumerate(source for source in _SOURCE_ORDER if source in self.adapters):
                if index > 0:
                    self.sleep(self.settings.source_request_delay_seconds)
                adapter = self.adapters[source_type]
                try:
                    payload = adapter.lookup(name, category, location)
                except SourceAdapterError as exc:
                    errors.append(f"{source_type.value} lookup failed for '{name}': {exc}")
                    logger.warning("sync.single_lookup_failed source=%s name=%s error=%s", source_type.value, name, exc)
                    continue
                if payload is None:
                    continue
                if payload.source_type is not source_type or payload.category_slug != category:
                    errors.append(f"{source_type.value} lookup for '{name}' returned a record outside {category}")
                    continue
                record, _ = upsert_source_record(self.db, payload, fetched_at=self.clock())
                found[source_type] = record
            self.db.commit()

            if not found:
                result = SingleProviderSyncResult(success=False, error=f"Provider '{name}' not found in any source")
                self._finish_run(
                    run,
                    started,
                    success=False,
                    cancelled=False,
                    summary={"name": name, "category": category, "found": []},
                    errors=[*errors, result.error],
                )
                return result

            matching = match_providers(self.db, category, run_id=run.id)
            merge = merge_providers(
                self.db,
                matching.candidates,
                category=category,
                settings=self.settings,
                now=self.clock(),
            )
            rebuild_rankings(self.db, category)
        except Exception as exc:
            self._fail_run(run, started, exc)
            raise

        anchor = found.get(SourceType.PRIMARY) or found[SourceType.SECONDARY]
        provider = self.db.get(CanonicalProvider, anchor.canonical_provider_id) if anchor.canonical_provider_id else None
        errors.extend(merge.errors)
        result = SingleProviderSyncResult(
            success=provider is not None,
            provider_id=provider.id if provider is not None else None,
            provider=CanonicalProviderRead.model_validate(provider) if provider is not None else None,
            source="both" if len(found) == 2 else next(iter(found)).value,
            merge=merge,
            error=None if provider is not None else "; ".join(errors) or "Provider could not be merged",
        )
        self._finish_run(
            run,
            started,
            success=result.success,
            cancelled=False,
            summary={
                "name": name,
                "category": category,
                "found": [source.value for source in found],
                "provider_id": result.provider_id,
            },
            errors=errors,
        )
        return result

    def rebuild_rankings(self, category: str | None = None) -> RankingRebuildResult:
        started = perf_counter()
        run = self._start_run(SyncMode.RANKINGS)
        try:
            result = rebuild_rankings(self.db, category)
        except Exception as exc:
            self._fail_run(run, started, exc)
            raise
        self._finish_run(
            run,
            started,
            success=result.success,
            cancelled=False,
            summary={"updated": result.updated, "categories": dict(result.categories)},
            errors=result.errors,
        )
        return result

    def get_sync_stats(self) -> SyncStats:
        sources = SourceStats()
        for source_type, total, linked in self.db.execute(
            select(
                SourceRecord.source_type,
                func.count(SourceRecord.id),
                func.count(SourceRecord.canonical_provider_id),
            ).group_by(SourceRecord.source_type)
        ).all():
            if source_type is SourceType.PRIMARY:
                sources.primary = total
            else:
                sources.secondary = total
            sources.linked += linked
        sources.total = sources.primary + sources.secondary
        sources.unlinked = sources.total - sources.linked

        candidate_counts = dict(
            self.db.execute(
                select(MatchCandidate.classification, func.count(MatchCandidate.id)).group_by(
                    MatchCandidate.classification
                )
            ).all()
        )
        candidates = CandidateStats(
            total=sum(candidate_counts.values()),
            auto=candidate_counts.get(MatchClassification.AUTO, 0),
            partial=candidate_counts.get(MatchClassification.PARTIAL, 0),
            none=candidate_counts.get(MatchClassification.NONE, 0),
        )

        status_counts = dict(
            self.db.execute(
                select(CanonicalProvider.sync_status, func.count(CanonicalProvider.id)).group_by(
                    CanonicalProvider.sync_status
                )
            ).all()
        )
        total_providers = sum(status_counts.values())
        synced = status_counts.get(SyncStatus.SYNCED, 0)
        partial = status_counts.get(SyncStatus.PARTIAL, 0)
        providers = ProviderStats(
            total=total_providers,
            verified=self._count_providers(CanonicalProvider.is_verified.is_(True)),
            synced=synced,
            partial=partial,
            other=total_providers - synced - partial,
            needs_review=self._count_providers(CanonicalProvider.needs_review.is_(True)),
        )

        last_run = self.db.scalar(
            select(SyncRun)
            .where(SyncRun.finished_at.is_not(None))
            .order_by(SyncRun.finished_at.desc(), SyncRun.id.desc())
            .limit(1)
        )
        return SyncStats(
            sources=sources,
            candidates=candidates,
            providers=providers,
            last_run=SyncRunRead.model_validate(last_run) if last_run is not None else None,
        )

    def get_matching_stats(self) -> MatchingStats:
        return get_matching_stats(self.db)

    def is_sync_needed(self, max_age_hours: float | None = None) -> SyncFreshness:
        """A full sync is needed when no successful, uncancelled one finished recently."""

        max_age = float(max_age_hours if max_age_hours is not None else self.settings.sync_freshness_hours)
        last_run = self.db.scalar(
            select(SyncRun)
            .where(
                SyncRun.mode == SyncMode.FULL.value,
                SyncRun.success.is_(True),
                SyncRun.cancelled.is_(False),
                SyncRun.finished_at.is_not(None),
            )
            .order_by(SyncRun.finished_at.desc(), SyncRun.id.desc())
            .limit(1)
        )
        if last_run is None:
            return SyncFreshness(sync_needed=True, max_age_hours=max_age)
        age = self.clock() - _as_utc(last_run.finished_at)
        return SyncFreshness(
            sync_needed=age > timedelta(hours=max_age),
            max_age_hours=max_age,
            last_run=SyncRunRead.model_validate(last_run),
        )

    def list_recent_runs(self, limit: int = 10) -> list[SyncRun]:
        return list(
            self.db.scalars(
                select(SyncRun).order_by(SyncRun.started_at.desc(), SyncRun.id.desc()).limit(limit)
            ).all()
        )

    def _categories(self, options: SyncOptions) -> list[str]:
        return list(options.categories or self.settings.default_categories)

    def _ingest(
        self,
        categories: list[str],
        location: str,
        limit: int,
        cancel_event: Event | None,
    ) -> IngestionRunResult:
        result = IngestionRunResult()
        for category_index, category in enumerate(categories):
            if category_index > 0:
                self.sleep(self.settings.category_delay_seconds)
            for source_index, source_type in enumerate(source for source in _SOURCE_ORDER if source in self.adapters):
                if cancel_event is not None and cancel_event.is_set():
                    result.cancelled = True
                    return result
                if source_index > 0:
                    self.sleep(self.settings.source_request_delay_seconds)
                ingestion = ingest_from_adapter(
                    self.db,
                    self.adapters[source_type],
                    category,
                    location,
                    limit,
                    cancel_event=cancel_event,
                    fetched_at=self.clock(),
                )
                if source_type is SourceType.PRIMARY:
                    result.primary.append(ingestion)
                else:
                    result.secondary.append(ingestion)
                result.errors.extend(ingestion.errors)
                if not ingestion.success:
                    result.success = False
        if cancel_event is not None and cancel_event.is_set():
            result.cancelled = True
        return result

    def _match_and_merge(
        self,
        categories: list[str],
        run_id: int,
        cancel_event: Event | None,
    ) -> tuple[MatchResult, MergeResult]:
        matching = MatchResult()
        merge = MergeResult()
        for category in categories:
            if cancel_event is not None and cancel_event.is_set():
                merge.cancelled = True
                break
            category_matching = match_providers(self.db, category, run_id=run_id)
            category_merge = merge_providers(
                self.db,
                category_matching.candidates,
                category=category,
                settings=self.settings,
                now=self.clock(),
                cancel_event=cancel_event,
            )
            _accumulate_match(matching, category_matching)
            _accumulate_merge(merge, category_merge)
        return matching, merge

    def _rebuild_rankings(self, categories: list[str]) -> RankingRebuildResult:
        combined = RankingRebuildResult()
        for category in categories:
            category_result = rebuild_rankings(self.db, category)
            combined.updated += category_result.updated
            combined.categories.update(category_result.categories)
            combined.errors.extend(category_result.errors)
            combined.success = combined.success and category_result.success
        return combined

    def _count_providers(self, condition) -> int:
        return self.db.scalar(select(func.count(CanonicalProvider.id)).where(condition)) or 0

    def _start_run(self, mode: SyncMode, *, started_at: datetime | None = None) -> SyncRun:
        run = SyncRun(mode=mode.value, started_at=started_at or self.clock(), success=False, cancelled=False)
        self.db.add(run)
        self.db.commit()
        logger.info("sync.run_started run_id=%d mode=%s", run.id, mode.value)
        return run

    def _finish_run(
        self,
        run: SyncRun,
        started: float,
        *,
        success: bool,
        cancelled: bool,
        summary: dict[str, object],
        errors: list[str],
    ) -> int:
        duration_ms = int((perf_counter() - started) * 1000.0)
        run.finished_at = self.clock()
        run.duration_ms = duration_ms
        run.success = success
        run.cancelled = cancelled
        run.summary_json = summary
        run.errors_json = list(errors)
        self.db.commit()
        logger.info(
            "sync.run_finished run_id=%d mode=%s success=%s cancelled=%s errors=%d total_ms=%d",
            run.id,
            run.mode,
            success,
            cancelled,
            len(errors),
            duration_ms,
        )
        return duration_ms

    def _fail_run(self, run: SyncRun, started: float, exc: Exception) -> None:
        self.db.rollback()
        run_id = run.id
        logger.exception(
            "sync.run_failed run_id=%d elapsed_ms=%.2f",
            run_id,
            (perf_counter() - started) * 1000.0,
        )
        failed = self.db.get(SyncRun, run_id)
        if failed is None:
            return
        failed.finished_at = self.clock()
        failed.duration_ms = int((perf_counter() - started) * 1000.0)
        failed.success = False
        failed.errors_json = [f"Unexpected failure: {exc}"]
        self.db.commit()


def _accumulate_match(total: MatchResult, part: MatchResult) -> None:
    total.candidates.extend(part.candidates)
    total.auto_matches += part.auto_matches
    total.partial_matches += part.partial_matches
    total.no_matches += part.no_matches
    total.unmatched_primary += part.unmatched_primary
    total.unmatched_secondary += part.unmatched_secondary
    total.errors.extend(part.errors)
    total.success = total.success and part.success


def _accumulate_merge(total: MergeResult, part: MergeResult) -> None:
    total.providers_created += part.providers_created
    total.providers_updated += part.providers_updated
    total.single_source_created += part.single_source_created
    total.matches_recorded += part.matches_recorded
    total.skipped += part.skipped
    total.errors.extend(part.errors)
    total.success = total.success and part.success
    total.cancelled = total.cancelled or part.cancelled


def _match_merge_summary(matching: MatchResult, merge: MergeResult) -> dict[str, object]:
    return {
        "auto_matches": matching.auto_matches,
        "partial_matches": matching.partial_matches,
        "no_matches": matching.no_matches,
        "providers_created": merge.providers_created,
        "providers_updated": merge.providers_updated,
        "single_source_created": merge.single_source_created,
        "matches_recorded": merge.matches_recorded,
        "skipped": merge.skipped,
    }


def _full_sync_summary(result: FullSyncResult) -> dict[str, object]:
    summary: dict[str, object] = {}
    if result.ingestion is not None:
        summary["primary_total"] = result.ingestion.primary_total
        summary["secondary_total"] = result.ingestion.secondary_total
    if result.matching is not None and result.merge is not None:
        summary.update(_match_merge_summary(result.matching, result.merge))
    if result.deactivation is not None:
        summary["deactivated"] = result.deactivation.deactivated
    if result.rankings is not None:
        summary["ranked"] = result.rankings.updated
    return summary
