"""Service-level tests for the sync orchestrator."""

from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from threading import Event

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from provider_sync.config import Settings
from provider_sync.models.base import Base
from provider_sync.models.canonical_provider import CanonicalProvider
from provider_sync.models.category import Category
from provider_sync.models.enums import SourceType, SyncStatus
from provider_sync.models.sync_run import SyncRun
from provider_sync.schemas.source_record import SourceRecordCreate
from provider_sync.schemas.sync import SyncOptions
from provider_sync.services.sync import SyncOrchestrator
from provider_sync.sources.adapter_interface import SourceAdapter
from provider_sync.sources.errors import SourceUnavailableError
from provider_sync.sources.static_adapter import StaticSourceAdapter


def _record(source_type: SourceType, native_id: str, category: str, name: str, **overrides) -> SourceRecordCreate:
    return SourceRecordCreate(
        source_type=source_type,
        native_id=native_id,
        category_slug=category,
        name=name,
        **overrides,
    )


PRIMARY_RECORDS = [
    _record(SourceType.PRIMARY, "pri-1", "djs", "Chris Evans DJ", rating=4.8, phone="555-0100"),
    _record(SourceType.PRIMARY, "pri-2", "videographers", "Lens & Light Films", rating=4.5, phone="718-555-0120"),
]
SECONDARY_RECORDS = [
    _record(SourceType.SECONDARY, "sec-1", "djs", "Chris Evans DJ Services", rating=4.6, phone="555-0100"),
    _record(SourceType.SECONDARY, "sec-2", "videographers", "Lens and Light Films", rating=4.7, phone="(718) 555-0120"),
    _record(SourceType.SECONDARY, "sec-3", "videographers", "Emma Thompson Video", rating=4.8),
]


class _SteppingClock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current += delta


class _CancellingAdapter(StaticSourceAdapter):
    """Sets the cancel event as soon as it is queried."""

    def __init__(self, source_type: SourceType, records: list[SourceRecordCreate], event: Event) -> None:
        super().__init__(source_type, records)
        self.event = event

    def search(self, category: str, location: str, limit: int) -> list[SourceRecordCreate]:
        self.event.set()
        return super().search(category, location, limit)


class _UnavailableAdapter(SourceAdapter):
    source_type = SourceType.SECONDARY

    def search(self, category: str, location: str, limit: int) -> list[SourceRecordCreate]:
        raise SourceUnavailableError("upstream returned 503")

    def lookup(self, name: str, category: str, location: str) -> SourceRecordCreate | None:
        raise SourceUnavailableError("upstream returned 503")


class _BrokenAdapter(SourceAdapter):
    source_type = SourceType.PRIMARY

    def search(self, category: str, location: str, limit: int) -> list[SourceRecordCreate]:
        raise RuntimeError("adapter bug")

    def lookup(self, name: str, category: str, location: str) -> SourceRecordCreate | None:
        return None


class SyncOrchestratorTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        for table in reversed(Base.metadata.sorted_tables):
            self.db.execute(table.delete())
        for slug, name in (("djs", "DJs"), ("videographers", "Videographers")):
            self.db.add(Category(slug=slug, name=name))
        self.db.commit()
        self.settings = Settings(
            default_categories=["djs", "videographers"],
            default_location="New York, NY",
            source_request_delay_seconds=0.2,
            category_delay_seconds=0.5,
            merge_partial_matches=True,
            deactivate_stale_providers=False,
            sync_freshness_hours=24,
        )
        self.clock = _SteppingClock(datetime(2026, 10, 1, 9, 0, 0, tzinfo=timezone.utc))
        self.sleeps: list[float] = []

    def tearDown(self) -> None:
        self.db.close()

    def _orchestrator(self, adapters: list[SourceAdapter] | None = None) -> SyncOrchestrator:
        if adapters is None:
            adapters = [
                StaticSourceAdapter(SourceType.PRIMARY, PRIMARY_RECORDS),
                StaticSourceAdapter(SourceType.SECONDARY, SECONDARY_RECORDS),
            ]
        return SyncOrchestrator(
            self.db,
            adapters,
            settings=self.settings,
            sleep=self.sleeps.append,
            clock=self.clock,
        )

    def _providers(self) -> list[CanonicalProvider]:
        return list(self.db.scalars(select(CanonicalProvider).order_by(CanonicalProvider.id.asc())))

    def test_full_sync_runs_every_stage(self) -> None:
        result = self._orchestrator().run_full_sync()

        self.assertTrue(result.success)
        self.assertFalse(result.cancelled)
        self.assertEqual(result.errors, [])
        self.assertEqual(result.ingestion.primary_total, 2)
        self.assertEqual(result.ingestion.secondary_total, 3)
        self.assertEqual(result.matching.auto_matches, 2)
        self.assertEqual(result.merge.providers_created, 2)
        self.assertEqual(result.merge.single_source_created, 1)
        self.assertEqual(result.rankings.categories, {"djs": 1, "videographers": 2})
        self.assertIsNone(result.deactivation)
        self.assertEqual(self.sleeps, [0.2, 0.5, 0.2])

        statuses = sorted(provider.sync_status.value for provider in self._providers())
        self.assertEqual(statuses, ["partial", "synced", "synced"])

        run = self.db.get(SyncRun, result.run_id)
        self.assertEqual(run.mode, "full")
        self.assertTrue(run.success)
        self.assertIsNotNone(run.finished_at)
        self.assertEqual(run.summary_json["providers_created"], 2)

    def test_rerun_only_refreshes_timestamps(self) -> None:
        orchestrator = self._orchestrator()
        orchestrator.run_full_sync()
        before = [(p.id, p.name, p.rating, p.quality_score, p.position) for p in self._providers()]

        second = orchestrator.run_full_sync()

        after = [(p.id, p.name, p.rating, p.quality_score, p.position) for p in self._providers()]
        self.assertEqual(before, after)
        self.assertEqual(second.matching.candidates, [])
        self.assertEqual(second.merge.providers_created, 0)
        self.assertEqual(second.merge.single_source_created, 0)
        self.assertEqual(second.merge.providers_updated, 3)

    def test_skip_flags_leave_stages_out(self) -> None:
        result = self._orchestrator().run_full_sync(SyncOptions(skip_matching=True, skip_rankings=True))

        self.assertIsNotNone(result.ingestion)
        self.assertIsNone(result.matching)
        self.assertIsNone(result.merge)
        self.assertIsNone(result.rankings)
        self.assertEqual(self._providers(), [])

    def test_unavailable_source_is_reported_and_pipeline_continues(self) -> None:
        orchestrator = self._orchestrator(
            [StaticSourceAdapter(SourceType.PRIMARY, PRIMARY_RECORDS), _UnavailableAdapter()]
        )

        result = orchestrator.run_full_sync(SyncOptions(categories=["djs"]))

        self.assertFalse(result.success)
        self.assertFalse(result.ingestion.success)
        self.assertEqual(result.errors, ["secondary ingestion failed for djs: upstream returned 503"])
        self.assertEqual(result.merge.single_source_created, 1)
        self.assertIs(self._providers()[0].sync_status, SyncStatus.PARTIAL)

    def test_cancellation_stops_before_matching(self) -> None:
        cancel_event = Event()
        orchestrator = self._orchestrator(
            [
                StaticSourceAdapter(SourceType.PRIMARY, PRIMARY_RECORDS),
                _CancellingAdapter(SourceType.SECONDARY, SECONDARY_RECORDS, cancel_event),
            ]
        )

        result = orchestrator.run_full_sync(cancel_event=cancel_event)

        self.assertTrue(result.cancelled)
        self.assertEqual(result.ingestion.primary_total, 1)
        self.assertEqual(result.ingestion.secondary_total, 0)
        self.assertIsNone(result.matching)
        self.assertIsNone(result.rankings)
        run = self.db.get(SyncRun, result.run_id)
        self.assertTrue(run.cancelled)
        self.assertTrue(orchestrator.is_sync_needed().sync_needed)

    def test_unexpected_error_records_failed_run_and_raises(self) -> None:
        orchestrator = self._orchestrator([_BrokenAdapter()])

        with self.assertRaises(RuntimeError):
            orchestrator.run_full_sync()

        run = self.db.scalar(select(SyncRun))
        self.assertFalse(run.success)
        self.assertIsNotNone(run.finished_at)
        self.assertEqual(run.errors_json, ["Unexpected failure: adapter bug"])

    def test_sync_freshness_tracks_last_successful_full_run(self) -> None:
        orchestrator = self._orchestrator()
        self.assertTrue(orchestrator.is_sync_needed().sync_needed)

        orchestrator.run_full_sync()
        fresh = orchestrator.is_sync_needed()
        self.assertFalse(fresh.sync_needed)
        self.assertEqual(fresh.max_age_hours, 24.0)
        self.assertEqual(fresh.last_run.mode, "full")

        self.clock.advance(timedelta(hours=25))
        self.assertTrue(orchestrator.is_sync_needed().sync_needed)
        self.assertFalse(orchestrator.is_sync_needed(max_age_hours=48).sync_needed)

    def test_ingestion_then_match_and_merge(self) -> None:
        orchestrator = self._orchestrator()

        ingestion = orchestrator.run_ingestion_only()
        self.assertEqual(ingestion.primary_total + ingestion.secondary_total, 5)
        self.assertEqual(self._providers(), [])

        result = orchestrator.run_match_and_merge()

        self.assertTrue(result.success)
        self.assertEqual(result.matching.auto_matches, 2)
        self.assertEqual(result.merge.providers_created + result.merge.single_source_created, 3)
        self.assertEqual(result.rankings.updated, 3)
        modes = [run.mode for run in orchestrator.list_recent_runs()]
        self.assertEqual(modes, ["match", "ingestion"])

    def test_single_provider_sync_finds_both_sources(self) -> None:
        result = self._orchestrator().sync_single_provider("Chris Evans", "djs")

        self.assertTrue(result.success)
        self.assertEqual(result.source, "both")
        self.assertIsNotNone(result.provider_id)
        self.assertIs(result.provider.sync_status, SyncStatus.SYNCED)
        self.assertEqual(result.provider.rating, 4.7)
        self.assertEqual(result.provider.position, 1)
        self.assertEqual(self.sleeps, [0.2])

    def test_single_provider_sync_reports_missing_provider(self) -> None:
        result = self._orchestrator().sync_single_provider("Nobody Here", "djs")

        self.assertFalse(result.success)
        self.assertIsNone(result.provider_id)
        self.assertIn("not found in any source", result.error)
        run = self.db.scalar(select(SyncRun))
        self.assertEqual(run.mode, "single")
        self.assertFalse(run.success)

    def test_sync_stats_summarize_pipeline(self) -> None:
        orchestrator = self._orchestrator()
        orchestrator.run_full_sync()

        stats = orchestrator.get_sync_stats()

        self.assertEqual((stats.sources.total, stats.sources.primary, stats.sources.secondary), (5, 2, 3))
        self.assertEqual((stats.sources.linked, stats.sources.unlinked), (5, 0))
        self.assertEqual((stats.candidates.auto, stats.candidates.none), (2, 1))
        self.assertEqual((stats.providers.total, stats.providers.synced, stats.providers.partial), (3, 2, 1))
        self.assertEqual(stats.providers.verified, 0)
        self.assertEqual(stats.last_run.mode, "full")

        matching = orchestrator.get_matching_stats()
        self.assertEqual([entry.category_slug for entry in matching.categories], ["djs", "videographers"])
        self.assertEqual((matching.linked_sources, matching.no_match_candidates), (5, 1))

    def test_rebuild_rankings_records_run(self) -> None:
        orchestrator = self._orchestrator()
        orchestrator.run_full_sync()

        result = orchestrator.rebuild_rankings("videographers")

        self.assertEqual(result.categories, {"videographers": 2})
        self.assertEqual(orchestrator.list_recent_runs(limit=1)[0].mode, "rankings")

    def test_duplicate_adapters_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self._orchestrator(
                [
                    StaticSourceAdapter(SourceType.PRIMARY, []),
                    StaticSourceAdapter(SourceType.PRIMARY, []),
                ]
            )


if __name__ == "__main__":
    unittest.main()
