"""HTTP tests for the sync routes."""

from __future__ import annotations

import unittest

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from provider_sync.config import Settings, get_settings
from provider_sync.db.dependencies import get_db
from provider_sync.main import app
from provider_sync.models.base import Base
from provider_sync.models.category import Category
from provider_sync.models.enums import SourceType
from provider_sync.routers.sync import get_source_adapters
from provider_sync.schemas.source_record import SourceRecordCreate
from provider_sync.sources.static_adapter import StaticSourceAdapter

PRIMARY_RECORDS = [
    SourceRecordCreate(
        source_type=SourceType.PRIMARY,
        native_id="pri-1",
        category_slug="djs",
        name="Chris Evans DJ",
        rating=4.8,
        phone="555-0100",
    ),
]
SECONDARY_RECORDS = [
    SourceRecordCreate(
        source_type=SourceType.SECONDARY,
        native_id="sec-1",
        category_slug="djs",
        name="Chris Evans DJ Services",
        rating=4.6,
        phone="555-0100",
    ),
]


class SyncRoutesTests(unittest.TestCase):
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
        with self.SessionLocal() as db:
            for table in reversed(Base.metadata.sorted_tables):
                db.execute(table.delete())
            db.add(Category(slug="djs", name="DJs"))
            db.commit()

        settings = Settings(
            default_categories=["djs"],
            source_request_delay_seconds=0.0,
            category_delay_seconds=0.0,
        )
        self.adapters = [
            StaticSourceAdapter(SourceType.PRIMARY, PRIMARY_RECORDS),
            StaticSourceAdapter(SourceType.SECONDARY, SECONDARY_RECORDS),
        ]

        def _get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_settings] = lambda: settings
        app.dependency_overrides[get_source_adapters] = lambda: self.adapters
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_health(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_full_sync_returns_stage_results(self) -> None:
        response = self.client.post("/sync", json={"mode": "full"})

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertTrue(data["success"])
        self.assertEqual(data["matching"]["auto_matches"], 1)
        self.assertEqual(data["merge"]["providers_created"], 1)
        self.assertEqual(data["rankings"]["categories"], {"djs": 1})

    def test_sync_without_body_defaults_to_full(self) -> None:
        response = self.client.post("/sync")

        self.assertEqual(response.status_code, 200)
        self.assertIn("rankings", response.json()["data"])

    def test_sync_requires_configured_adapters(self) -> None:
        self.adapters = []

        response = self.client.post("/sync", json={"mode": "full"})

        self.assertEqual(response.status_code, 503)

    def test_match_mode_runs_without_adapters(self) -> None:
        self.adapters = []

        response = self.client.post("/sync", json={"mode": "match"})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["data"]["success"])

    def test_single_mode_requires_name_and_category(self) -> None:
        response = self.client.post("/sync", json={"mode": "single", "name": "Chris Evans"})

        self.assertEqual(response.status_code, 422)

    def test_single_mode_unknown_provider_is_404(self) -> None:
        response = self.client.post("/sync", json={"mode": "single", "name": "Nobody Here", "category": "djs"})

        self.assertEqual(response.status_code, 404)
        self.assertIn("not found in any source", response.json()["detail"])

    def test_single_mode_returns_provider(self) -> None:
        response = self.client.post("/sync", json={"mode": "single", "name": "Chris Evans", "category": "djs"})

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["source"], "both")
        self.assertEqual(data["provider"]["sync_status"], "synced")

    def test_single_mode_merge_failure_returns_result(self) -> None:
        self.adapters = [
            StaticSourceAdapter(
                SourceType.PRIMARY,
                [
                    SourceRecordCreate(
                        source_type=SourceType.PRIMARY,
                        native_id="pri-9",
                        category_slug="magicians",
                        name="Marvelous Mike",
                    )
                ],
            ),
        ]

        response = self.client.post(
            "/sync",
            json={"mode": "single", "name": "Marvelous Mike", "category": "magicians"},
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertFalse(data["success"])
        self.assertEqual(data["source"], "primary")
        self.assertIsNone(data["provider_id"])
        self.assertIn("Category 'magicians' not found", data["error"])

    def test_overview_reports_stats_and_freshness(self) -> None:
        self.client.post("/sync", json={"mode": "full"})

        response = self.client.get("/sync")

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["stats"]["providers"]["total"], 1)
        self.assertEqual(data["stats"]["sources"]["linked"], 2)
        self.assertFalse(data["freshness"]["sync_needed"])
        self.assertEqual([run["mode"] for run in data["recent_runs"]], ["full"])

    def test_runs_lists_newest_first(self) -> None:
        self.client.post("/sync", json={"mode": "ingestion"})
        self.client.post("/sync/match")

        response = self.client.get("/sync/runs", params={"limit": 5})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([run["mode"] for run in response.json()["data"]], ["match", "ingestion"])

    def test_rebuild_rankings_for_unknown_category(self) -> None:
        response = self.client.post("/sync/rebuild-rankings", json={"category": "magicians"})

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertFalse(data["success"])
        self.assertEqual(len(data["errors"]), 1)

    def test_matching_stats_route(self) -> None:
        self.client.post("/sync", json={"mode": "full"})

        response = self.client.get("/sync/match")

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual((data["total_sources"], data["linked_sources"], data["unlinked_sources"]), (2, 2, 0))
        self.assertEqual(data["auto_candidates"], 1)
        self.assertEqual(data["categories"][0]["category_slug"], "djs")
        self.assertEqual(data["categories"][0]["primary_linked"], 1)

    def test_match_route_merges_ingested_records(self) -> None:
        self.client.post("/sync", json={"mode": "ingestion"})

        response = self.client.post("/sync/match", json={"category": "djs"})

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["merge"]["providers_created"], 1)
        self.assertEqual(data["rankings"]["updated"], 1)


if __name__ == "__main__":
    unittest.main()
