"""Seed demo categories and run a full sync from fixture sources.

Usage (from repository root):
    python backend/scripts/seed_demo.py

Usage (from backend directory):
    python scripts/seed_demo.py
    # or
    python -m scripts.seed_demo
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import delete, select

# Make `provider_sync` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from provider_sync.config import get_settings
from provider_sync.db.session import SessionLocal
from provider_sync.models.canonical_provider import CanonicalProvider
from provider_sync.models.category import Category
from provider_sync.models.enums import SourceType
from provider_sync.models.match_candidate import MatchCandidate
from provider_sync.models.source_record import SourceRecord
from provider_sync.schemas.sync import SyncOptions
from provider_sync.services.sync import SyncOrchestrator
from provider_sync.sources.static_adapter import StaticSourceAdapter


FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"
DEMO_CATEGORIES = {
    "djs": "DJs",
    "photographers": "Photographers",
    "videographers": "Videographers",
}


def ensure_categories(db) -> int:
    """Insert any missing demo categories; returns how many were created."""

    existing = set(db.scalars(select(Category.slug)))
    created = 0
    for slug, name in DEMO_CATEGORIES.items():
        if slug in existing:
            continue
        db.add(Category(slug=slug, name=name))
        created += 1
    db.commit()
    return created


def reset_pipeline(db) -> None:
    """Remove candidates, source records, and canonical providers."""

    db.execute(delete(MatchCandidate))
    db.execute(delete(SourceRecord))
    db.execute(delete(CanonicalProvider))
    db.commit()


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Seed demo categories and run a full provider sync.")
    parser.add_argument(
        "--primary-fixture",
        default=str(FIXTURES_DIR / "primary.json"),
        help="JSON fixture served as the primary source.",
    )
    parser.add_argument(
        "--secondary-fixture",
        default=str(FIXTURES_DIR / "secondary.json"),
        help="JSON fixture served as the secondary source.",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete existing providers, source records, and candidates before syncing.",
    )
    return parser.parse_args()


def main() -> None:
    """Seed demo data and print a short summary."""

    args = parse_args()
    adapters = [
        StaticSourceAdapter.from_json_file(SourceType.PRIMARY, args.primary_fixture),
        StaticSourceAdapter.from_json_file(SourceType.SECONDARY, args.secondary_fixture),
    ]

    with SessionLocal() as db:
        if args.reset:
            reset_pipeline(db)
        categories_created = ensure_categories(db)
        orchestrator = SyncOrchestrator(db, adapters, settings=get_settings(), sleep=lambda _: None)
        result = orchestrator.run_full_sync(SyncOptions(categories=list(DEMO_CATEGORIES)))

    print("Seed complete")
    print(f"run_id={result.run_id}")
    print(f"categories_created={categories_created}")
    if result.ingestion is not None:
        print(f"primary_records={result.ingestion.primary_total}")
        print(f"secondary_records={result.ingestion.secondary_total}")
    if result.matching is not None:
        print(f"auto_matches={result.matching.auto_matches}")
        print(f"partial_matches={result.matching.partial_matches}")
    if result.merge is not None:
        print(f"providers_created={result.merge.providers_created}")
        print(f"single_source_created={result.merge.single_source_created}")
    for error in result.errors:
        print(f"error={error}")
    print()
    print("Inspect:")
    print("  GET /sync")
    print("  GET /sync/runs")


if __name__ == "__main__":
    main()
