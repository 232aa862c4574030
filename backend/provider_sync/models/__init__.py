"""ORM models package exports."""

from provider_sync.models.canonical_provider import CanonicalProvider
from provider_sync.models.category import Category
from provider_sync.models.enums import MatchClassification, SourceType, SyncMode, SyncStatus
from provider_sync.models.match_candidate import MatchCandidate
from provider_sync.models.source_record import SourceRecord
from provider_sync.models.sync_run import SyncRun

__all__ = [
    "CanonicalProvider",
    "Category",
    "MatchCandidate",
    "MatchClassification",
    "SourceRecord",
    "SourceType",
    "SyncMode",
    "SyncRun",
    "SyncStatus",
]
