"""SQLAlchemy metadata registry import for Alembic."""

from provider_sync.models import CanonicalProvider, Category, MatchCandidate, SourceRecord, SyncRun
from provider_sync.models.base import Base

__all__ = ["Base", "CanonicalProvider", "Category", "MatchCandidate", "SourceRecord", "SyncRun"]
