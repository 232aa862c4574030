"""Closed vocabularies shared by models, schemas, and services."""

from enum import Enum


class SourceType(str, Enum):
    """Upstream business-data source a record was observed in."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


class MatchClassification(str, Enum):
    AUTO = "auto"
    PARTIAL = "partial"
    NONE = "none"


class SyncStatus(str, Enum):
    SYNCED = "synced"
    PARTIAL = "partial"
    FAILED = "failed"
    NOT_FOUND = "not_found"


class SyncMode(str, Enum):
    FULL = "full"
    INGESTION = "ingestion"
    MATCH = "match"
    SINGLE = "single"
    RANKINGS = "rankings"
