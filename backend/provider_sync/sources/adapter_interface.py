"""Source adapter interface for pluggable upstream business-data sources."""

from abc import ABC, abstractmethod

from provider_sync.models.enums import SourceType
from provider_sync.schemas.source_record import SourceRecordCreate


class SourceAdapter(ABC):
    """Abstract source adapter.

    Implementations bound every upstream call by their own timeout and raise
    ``SourceAdapterError`` subclasses for quota, availability, and timeout
    failures.
    """

    source_type: SourceType

    @abstractmethod
    def search(self, category: str, location: str, limit: int) -> list[SourceRecordCreate]:
        """Return up to ``limit`` normalized records for a category in a location."""

    @abstractmethod
    def lookup(self, name: str, category: str, location: str) -> SourceRecordCreate | None:
        """Return the single record best matching a provider name, if any."""
