"""Source adapter package."""

from provider_sync.sources.adapter_interface import SourceAdapter
from provider_sync.sources.errors import (
    SourceAdapterError,
    SourceQuotaExceededError,
    SourceTimeoutError,
    SourceUnavailableError,
)
from provider_sync.sources.static_adapter import StaticSourceAdapter

__all__ = [
    "SourceAdapter",
    "SourceAdapterError",
    "SourceQuotaExceededError",
    "SourceTimeoutError",
    "SourceUnavailableError",
    "StaticSourceAdapter",
]
