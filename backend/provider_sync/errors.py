"""Domain errors raised by merge and identity resolution."""


class ProviderSyncError(RuntimeError):
    """Base class for expected, per-record pipeline failures."""


class CategoryNotFoundError(ProviderSyncError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"Category '{slug}' not found")
        self.slug = slug


class IdentityConflictError(ProviderSyncError):
    """Several existing canonical rows could claim the same record set."""

    def __init__(self, message: str, provider_ids: list[int]) -> None:
        super().__init__(message)
        self.provider_ids = provider_ids
