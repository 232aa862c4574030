"""Source adapter errors.

"No data" is never an error: adapters return an empty list or ``None``.
"""


class SourceAdapterError(RuntimeError):
    """Upstream source could not answer the query."""


class SourceUnavailableError(SourceAdapterError):
    pass


class SourceQuotaExceededError(SourceAdapterError):
    pass


class SourceTimeoutError(SourceAdapterError):
    pass
