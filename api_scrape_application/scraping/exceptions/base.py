class ScrapeError(Exception):
    """Base error that carries retryability information for scrape runs."""

    def __init__(self, message: str, *, retryable: bool) -> None:  # noqa: D401
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class RetryableScrapeError(ScrapeError):
    """Errors a caller may reasonably retry later (network, upstream hiccups)."""

    def __init__(self, message: str) -> None:  # noqa: D401
        super().__init__(message, retryable=True)


class NonRetryableScrapeError(ScrapeError):
    """Errors that will fail again until configuration or data changes."""

    def __init__(self, message: str) -> None:  # noqa: D401
        super().__init__(message, retryable=False)
