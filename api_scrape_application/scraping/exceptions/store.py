from .base import RetryableScrapeError


class StoreError(RetryableScrapeError):
    """The record store rejected or failed an operation."""

    pass
