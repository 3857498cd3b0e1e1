from __future__ import annotations

from .base import NonRetryableScrapeError


class ConfigurationError(NonRetryableScrapeError):
    """Missing template pieces or store credentials, detected before any fetch."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code
