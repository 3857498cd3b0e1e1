from __future__ import annotations

from .base import RetryableScrapeError


class TransportError(RetryableScrapeError):
    """Network failure, non-2xx status or a body that is not JSON."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ShapeError(RetryableScrapeError):
    """The configured data path did not resolve in a response (strict mode only)."""

    pass
