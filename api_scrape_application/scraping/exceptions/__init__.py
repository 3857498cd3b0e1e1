from .base import NonRetryableScrapeError, RetryableScrapeError, ScrapeError
from .configuration import ConfigurationError
from .store import StoreError
from .transport import ShapeError, TransportError

__all__ = [
    "ScrapeError",
    "RetryableScrapeError",
    "NonRetryableScrapeError",
    "ConfigurationError",
    "ShapeError",
    "StoreError",
    "TransportError",
]
