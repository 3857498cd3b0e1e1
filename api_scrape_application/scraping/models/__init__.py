"""Pydantic models and typed records shared by the scraper and persistence layers."""

from .job import NormalizedJob, PersistOutcome, ScrapeResult
from .template import FieldMapping, HttpMethod, RequestTemplate, load_template_file

__all__ = [
    "FieldMapping",
    "HttpMethod",
    "NormalizedJob",
    "PersistOutcome",
    "RequestTemplate",
    "ScrapeResult",
    "load_template_file",
]
