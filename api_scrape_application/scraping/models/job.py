from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TypedDict

from pydantic import BaseModel, ConfigDict, Field


class NormalizedJob(TypedDict, total=False):
    title: str
    company_name: str
    location: str
    department: str
    job_type: str
    experience_level: str
    salary_min: float
    salary_max: float
    description: str
    requirements: str
    skills: List[str]
    original_url: str
    external_job_id: str
    source_website: str


class ScrapeResult(BaseModel):
    """Outcome of one engine run; immutable once returned."""

    success: bool
    jobs: List[Dict[str, Any]] = Field(default_factory=list)
    total_found: int = 0
    pages_scraped: int = 0
    error: Optional[str] = None
    cancelled: bool = False

    model_config = ConfigDict(frozen=True)


@dataclass
class PersistOutcome:
    saved: List[Dict[str, Any]] = field(default_factory=list)
    failed_count: int = 0
    total: int = 0

    @property
    def saved_count(self) -> int:
        return len(self.saved)

    def task_counts(self) -> Dict[str, int]:
        return {
            "total_jobs_found": self.total,
            "jobs_scraped": self.saved_count,
            "jobs_failed": self.failed_count,
        }
