from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlsplit

from ..config import runtime_config
from ..constants import DEFAULT_PERSIST_SAMPLE_CHARS, JOBS_TABLE, SCRAPING_TASKS_TABLE
from ..services.store import RecordStore, StoreConnection
from .exceptions import StoreError
from .helpers.provider import mask_secret
from .helpers.text import preview
from .models.job import PersistOutcome
from .site_handlers import SiteRegistry, get_site_registry

logger = logging.getLogger("scrape.persist")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_valid_url(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


def normalize_for_storage(
    job: Mapping[str, Any],
    source_website: str,
    *,
    registry: SiteRegistry | None = None,
    now: datetime | None = None,
) -> Dict[str, Any]:
    """Shape a mapped job into a ``jobs`` table row.

    ``source_website`` is always the caller's site tag. A missing
    ``original_url`` is synthesized from the site's detail URL template when
    one is known, otherwise it stays null.
    """

    stamp = (now or _now()).isoformat()
    external_id = job.get("external_job_id")
    original_url = job.get("original_url") or None
    if not original_url and external_id not in (None, ""):
        profile = (registry or get_site_registry()).get(source_website)
        if profile is not None:
            original_url = profile.detail_url(external_id)

    return {
        "title": job.get("title"),
        "department": job.get("department"),
        "job_type": job.get("job_type"),
        "experience_level": job.get("experience_level"),
        "location": job.get("location"),
        "salary_min": job.get("salary_min"),
        "salary_max": job.get("salary_max"),
        "salary_currency": job.get("salary_currency"),
        "description": job.get("description"),
        "requirements": job.get("requirements"),
        "benefits": job.get("benefits"),
        "skills": job.get("skills"),
        "original_url": original_url,
        "source_website": source_website,
        "external_job_id": None if external_id in (None, "") else str(external_id),
        "scraped_at": job.get("scraped_at") or stamp,
        "created_at": stamp,
        "updated_at": stamp,
    }


def validate_job(row: Mapping[str, Any]) -> List[str]:
    errors: List[str] = []
    title = row.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append("Job title is required")
    if not _is_valid_url(row.get("original_url")):
        errors.append("Valid original URL is required")
    source = row.get("source_website")
    if not isinstance(source, str) or not source.strip():
        errors.append("Source website is required")
    salary_min, salary_max = row.get("salary_min"), row.get("salary_max")
    if salary_min and salary_max and salary_min > salary_max:
        errors.append("Minimum salary cannot be greater than maximum salary")
    return errors


def dedupe_jobs(jobs: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Drop repeats by title, company and location, keeping the first."""

    seen: set[str] = set()
    unique: List[Dict[str, Any]] = []
    for job in jobs:
        key = f"{job.get('title')}-{job.get('company_name')}-{job.get('location')}".lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(dict(job))
    return unique


async def persist(
    jobs: Iterable[Mapping[str, Any]],
    source_website: str,
    store: RecordStore,
    *,
    log: Optional[Callable[[str], None]] = None,
    registry: SiteRegistry | None = None,
    dedupe: Optional[bool] = None,
    now: datetime | None = None,
) -> PersistOutcome:
    """Insert jobs one at a time; a failed row is logged and counted, never retried."""

    def _log(line: str) -> None:
        logger.info(line)
        if log is not None:
            log(line)

    pending = [dict(job) for job in jobs]
    if runtime_config.dedupe_jobs if dedupe is None else dedupe:
        before = len(pending)
        pending = dedupe_jobs(pending)
        if len(pending) != before:
            logger.info("Dropped %s duplicate jobs before insert", before - len(pending))

    outcome = PersistOutcome(total=len(pending))
    _log(f"[parsed] count={len(pending)}")
    if not pending:
        logger.warning("No jobs parsed. Check dataPath/mapping and response structure.")

    for index, job in enumerate(pending):
        row = normalize_for_storage(job, source_website, registry=registry, now=now)
        problems = validate_job(row)
        if problems:
            logger.info("Job %r has validation problems: %s", row.get("title"), "; ".join(problems))
        if index == 0:
            _log(f"[sample] {preview(row, DEFAULT_PERSIST_SAMPLE_CHARS)}")
        try:
            saved = await store.insert(JOBS_TABLE, row)
        except StoreError as exc:
            outcome.failed_count += 1
            logger.error("Insert failed for job %r: %s", row.get("title"), exc.message)
            _log(f"[insert] error {exc.message or 'unknown'}")
            continue
        outcome.saved.append(saved)
        _log(f"[insert] ok id={saved.get('id')}")

    return outcome


async def record_task(
    app_store: RecordStore,
    *,
    user_id: str,
    target_url: str,
    source_website: str,
    connection: StoreConnection | None,
    outcome: PersistOutcome,
    error: str | None = None,
    now: datetime | None = None,
) -> Optional[Dict[str, Any]]:
    """Write the task-tracking row. Failures are logged, not raised."""

    stamp = (now or _now()).isoformat()
    row: Dict[str, Any] = {
        "user_id": user_id,
        "target_url": target_url,
        "source_website": source_website,
        "supabase_url": connection.url if connection else None,
        "supabase_key": mask_secret(connection.key) if connection else None,
        "status": "failed" if error else "completed",
        "progress": 100,
        **outcome.task_counts(),
        "jobs_updated": 0,
        "completed_at": stamp,
        "created_at": stamp,
        "updated_at": stamp,
    }
    if error:
        row["error_message"] = error
    try:
        return await app_store.insert(SCRAPING_TASKS_TABLE, row)
    except StoreError as exc:
        logger.warning("Recording scraping task failed user=%s url=%s: %s", user_id, target_url, exc.message)
        return None
