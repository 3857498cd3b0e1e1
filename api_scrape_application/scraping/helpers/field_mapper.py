from __future__ import annotations

from typing import Any, Iterable, List

from ...constants import NUMERIC_FIELDS, STRING_FIELDS
from ..models.job import NormalizedJob
from ..models.template import FieldMapping
from .json_path import has_value, resolve
from .text import clean_text, parse_number, parse_skills

# Mapping keys whose normalized field name differs.
_TARGET_NAMES = {"company": "company_name"}


def _lookup(record: Any, mapping: FieldMapping, field_name: str) -> Any:
    path = mapping.path_for(field_name)
    if path is None:
        return None
    value = resolve(record, path)
    return value if has_value(value) else None


def _job_id(value: Any) -> str | None:
    if isinstance(value, str):
        return clean_text(value)
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    return None


def map_job(record: Any, mapping: FieldMapping) -> NormalizedJob:
    """Map one raw API record onto the normalized job shape.

    Unresolved paths and JSON nulls leave the field out. ``source_website`` is
    stamped later by the caller.
    """

    job: dict[str, Any] = {}
    for field_name in STRING_FIELDS:
        value = _lookup(record, mapping, field_name)
        if value is None:
            continue
        job[_TARGET_NAMES.get(field_name, field_name)] = (
            clean_text(value) if isinstance(value, str) else value
        )

    for field_name in NUMERIC_FIELDS:
        number = parse_number(_lookup(record, mapping, field_name))
        if number is not None:
            job[field_name] = number

    skills = parse_skills(_lookup(record, mapping, "skills"))
    if skills is not None:
        job["skills"] = skills

    external_id = _job_id(_lookup(record, mapping, "external_job_id"))
    if external_id is not None:
        job["external_job_id"] = external_id

    return job  # type: ignore[return-value]


def _non_empty(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def is_acceptable(job: NormalizedJob) -> bool:
    return _non_empty(job.get("title")) or _non_empty(job.get("external_job_id"))


def map_jobs(records: Iterable[Any], mapping: FieldMapping) -> List[NormalizedJob]:
    accepted: List[NormalizedJob] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        job = map_job(record, mapping)
        if is_acceptable(job):
            accepted.append(job)
    return accepted
