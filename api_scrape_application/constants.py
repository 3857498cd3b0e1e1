from __future__ import annotations

from typing import Tuple

DEFAULT_PAGE_SIZE = 20
DEFAULT_RATE_LIMIT_MS = 1000
DEFAULT_MAX_PAGES = 10
DEFAULT_SOURCE_WEBSITE = "custom"

DEFAULT_LOG_BUFFER_SIZE = 500
DEFAULT_LOG_PREVIEW_CHARS = 500
DEFAULT_SAMPLE_PREVIEW_CHARS = 200
DEFAULT_PERSIST_SAMPLE_CHARS = 400

DEFAULT_HTTP_TIMEOUT_SECONDS = 30
DEFAULT_PROBE_TIMEOUT_SECONDS = 15
PROBE_TEXT_PREVIEW_CHARS = 2000

DEFAULT_SSE_HEARTBEAT_SECONDS = 20
DEFAULT_SEARCH_LIMIT = 100

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

JOBS_TABLE = "jobs"
SCRAPING_TASKS_TABLE = "scraping_tasks"
USER_CONFIGS_TABLE = "user_scraping_configs"

# Body keys that carry the 1-based page number.
PAGE_NUMBER_KEYS: Tuple[str, ...] = ("page", "pageIndex")
OFFSET_KEY = "offset"
LIMIT_KEY = "limit"
PAGE_SIZE_KEY = "pageSize"

# Query parameters refreshed with the current epoch-millisecond value on every request.
FRESHNESS_PARAMS: Tuple[str, ...] = ("timestamp", "ts")

# Search field groups, widest first. Remote stores may lack some columns.
SEARCH_FIELD_GROUPS: Tuple[Tuple[str, ...], ...] = (
    (
        "title",
        "department",
        "location",
        "experience_level",
        "job_type",
        "description",
        "requirements",
        "source_website",
        "benefits",
    ),
    ("title", "description", "requirements", "source_website"),
    ("title", "description", "source_website"),
    ("title",),
)

STRING_FIELDS: Tuple[str, ...] = (
    "title",
    "company",
    "location",
    "department",
    "description",
    "requirements",
    "experience_level",
    "job_type",
    "original_url",
)
NUMERIC_FIELDS: Tuple[str, ...] = ("salary_min", "salary_max")
