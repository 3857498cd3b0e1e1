from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

from ..constants import (
    DEFAULT_LOG_BUFFER_SIZE,
    DEFAULT_LOG_PREVIEW_CHARS,
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_SAMPLE_PREVIEW_CHARS,
    DEFAULT_SSE_HEARTBEAT_SECONDS,
)
from .paths import resolve_config_path

logger = logging.getLogger("scrape.config")


@dataclass
class RuntimeConfig:
    default_max_pages: int = DEFAULT_MAX_PAGES
    default_page_size: int = DEFAULT_PAGE_SIZE
    log_buffer_size: int = DEFAULT_LOG_BUFFER_SIZE
    log_preview_chars: int = DEFAULT_LOG_PREVIEW_CHARS
    sample_preview_chars: int = DEFAULT_SAMPLE_PREVIEW_CHARS
    probe_timeout_seconds: int = DEFAULT_PROBE_TIMEOUT_SECONDS
    sse_heartbeat_seconds: int = DEFAULT_SSE_HEARTBEAT_SECONDS
    # When true, a data path that does not resolve at all is a shape error
    # instead of a quiet end-of-data.
    strict_data_path: bool = False
    dedupe_jobs: bool = False


def _load_runtime_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        logger.warning("Ignoring unreadable runtime config %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def _coerce_int(config: Dict[str, Any], key: str, default: int) -> int:
    value = config.get(key)
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    return default


def _coerce_bool(config: Dict[str, Any], key: str, default: bool) -> bool:
    value = config.get(key)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return default


def load_runtime_config(path: Path | None = None) -> RuntimeConfig:
    raw = _load_runtime_yaml(path or resolve_config_path("runtime.yaml"))
    defaults = RuntimeConfig()
    return RuntimeConfig(
        default_max_pages=_coerce_int(raw, "default_max_pages", defaults.default_max_pages),
        default_page_size=_coerce_int(raw, "default_page_size", defaults.default_page_size),
        log_buffer_size=_coerce_int(raw, "log_buffer_size", defaults.log_buffer_size),
        log_preview_chars=_coerce_int(raw, "log_preview_chars", defaults.log_preview_chars),
        sample_preview_chars=_coerce_int(raw, "sample_preview_chars", defaults.sample_preview_chars),
        probe_timeout_seconds=_coerce_int(raw, "probe_timeout_seconds", defaults.probe_timeout_seconds),
        sse_heartbeat_seconds=_coerce_int(raw, "sse_heartbeat_seconds", defaults.sse_heartbeat_seconds),
        strict_data_path=_coerce_bool(raw, "strict_data_path", defaults.strict_data_path),
        dedupe_jobs=_coerce_bool(raw, "dedupe_jobs", defaults.dedupe_jobs),
    )


runtime_config = load_runtime_config()
