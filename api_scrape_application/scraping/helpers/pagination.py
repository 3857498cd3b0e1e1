from __future__ import annotations

import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ...constants import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_USER_AGENT,
    FRESHNESS_PARAMS,
    LIMIT_KEY,
    OFFSET_KEY,
    PAGE_NUMBER_KEYS,
    PAGE_SIZE_KEY,
)
from .regex_patterns import FRESHNESS_PARAM_RE, PAGE_PLACEHOLDER

if TYPE_CHECKING:
    from ..models.template import RequestTemplate

_LEADING_INT_RE = re.compile(r"^\s*[-+]?\d+")


class UrlStyle(str, Enum):
    PLACEHOLDER = "placeholder"  # url carries {page}
    QUERY_PARAM = "query_param"  # GET without placeholder: append page=<n>
    NONE = "none"  # POST without placeholder: the body carries paging


@dataclass(frozen=True)
class PaginationPlan:
    """Pagination style of a template, detected once when the template is built."""

    url_style: UrlStyle
    page_keys: Tuple[str, ...] = ()
    has_offset: bool = False
    offset_step: int = DEFAULT_PAGE_SIZE
    coerce_page_size: bool = False
    coerced_page_size: Optional[int] = None
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def rewrites_body(self) -> bool:
        return bool(self.page_keys) or self.has_offset or self.coerce_page_size


@dataclass(frozen=True)
class ConcreteRequest:
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[Any] = None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        if match:
            return int(match.group(0))
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def detect_pagination(
    url: str,
    method: str,
    body: Any,
    *,
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> PaginationPlan:
    if PAGE_PLACEHOLDER in url:
        url_style = UrlStyle.PLACEHOLDER
    elif method.upper() == "GET":
        url_style = UrlStyle.QUERY_PARAM
    else:
        url_style = UrlStyle.NONE

    if not isinstance(body, dict):
        return PaginationPlan(url_style=url_style, page_size=default_page_size)

    page_keys = tuple(key for key in PAGE_NUMBER_KEYS if key in body)
    has_offset = OFFSET_KEY in body
    has_limit = LIMIT_KEY in body
    has_page_size = PAGE_SIZE_KEY in body

    coerce_page_size = has_page_size and not _is_number(body[PAGE_SIZE_KEY])
    if has_page_size:
        page_size_value = body[PAGE_SIZE_KEY]
        if coerce_page_size:
            page_size_value = _as_int(page_size_value) or default_page_size
        coerced_page_size: Optional[int] = int(page_size_value)
    else:
        coerced_page_size = None

    # A limit key wins over pageSize; both missing or zero fall back to the default.
    if has_offset and has_limit:
        offset_step = _as_int(body[LIMIT_KEY]) or 0
    else:
        offset_step = coerced_page_size or default_page_size

    if coerced_page_size is not None:
        expected = coerced_page_size
    elif has_limit and _is_number(body[LIMIT_KEY]):
        expected = int(body[LIMIT_KEY])
    else:
        expected = default_page_size
    if expected <= 0:
        expected = default_page_size

    return PaginationPlan(
        url_style=url_style,
        page_keys=page_keys,
        has_offset=has_offset,
        offset_step=offset_step,
        coerce_page_size=coerce_page_size,
        coerced_page_size=coerced_page_size,
        page_size=expected,
    )


def _apply_url_style(url: str, plan: PaginationPlan, page: int) -> str:
    if plan.url_style is UrlStyle.PLACEHOLDER:
        return url.replace(PAGE_PLACEHOLDER, str(page))
    if plan.url_style is UrlStyle.QUERY_PARAM:
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}page={page}"
    return url


def refresh_freshness_params(url: str, now_ms: int) -> str:
    """Overwrite ``timestamp``/``ts`` query parameters with ``now_ms``.

    Absolute URLs are rewritten through their parsed query; anything that does
    not parse as absolute falls back to replacing the first ``timestamp=<digits>``
    or ``ts=<digits>`` occurrence.
    """

    stamp = str(now_ms)
    try:
        parts = urlsplit(url)
    except ValueError:
        parts = None
    if parts is None or not parts.scheme or not parts.netloc:
        return FRESHNESS_PARAM_RE.sub(lambda m: f"{m.group(1)}={stamp}", url, count=1)

    params = parse_qsl(parts.query, keep_blank_values=True)
    if not any(key in FRESHNESS_PARAMS for key, _ in params):
        return url
    refreshed = [(key, stamp if key in FRESHNESS_PARAMS else value) for key, value in params]
    return urlunsplit(parts._replace(query=urlencode(refreshed)))


def _rewrite_body(body: Dict[str, Any], plan: PaginationPlan, page: int) -> Dict[str, Any]:
    rewritten = dict(body)
    for key in plan.page_keys:
        rewritten[key] = page
    if plan.coerce_page_size:
        rewritten[PAGE_SIZE_KEY] = plan.coerced_page_size
    if plan.has_offset:
        rewritten[OFFSET_KEY] = (page - 1) * plan.offset_step
    return rewritten


def default_headers(user_agent: str = DEFAULT_USER_AGENT) -> Dict[str, str]:
    return {"Content-Type": "application/json", "User-Agent": user_agent}


def merge_headers(base: Dict[str, str], overrides: Dict[str, str]) -> Dict[str, str]:
    lowered = {name.lower() for name in overrides}
    merged = {name: value for name, value in base.items() if name.lower() not in lowered}
    merged.update(overrides)
    return merged


def build_request(
    template: "RequestTemplate",
    page: int,
    *,
    now_ms: Optional[int] = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> ConcreteRequest:
    if page < 1:
        raise ValueError("page numbers start at 1")
    plan = template.pagination
    url = _apply_url_style(template.url, plan, page)
    url = refresh_freshness_params(url, now_ms if now_ms is not None else int(time.time() * 1000))

    body = template.body
    if isinstance(body, dict):
        body = _rewrite_body(body, plan, page)

    method = template.method.value
    return ConcreteRequest(
        method=method,
        url=url,
        headers=merge_headers(default_headers(user_agent), dict(template.headers)),
        body=body if method == "POST" and body not in (None, "") else None,
    )


def expected_page_size(template: "RequestTemplate") -> int:
    return template.pagination.page_size
