from __future__ import annotations

import copy
import logging
import time
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, urlsplit

from .exceptions import ConfigurationError
from .helpers.regex_patterns import TIMESTAMP_PLACEHOLDER
from .models.template import HttpMethod, RequestTemplate
from .site_handlers import SiteProfile, SiteRegistry, get_site_profile

logger = logging.getLogger("scrape.templates")

# Reserved URL characters plus "%" so already-encoded URLs are left untouched.
_URL_SAFE_CHARS = ":/?#[]@!$&'()*+,;=%"


def _origin(url: str | None) -> Optional[str]:
    if not url:
        return None
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def _has_header(headers: Mapping[str, Any], name: str) -> bool:
    lowered = name.lower()
    return any(str(key).lower() == lowered and value for key, value in headers.items())


def with_origin_headers(headers: Mapping[str, Any] | None, page_url: str | None) -> Dict[str, Any]:
    """Add ``Origin``/``Referer`` derived from ``page_url`` unless already set."""

    merged: Dict[str, Any] = dict(headers or {})
    origin = _origin(page_url)
    if origin is None:
        return merged
    if not _has_header(merged, "Origin"):
        merged["Origin"] = origin
    if not _has_header(merged, "Referer"):
        # Header values must be ASCII; non-ASCII query text is percent-encoded.
        merged["Referer"] = quote(page_url, safe=_URL_SAFE_CHARS)
    return merged


def _endpoint_for(profile: SiteProfile, now_ms: Optional[int]) -> Optional[str]:
    if not profile.endpoint:
        return None
    stamp = str(now_ms if now_ms is not None else int(time.time() * 1000))
    return profile.endpoint.replace(TIMESTAMP_PLACEHOLDER, stamp)


def propose_template(
    site_id: str | None,
    base_url: str,
    *,
    registry: SiteRegistry | None = None,
    now_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """Propose a request template document for ``site_id``.

    Known sites get the catalog endpoint, method, headers, body, data path and
    mapping. Unknown sites only get method and header defaults; the URL, data
    path and mapping are left for the user to fill in.
    """

    profile = get_site_profile(base_url, site_id, registry)
    if profile is None:
        logger.info("No catalog entry for site=%s url=%s; proposing headers only", site_id, base_url)
        return {"method": HttpMethod.GET.value, "headers": with_origin_headers({}, base_url)}

    document: Dict[str, Any] = {
        "method": profile.method.value,
        "headers": with_origin_headers(profile.headers, base_url),
        "sourceWebsite": profile.site_id,
    }
    endpoint = _endpoint_for(profile, now_ms)
    if endpoint:
        document["url"] = endpoint
    if profile.body is not None:
        document["body"] = copy.deepcopy(profile.body)
    if profile.data_path:
        document["dataPath"] = profile.data_path
    if profile.mapping:
        document["mapping"] = dict(profile.mapping)
    return document


def enrich_template(
    partial: Mapping[str, Any] | RequestTemplate | None,
    site_id: str | None,
    target_url: str,
    *,
    registry: SiteRegistry | None = None,
    now_ms: Optional[int] = None,
) -> RequestTemplate:
    """Complete a user-supplied template before a run.

    Fills the method, ``Origin``/``Referer`` headers and, for catalog sites,
    the endpoint, data path and mapping. Raises ``ConfigurationError`` when
    the URL, data path or mapping is still missing afterwards.
    """

    if isinstance(partial, RequestTemplate):
        document: Dict[str, Any] = partial.to_document()
    elif partial:
        document = copy.deepcopy(dict(partial))
    else:
        document = propose_template(site_id, target_url, registry=registry, now_ms=now_ms)

    profile = get_site_profile(target_url, site_id, registry)

    if not document.get("method"):
        document["method"] = profile.method.value if profile else HttpMethod.GET.value
    document["headers"] = with_origin_headers(document.get("headers"), target_url)

    if profile is not None:
        if not document.get("url"):
            endpoint = _endpoint_for(profile, now_ms)
            if endpoint:
                document["url"] = endpoint
        if not (document.get("dataPath") or document.get("data_path")) and profile.data_path:
            document["dataPath"] = profile.data_path
        if not document.get("mapping") and profile.mapping:
            document["mapping"] = dict(profile.mapping)
        if document.get("body") is None and profile.body is not None and document["method"].upper() == "POST":
            document["body"] = copy.deepcopy(profile.body)

    if site_id and not (document.get("sourceWebsite") or document.get("source_website")):
        document["sourceWebsite"] = profile.site_id if profile else site_id

    missing = [
        name
        for name, present in (
            ("url", bool(document.get("url"))),
            ("dataPath", bool(document.get("dataPath") or document.get("data_path"))),
            ("mapping", bool(document.get("mapping"))),
        )
        if not present
    ]
    if missing:
        raise ConfigurationError(f"Request template is missing {', '.join(missing)} for site {site_id or 'unknown'}")

    return RequestTemplate.from_document(document)
