from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import httpx

from ..config import runtime_config
from ..constants import PROBE_TEXT_PREVIEW_CHARS
from .exceptions import ConfigurationError

logger = logging.getLogger("scrape.probe")


def _encode_body(body: Any) -> Optional[str]:
    if body is None or body == "":
        return None
    if isinstance(body, str):
        return body
    return json.dumps(body, ensure_ascii=False)


async def probe_request(
    url: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    body: Any = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout_seconds: Optional[float] = None,
) -> Dict[str, Any]:
    """Send one request so a template can be checked before a full run.

    Returns ``ok``, ``status``, ``status_text``, ``content_type`` and a
    ``preview``: the parsed JSON when the response declares JSON, otherwise the
    first 2 KB of text. Only http/https URLs are accepted.
    """

    if not url or not isinstance(url, str):
        raise ConfigurationError("Probe requires a url")
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError as exc:
        raise ConfigurationError(f"Invalid probe url: {exc}") from exc
    if scheme not in {"http", "https"}:
        raise ConfigurationError("Only http and https urls can be probed")

    timeout = timeout_seconds if timeout_seconds is not None else runtime_config.probe_timeout_seconds
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout)
    try:
        response = await http.request(
            (method or "GET").upper(),
            url,
            headers=headers or {},
            content=_encode_body(body),
            timeout=timeout,
        )
    finally:
        if owns_client:
            await http.aclose()

    content_type = response.headers.get("content-type", "")
    preview: Any
    if "application/json" in content_type:
        try:
            preview = response.json()
        except ValueError:
            preview = None
    else:
        preview = response.text[:PROBE_TEXT_PREVIEW_CHARS]

    logger.info("Probe %s %s -> %s (%s)", method, url, response.status_code, content_type or "no content type")
    return {
        "ok": response.is_success,
        "status": response.status_code,
        "status_text": response.reason_phrase,
        "content_type": content_type,
        "preview": preview,
    }
