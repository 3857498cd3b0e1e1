from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..config import runtime_config, settings
from ..services.telemetry import emit_scrape_event
from .exceptions import ShapeError, TransportError
from .helpers.field_mapper import map_jobs
from .helpers.json_path import is_missing, resolve
from .helpers.pagination import ConcreteRequest, build_request, expected_page_size
from .helpers.provider import sanitize_headers
from .helpers.text import preview
from .models.job import ScrapeResult
from .models.template import RequestTemplate

logger = logging.getLogger("scrape.engine")

LogSink = Callable[[str], None]


class UniversalScraper:
    """Bounded, sequential fetch loop driven by a ``RequestTemplate``.

    Pages are fetched one at a time. A page whose record count falls short of
    the expected page size ends the run, as does ``max_pages``. Transport
    failures end the run early; only a failure on the very first page makes
    the result unsuccessful.
    """

    def __init__(
        self,
        template: RequestTemplate,
        *,
        client: Optional[httpx.AsyncClient] = None,
        log: Optional[LogSink] = None,
        rate_limit_ms: Optional[int] = None,
        strict_data_path: Optional[bool] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        self.template = template
        self._client = client
        self._log_sink = log
        if rate_limit_ms is None:
            rate_limit_ms = template.rate_limit_ms if template.rate_limit_ms is not None else settings.rate_limit_ms
        self.rate_limit_ms = max(0, rate_limit_ms)
        self.strict_data_path = (
            runtime_config.strict_data_path if strict_data_path is None else strict_data_path
        )
        self.user_agent = user_agent or settings.user_agent

    def _log(self, line: str) -> None:
        logger.info(line)
        if self._log_sink is None:
            return
        try:
            self._log_sink(line)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Progress sink failed: %s", exc)

    async def _fetch(self, http: httpx.AsyncClient, request: ConcreteRequest, page: int) -> Any:
        try:
            response = await http.request(
                request.method,
                request.url,
                headers=request.headers,
                json=request.body,
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"API request failed: {exc.__class__.__name__}: {exc}") from exc
        except (httpx.InvalidURL, UnicodeEncodeError, ValueError) as exc:
            # Raised while httpx builds the request (bad URL, non-ASCII header value).
            raise TransportError(f"API request could not be built: {exc.__class__.__name__}: {exc}") from exc

        if not response.is_success:
            raise TransportError(
                f"API request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(
                f"API response was not JSON (status {response.status_code})",
                status_code=response.status_code,
            ) from exc

        self._log(f"[response] page={page} {preview(payload, runtime_config.log_preview_chars)}")
        return payload

    def _extract(self, payload: Any, page: int) -> List[Any]:
        records = resolve(payload, self.template.data_path)
        if is_missing(records):
            if self.strict_data_path:
                raise ShapeError(f"Data path {self.template.data_path!r} not found in page {page} response")
            logger.warning("Path %s not found in page %s response", self.template.data_path, page)
            return []
        return records if isinstance(records, list) else []

    async def _pause(self, cancel_event: Optional[asyncio.Event]) -> bool:
        """Wait out the rate limit; True when cancelled during the wait."""

        delay = self.rate_limit_ms / 1000
        if cancel_event is None:
            if delay:
                await asyncio.sleep(delay)
            return False
        if delay <= 0:
            return cancel_event.is_set()
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def run(
        self,
        target_url: str,
        max_pages: Optional[int] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ScrapeResult:
        if max_pages is None:
            max_pages = runtime_config.default_max_pages
        page_size = expected_page_size(self.template)
        jobs: List[Dict[str, Any]] = []
        pages_scraped = 0
        error: Optional[str] = None
        cancelled = False

        owns_client = self._client is None
        http = self._client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        logger.debug(
            "Universal scrape target=%s url=%s max_pages=%s expected_page_size=%s",
            target_url,
            self.template.url,
            max_pages,
            page_size,
        )
        try:
            page = 1
            while page <= max_pages:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break

                request = build_request(self.template, page, user_agent=self.user_agent)
                self._log(
                    f"[request] page={page} method={request.method} url={request.url} "
                    f"body={preview(request.body, runtime_config.log_preview_chars)}"
                )
                logger.debug("Request headers page=%s %s", page, sanitize_headers(request.headers))

                try:
                    payload = await self._fetch(http, request, page)
                    records = self._extract(payload, page)
                except (TransportError, ShapeError) as exc:
                    logger.warning("Page %s failed: %s", page, exc.message)
                    self._log(f"[error] page={page} {exc.message}")
                    if page == 1:
                        error = exc.message
                    break

                if not records:
                    logger.info("No jobs found on page %s; stopping", page)
                    break

                mapped = map_jobs(records, self.template.mapping)
                for job in mapped:
                    job["source_website"] = self.template.source_website
                if mapped:
                    self._log(
                        f"[extracted] page={page} count={len(mapped)} "
                        f"sample={preview(mapped[0], runtime_config.sample_preview_chars)}"
                    )
                jobs.extend(mapped)
                pages_scraped = page

                if len(records) < page_size or page >= max_pages:
                    break
                if await self._pause(cancel_event):
                    cancelled = True
                    break
                page += 1
        finally:
            if owns_client:
                await http.aclose()

        success = error is None and not (cancelled and pages_scraped == 0)
        if cancelled and pages_scraped == 0:
            error = "cancelled"
        self._log(f"[done] pages={pages_scraped} jobs={len(jobs)}" + (" cancelled" if cancelled else ""))
        emit_scrape_event(
            "scrape.completed" if success else "scrape.error",
            level="info" if success else "warning",
            url=self.template.url,
            target_url=target_url,
            pages_scraped=pages_scraped,
            jobs=len(jobs),
            error=error,
        )
        return ScrapeResult(
            success=success,
            jobs=jobs,
            total_found=len(jobs),
            pages_scraped=pages_scraped,
            error=error,
            cancelled=cancelled,
        )
