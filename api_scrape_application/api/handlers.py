from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx

from ..config import runtime_config
from ..scraping.exceptions import ConfigurationError, StoreError
from ..scraping.models.job import PersistOutcome
from ..scraping.persistence import persist, record_task
from ..scraping.probe import probe_request
from ..scraping.search import job_stats, search_jobs
from ..scraping.site_handlers import SiteRegistry, get_site_registry
from ..scraping.template_builder import enrich_template
from ..scraping.universal_scraper import UniversalScraper
from ..services.log_hub import LogHub, user_logger
from ..services.store import RecordStore, StoreConnection
from ..services.store_client import connect_store, get_app_store, resolve_user_connection

logger = logging.getLogger("scrape.api")

ConnectionResolver = Callable[[str], Awaitable[Optional[StoreConnection]]]
StoreFactory = Callable[[StoreConnection], RecordStore]
ClientFactory = Callable[[], httpx.AsyncClient]

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@dataclass
class ApiResponse:
    status_code: int
    payload: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    stream: Optional[AsyncIterator[str]] = None


@dataclass(frozen=True)
class CurrentUser:
    """Identity handed over by the auth layer; ``id`` is never interpreted."""

    id: str
    approved: bool = True


def _error(status_code: int, message: str) -> ApiResponse:
    return ApiResponse(status_code=status_code, payload={"error": message})


def _auth_error(user: Optional[CurrentUser], *, require_approval: bool = True) -> Optional[ApiResponse]:
    if user is None or not user.id:
        return _error(401, "Unauthorized")
    if require_approval and not user.approved:
        return _error(403, "Account is pending approval")
    return None


def _coerce_int(value: Any, default: int) -> Optional[int]:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _sse_frame(line: str) -> str:
    parts = line.splitlines() or [""]
    return "".join(f"data: {part}\n" for part in parts) + "\n"


class ScrapeApi:
    """Request handlers for scraping, job listing, progress logs and probing.

    Handlers take an already-authenticated ``CurrentUser`` (or None) plus the
    decoded request payload and return an ``ApiResponse``. Every pre-flight
    problem is answered before any third-party request is made.
    """

    def __init__(
        self,
        log_hub: LogHub,
        *,
        connection_resolver: Optional[ConnectionResolver] = None,
        store_factory: StoreFactory = connect_store,
        app_store_factory: Callable[[], RecordStore] = get_app_store,
        registry: SiteRegistry | None = None,
        client_factory: Optional[ClientFactory] = None,
        rate_limit_ms: Optional[int] = None,
    ) -> None:
        self.log_hub = log_hub
        self._resolve_connection = connection_resolver or self._default_connection
        self._store_factory = store_factory
        self._app_store_factory = app_store_factory
        self._registry = registry
        self._client_factory = client_factory
        self._rate_limit_ms = rate_limit_ms

    async def _default_connection(self, user_id: str) -> Optional[StoreConnection]:
        return await resolve_user_connection(user_id, self._app_store_factory())

    @property
    def registry(self) -> SiteRegistry:
        return self._registry or get_site_registry()

    async def _user_store(self, user: CurrentUser) -> tuple[Optional[StoreConnection], RecordStore]:
        connection = await self._resolve_connection(user.id)
        if connection is None or not connection.is_complete():
            raise ConfigurationError("No record store connection configured; run a connection test first")
        return connection, self._store_factory(connection)

    async def _record_task(self, **kwargs: Any) -> None:
        try:
            app_store = self._app_store_factory()
        except ConfigurationError as exc:
            logger.warning("Skipping scraping task record: %s", exc.message)
            return
        await record_task(app_store, **kwargs)

    async def scrape(
        self,
        user: Optional[CurrentUser],
        payload: Any,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ApiResponse:
        if not isinstance(payload, dict):
            return _error(400, "Request body must be a JSON object")
        target_url = payload.get("targetUrl")
        website_type = payload.get("websiteType")
        if not target_url or not website_type:
            return _error(400, "Missing required parameters: targetUrl and websiteType")
        denied = _auth_error(user)
        if denied:
            return denied
        max_pages = _coerce_int(payload.get("maxPages"), runtime_config.default_max_pages)
        if max_pages is None or max_pages < 1:
            return _error(400, "maxPages must be a positive integer")

        try:
            connection, store = await self._user_store(user)
            template = enrich_template(
                payload.get("apiConfig") or payload.get("requestTemplate"),
                website_type,
                target_url,
                registry=self.registry,
            )
        except ConfigurationError as exc:
            return _error(exc.status_code, exc.message)

        log = user_logger(self.log_hub, user.id)
        log(f"[start] universal {website_type} {target_url}")
        client = self._client_factory() if self._client_factory else None
        try:
            scraper = UniversalScraper(template, client=client, log=log, rate_limit_ms=self._rate_limit_ms)
            result = await scraper.run(target_url, max_pages, cancel_event=cancel_event)

            if not result.success:
                await self._record_task(
                    user_id=user.id,
                    target_url=target_url,
                    source_website=website_type,
                    connection=connection,
                    outcome=PersistOutcome(),
                    error=result.error,
                )
                return ApiResponse(
                    status_code=502,
                    payload={
                        "success": False,
                        "message": f"Scrape failed: {result.error}",
                        "error": result.error,
                        "data": {"totalJobs": 0, "savedJobs": 0, "failedJobs": 0, "jobs": []},
                    },
                )

            outcome = await persist(result.jobs, website_type, store, log=log, registry=self.registry)
            await self._record_task(
                user_id=user.id,
                target_url=target_url,
                source_website=website_type,
                connection=connection,
                outcome=outcome,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Scrape failed user=%s url=%s", user.id, target_url)
            return _error(500, f"Scrape failed: {exc}")
        finally:
            if client is not None:
                await client.aclose()

        return ApiResponse(
            status_code=200,
            payload={
                "success": True,
                "message": f"Scraped {outcome.saved_count} jobs",
                "data": {
                    "totalJobs": outcome.total,
                    "savedJobs": outcome.saved_count,
                    "failedJobs": outcome.failed_count,
                    "pagesScraped": result.pages_scraped,
                    "cancelled": result.cancelled,
                    "jobs": outcome.saved,
                },
            },
        )

    async def list_jobs(self, user: Optional[CurrentUser], query: Optional[str] = None) -> ApiResponse:
        denied = _auth_error(user, require_approval=False)
        if denied:
            return denied
        try:
            _, store = await self._user_store(user)
        except ConfigurationError as exc:
            return _error(exc.status_code, exc.message)

        try:
            jobs = await search_jobs(store, (query or "").strip() or None, aliases=self.registry.aliases())
        except StoreError as exc:
            return _error(500, exc.message)

        try:
            stats = await job_stats(store)
        except StoreError as exc:
            logger.warning("Job statistics unavailable: %s", exc.message)
            stats = {"total_count": 0, "distinct_source_count": 0}

        return ApiResponse(
            status_code=200,
            payload={
                "jobs": jobs,
                "totalCount": stats["total_count"],
                "distinctSourceCount": stats["distinct_source_count"],
            },
        )

    def scrape_log_poll(self, user: Optional[CurrentUser], since: Any = 0) -> ApiResponse:
        denied = _auth_error(user, require_approval=False)
        if denied:
            return denied
        since_ts = _coerce_int(since, 0) or 0
        logs = [entry.to_dict() for entry in self.log_hub.since(user.id, since_ts)]
        return ApiResponse(status_code=200, payload={"logs": logs, "now": self.log_hub.now()})

    async def scrape_log_stream(
        self, user_id: str, *, heartbeat_seconds: Optional[float] = None
    ) -> AsyncIterator[str]:
        """Server-sent event frames for one user's progress lines.

        Starts with a ``connected`` line, then one frame per appended line and
        a ``: ping`` comment whenever the heartbeat interval passes quietly.
        Closing the generator unsubscribes from the hub.
        """

        interval = heartbeat_seconds if heartbeat_seconds is not None else runtime_config.sse_heartbeat_seconds
        queue: asyncio.Queue[str] = asyncio.Queue()
        loop = asyncio.get_running_loop()

        def _listener(line: str) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, line)

        unsubscribe = self.log_hub.subscribe(user_id, _listener)
        try:
            yield _sse_frame(f"[log] connected at {datetime.now(timezone.utc).isoformat()}")
            while True:
                try:
                    line = await asyncio.wait_for(queue.get(), timeout=interval)
                except asyncio.TimeoutError:
                    yield ": ping\n\n"
                    continue
                yield _sse_frame(line)
        finally:
            unsubscribe()

    def scrape_log(
        self,
        user: Optional[CurrentUser],
        *,
        mode: str = "sse",
        since: Any = 0,
        heartbeat_seconds: Optional[float] = None,
    ) -> ApiResponse:
        if (mode or "sse") == "poll":
            return self.scrape_log_poll(user, since)
        denied = _auth_error(user, require_approval=False)
        if denied:
            return denied
        return ApiResponse(
            status_code=200,
            headers=dict(SSE_HEADERS),
            stream=self.scrape_log_stream(user.id, heartbeat_seconds=heartbeat_seconds),
        )

    async def probe(self, user: Optional[CurrentUser], payload: Any) -> ApiResponse:
        denied = _auth_error(user)
        if denied:
            return denied
        if not isinstance(payload, dict):
            return _error(400, "Request body must be a JSON object")
        client = self._client_factory() if self._client_factory else None
        try:
            result = await probe_request(
                payload.get("url"),
                payload.get("method") or "GET",
                payload.get("headers") or {},
                payload.get("body"),
                client=client,
            )
        except ConfigurationError as exc:
            return _error(exc.status_code, exc.message)
        except httpx.HTTPError as exc:
            return ApiResponse(status_code=500, payload={"ok": False, "error": str(exc) or exc.__class__.__name__})
        finally:
            if client is not None:
                await client.aclose()

        return ApiResponse(
            status_code=200,
            payload={
                "ok": result["ok"],
                "status": result["status"],
                "statusText": result["status_text"],
                "headers": {"content-type": result["content_type"]},
                "preview": result["preview"],
            },
        )
