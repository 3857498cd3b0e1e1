from __future__ import annotations

import asyncio
import itertools

import httpx
import pytest

from api_scrape_application.api import ApiResponse, CurrentUser, ScrapeApi
from api_scrape_application.scraping.exceptions import StoreError
from api_scrape_application.services.log_hub import LogHub
from api_scrape_application.services.store import StoreConnection
from api_scrape_application.testing import MemoryRecordStore

USER = CurrentUser(id="user-1")
CONNECTION = StoreConnection(url="https://db.test", key="user-service-key")
API_CONFIG = {
    "url": "https://x.test/api?page={page}",
    "dataPath": "data.list",
    "mapping": {"title": "name", "external_job_id": "id"},
}


class Harness:
    def __init__(self, transport, *, connection=CONNECTION, jobs_store=None, resolve_from_app_store=False):
        self.hub = LogHub(clock=itertools.count(1).__next__)
        self.jobs_store = jobs_store or MemoryRecordStore()
        self.app_store = MemoryRecordStore()
        self.transport = transport
        self.resolved: list[str] = []
        self.connected: list[StoreConnection] = []

        async def _resolve(user_id):
            self.resolved.append(user_id)
            return connection

        self.api = ScrapeApi(
            self.hub,
            connection_resolver=None if resolve_from_app_store else _resolve,
            store_factory=self._connect,
            app_store_factory=lambda: self.app_store,
            client_factory=transport.client if transport else None,
            rate_limit_ms=0,
        )

    def _connect(self, connection):
        self.connected.append(connection)
        return self.jobs_store


@pytest.fixture
def harness(recording_transport, page_payload):
    def _build(handler=None, **kwargs) -> Harness:
        handler = handler or (lambda request: httpx.Response(200, json=page_payload(3)))
        return Harness(recording_transport(handler), **kwargs)

    return _build


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "user, payload, status",
    [
        (USER, None, 400),
        (USER, {"websiteType": "custom"}, 400),
        (None, {}, 400),
        (None, {"targetUrl": "https://x.test/jobs", "websiteType": "custom"}, 401),
        (CurrentUser(id="u2", approved=False), {"targetUrl": "https://x.test/jobs", "websiteType": "custom"}, 403),
        (USER, {"targetUrl": "https://x.test/jobs", "websiteType": "custom", "maxPages": 0}, 400),
        (USER, {"targetUrl": "https://x.test/jobs", "websiteType": "custom", "maxPages": "many"}, 400),
        (USER, {"targetUrl": "https://x.test/jobs", "websiteType": "acme", "apiConfig": {}}, 400),
    ],
)
async def test_scrape_preflight_failures_make_no_requests(harness, user, payload, status):
    h = harness()

    response = await h.api.scrape(user, payload)

    assert response.status_code == status
    assert "error" in response.payload
    assert h.transport.requests == []
    assert h.app_store.rows("scraping_tasks") == []


@pytest.mark.asyncio
async def test_scrape_without_store_connection_is_rejected(harness):
    h = harness(connection=None)

    response = await h.api.scrape(USER, {"targetUrl": "https://x.test/jobs", "websiteType": "custom", "apiConfig": API_CONFIG})

    assert response.status_code == 400
    assert h.resolved == ["user-1"]
    assert h.transport.requests == []


@pytest.mark.asyncio
async def test_scrape_success_persists_and_records_task(harness):
    h = harness()

    response = await h.api.scrape(
        USER,
        {"targetUrl": "https://x.test/jobs", "websiteType": "custom", "apiConfig": API_CONFIG, "maxPages": "2"},
    )

    assert response.status_code == 200
    assert response.payload["success"] is True
    assert response.payload["message"] == "Scraped 3 jobs"
    data = response.payload["data"]
    assert (data["totalJobs"], data["savedJobs"], data["failedJobs"], data["pagesScraped"]) == (3, 3, 0, 1)
    assert [job["title"] for job in data["jobs"]] == ["Engineer 0", "Engineer 1", "Engineer 2"]
    assert all(row["source_website"] == "custom" for row in h.jobs_store.rows("jobs"))

    task = h.app_store.rows("scraping_tasks")[0]
    assert task["status"] == "completed"
    assert task["supabase_url"] == "https://db.test"
    assert task["supabase_key"] == "user...ey"
    assert task["jobs_scraped"] == 3

    lines = [entry.line for entry in h.hub.since("user-1")]
    assert lines[0] == "[start] universal custom https://x.test/jobs"
    assert "[parsed] count=3" in lines


@pytest.mark.asyncio
async def test_scrape_reports_partial_insert_failures(harness):
    h = harness()
    h.jobs_store.fail_inserts(lambda table, row: "duplicate key" if row["external_job_id"] == "1" else None)

    response = await h.api.scrape(USER, {"targetUrl": "https://x.test/jobs", "websiteType": "custom", "apiConfig": API_CONFIG})

    assert response.status_code == 200
    assert response.payload["data"]["savedJobs"] == 2
    assert response.payload["data"]["failedJobs"] == 1


@pytest.mark.asyncio
async def test_first_page_failure_is_a_bad_gateway(harness):
    h = harness(lambda request: httpx.Response(503, text="down"))

    response = await h.api.scrape(USER, {"targetUrl": "https://x.test/jobs", "websiteType": "custom", "apiConfig": API_CONFIG})

    assert response.status_code == 502
    assert response.payload["success"] is False
    assert "503" in response.payload["error"]
    assert h.jobs_store.rows("jobs") == []
    task = h.app_store.rows("scraping_tasks")[0]
    assert task["status"] == "failed"
    assert "503" in task["error_message"]


@pytest.mark.asyncio
async def test_task_record_failure_does_not_fail_the_scrape(harness):
    h = harness()
    h.app_store.fail_table("scraping_tasks")

    response = await h.api.scrape(USER, {"targetUrl": "https://x.test/jobs", "websiteType": "custom", "apiConfig": API_CONFIG})

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_unexpected_errors_become_500(harness):
    class ExplodingStore(MemoryRecordStore):
        async def insert(self, table, row):
            raise RuntimeError("driver crashed")

    h = harness(jobs_store=ExplodingStore())

    response = await h.api.scrape(USER, {"targetUrl": "https://x.test/jobs", "websiteType": "custom", "apiConfig": API_CONFIG})

    assert response.status_code == 500
    assert "driver crashed" in response.payload["error"]


def _jobs_store(**kwargs) -> MemoryRecordStore:
    rows = [
        {"id": 1, "title": "Backend", "source_website": "tencent", "created_at": "2026-01-01"},
        {"id": 2, "title": "Frontend", "source_website": "bytedance", "created_at": "2026-01-02"},
    ]
    return MemoryRecordStore(rows={"jobs": rows}, **kwargs)


@pytest.mark.asyncio
async def test_list_jobs_with_alias_query_and_stats(harness):
    h = harness(jobs_store=_jobs_store())

    response = await h.api.list_jobs(CurrentUser(id="user-1", approved=False), " 腾讯 ")

    assert response.status_code == 200
    assert [job["id"] for job in response.payload["jobs"]] == [1]
    assert response.payload["totalCount"] == 2
    assert response.payload["distinctSourceCount"] == 2


@pytest.mark.asyncio
async def test_list_jobs_requires_authentication(harness):
    assert (await harness().api.list_jobs(None)).status_code == 401


@pytest.mark.asyncio
async def test_list_jobs_store_failure_is_500(harness):
    store = _jobs_store()
    store.fail_table("jobs")
    h = harness(jobs_store=store)

    response = await h.api.list_jobs(USER, "go")

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_list_jobs_stats_failure_reports_zero(harness):
    class NoCountStore(MemoryRecordStore):
        async def count(self, table, *, filters=()):
            raise StoreError("count unavailable")

    h = harness(jobs_store=NoCountStore(rows={"jobs": [{"id": 1, "title": "A"}]}))

    response = await h.api.list_jobs(USER)

    assert response.status_code == 200
    assert len(response.payload["jobs"]) == 1
    assert response.payload["totalCount"] == 0


def test_poll_returns_entries_after_since(harness):
    h = harness()
    h.hub.append("user-1", "a")
    h.hub.append("user-1", "b")
    h.hub.append("other", "c")

    response = h.api.scrape_log(USER, mode="poll", since="1")

    assert response.status_code == 200
    assert response.payload["logs"] == [{"ts": 2, "line": "b"}]
    assert response.payload["now"] == 4
    assert h.api.scrape_log_poll(None).status_code == 401


@pytest.mark.asyncio
async def test_sse_stream_frames_and_heartbeat(harness):
    h = harness()
    response = h.api.scrape_log(USER, heartbeat_seconds=0.05)

    assert response.headers["Content-Type"] == "text/event-stream"
    assert response.headers["Cache-Control"] == "no-cache"
    stream = response.stream
    first = await stream.__anext__()
    assert first.startswith("data: [log] connected at ")
    assert first.endswith("\n\n")

    h.hub.append("user-1", "[request] page=1\nsecond line")
    assert await stream.__anext__() == "data: [request] page=1\ndata: second line\n\n"
    assert await asyncio.wait_for(stream.__anext__(), timeout=2) == ": ping\n\n"
    assert h.hub.subscriber_count("user-1") == 1

    await stream.aclose()

    assert h.hub.subscriber_count("user-1") == 0


def test_sse_requires_authentication(harness):
    response = harness().api.scrape_log(None)

    assert isinstance(response, ApiResponse)
    assert response.status_code == 401
    assert response.stream is None


@pytest.mark.asyncio
async def test_probe_reports_status_and_preview(harness):
    h = harness(lambda request: httpx.Response(200, json={"data": {"list": []}}))

    response = await h.api.probe(USER, {"url": "https://x.test/api", "method": "POST", "body": {"page": 1}})

    assert response.status_code == 200
    assert response.payload["ok"] is True
    assert response.payload["statusText"] == "OK"
    assert response.payload["headers"]["content-type"].startswith("application/json")
    assert response.payload["preview"] == {"data": {"list": []}}
    assert h.transport.requests[0].method == "POST"


@pytest.mark.asyncio
async def test_probe_rejects_non_http_urls_without_a_request(harness):
    h = harness()

    response = await h.api.probe(USER, {"url": "file:///etc/passwd"})

    assert response.status_code == 400
    assert h.transport.requests == []


@pytest.mark.asyncio
async def test_probe_transport_failure_is_500(harness):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    h = harness(handler)

    response = await h.api.probe(USER, {"url": "https://x.test/api"})

    assert response.status_code == 500
    assert response.payload["ok"] is False
    assert "refused" in response.payload["error"]


@pytest.mark.asyncio
async def test_probe_requires_an_approved_user(harness):
    h = harness()

    assert (await h.api.probe(None, {"url": "https://x.test"})).status_code == 401
    assert (await h.api.probe(CurrentUser(id="u", approved=False), {"url": "https://x.test"})).status_code == 403


def _user_config(user_id, url, key, *, is_default=True):
    return {"user_id": user_id, "supabase_url": url, "supabase_key": key, "is_default": is_default}


@pytest.mark.asyncio
async def test_scrape_writes_to_the_users_default_store(harness):
    h = harness(resolve_from_app_store=True)
    h.app_store.tables["user_scraping_configs"] = [
        _user_config("user-1", "https://old.db", "old-key", is_default=False),
        _user_config("someone-else", "https://other.db", "other-key"),
        _user_config("user-1", "https://mine.db", "my-service-key"),
    ]

    response = await h.api.scrape(USER, {"targetUrl": "https://x.test/jobs", "websiteType": "custom", "apiConfig": API_CONFIG})

    assert response.status_code == 200
    assert h.connected == [StoreConnection(url="https://mine.db", key="my-service-key")]
    assert h.app_store.rows("scraping_tasks")[0]["supabase_url"] == "https://mine.db"


@pytest.mark.asyncio
async def test_user_without_default_store_config_is_rejected(harness):
    h = harness(resolve_from_app_store=True)
    h.app_store.tables["user_scraping_configs"] = [_user_config("someone-else", "https://other.db", "other-key")]

    scrape = await h.api.scrape(USER, {"targetUrl": "https://x.test/jobs", "websiteType": "custom", "apiConfig": API_CONFIG})
    listing = await h.api.list_jobs(USER)

    assert scrape.status_code == 400
    assert listing.status_code == 400
    assert h.connected == []
    assert h.transport.requests == []
