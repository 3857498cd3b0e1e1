from __future__ import annotations

import os
from typing import Any, Callable, Dict, List

import httpx
import pytest


def _disable_external_env() -> None:
    os.environ.setdefault("POSTHOG_DISABLED", "true")
    os.environ.setdefault("SCRAPE_RATE_LIMIT_MS", "0")


_disable_external_env()

from api_scrape_application.scraping.site_handlers import registry as registry_mod  # noqa: E402
from api_scrape_application.services import store_client  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_cached_services():
    registry_mod._set_site_registry_for_tests(None)
    store_client._set_app_store_for_tests(None)
    yield
    registry_mod._set_site_registry_for_tests(None)
    store_client._set_app_store_for_tests(None)


class RecordingTransport:
    """Wraps a handler in ``httpx.MockTransport`` and keeps every request."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: List[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def _page_payload(count: int, *, start: int = 0, path: str = "data.list") -> Dict[str, Any]:
    items = [{"name": f"Engineer {start + i}", "id": start + i} for i in range(count)]
    payload: Any = items
    for key in reversed(path.split(".")):
        payload = {key: payload}
    return payload


@pytest.fixture
def page_payload() -> Callable[..., Dict[str, Any]]:
    return _page_payload


@pytest.fixture
def recording_transport() -> Callable[[Callable[[httpx.Request], httpx.Response]], RecordingTransport]:
    return RecordingTransport
