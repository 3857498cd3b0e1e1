from __future__ import annotations

import pytest

from api_scrape_application.services import telemetry


def test_events_are_dropped_when_posthog_is_disabled(monkeypatch):
    sent = []
    monkeypatch.setattr(telemetry.settings, "posthog_project_api_key", "phc_test")
    monkeypatch.setattr(telemetry.settings, "posthog_disabled", True)
    monkeypatch.setattr(telemetry, "emit_posthog_log", sent.append)

    telemetry.emit_scrape_event("scrape.completed", jobs=3)

    assert sent == []


def test_events_are_forwarded_when_enabled(monkeypatch):
    sent = []
    monkeypatch.setattr(telemetry.settings, "posthog_project_api_key", "phc_test")
    monkeypatch.setattr(telemetry.settings, "posthog_disabled", False)
    monkeypatch.setattr(telemetry, "emit_posthog_log", sent.append)

    telemetry.emit_scrape_event("scrape.failed", level="error", error="503")

    assert sent == [{"event": "scrape.failed", "level": "error", "error": "503"}]


def test_export_failures_are_not_raised(monkeypatch):
    def _boom(payload):
        raise RuntimeError("collector unreachable")

    monkeypatch.setattr(telemetry.settings, "posthog_project_api_key", "phc_test")
    monkeypatch.setattr(telemetry.settings, "posthog_disabled", False)
    monkeypatch.setattr(telemetry, "emit_posthog_log", _boom)

    telemetry.emit_scrape_event("scrape.completed")


@pytest.mark.parametrize(
    "endpoint, region, expected",
    [
        ("https://custom.example/logs/", None, "https://custom.example/logs"),
        (None, "EU", "https://eu.i.posthog.com/i/v1/logs"),
        (None, None, telemetry.DEFAULT_POSTHOG_ENDPOINT),
    ],
)
def test_endpoint_resolution(monkeypatch, endpoint, region, expected):
    monkeypatch.setattr(telemetry.settings, "posthog_logs_endpoint", endpoint)
    monkeypatch.setattr(telemetry.settings, "posthog_region", region)

    assert telemetry._resolve_endpoint() == expected


def test_missing_api_key_is_reported(monkeypatch):
    monkeypatch.setattr(telemetry, "_logger", None)
    monkeypatch.setattr(telemetry.settings, "posthog_project_api_key", None)

    with pytest.raises(RuntimeError):
        telemetry._ensure_logger()
