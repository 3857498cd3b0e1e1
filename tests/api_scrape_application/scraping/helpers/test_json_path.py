from __future__ import annotations

import pytest

from api_scrape_application.scraping.helpers.json_path import MISSING, has_value, is_missing, resolve


def test_resolve_descends_nested_objects():
    payload = {"data": {"positionList": [{"postId": "1"}]}}

    assert resolve(payload, "data.positionList") == [{"postId": "1"}]
    assert resolve(payload, "data") == {"positionList": [{"postId": "1"}]}


@pytest.mark.parametrize(
    "value, path",
    [
        ({"a": {"b": 1}}, "a.c"),
        ({"a": None}, "a.b"),
        ({"a": [1, 2]}, "a.0"),
        ({"a": "text"}, "a.b"),
        (None, "a"),
        ([{"a": 1}], "a"),
        (42, "a.b.c"),
        ({"a": 1}, ""),
        ({"a": 1}, None),
    ],
)
def test_resolve_is_total_and_returns_missing(value, path):
    assert resolve(value, path) is MISSING


def test_null_is_distinct_from_missing():
    payload = {"salary": None}

    assert resolve(payload, "salary") is None
    assert not is_missing(resolve(payload, "salary"))
    assert is_missing(resolve(payload, "bonus"))
    assert not has_value(resolve(payload, "salary"))
    assert not has_value(resolve(payload, "bonus"))


def test_arrays_are_valid_only_as_terminal_target():
    payload = {"data": {"list": [{"id": 1}]}}

    assert resolve(payload, "data.list") == [{"id": 1}]
    assert resolve(payload, "data.list.id") is MISSING


def test_missing_sentinel_is_falsy_singleton():
    assert not MISSING
    assert repr(MISSING) == "MISSING"
    assert type(MISSING)() is MISSING
