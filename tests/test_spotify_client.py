"""Tests for retrying GETs and offset pagination."""

from __future__ import annotations

import asyncio

import pytest

from playlist_profiler.errors import ExhaustedRetries, Unauthorized, UpstreamUnavailable
from playlist_profiler.spotify_client import SpotifyClient

from conftest import FakeResponse, paged

PATH = "playlists/p1/tracks"


def _items(n: int) -> list[dict]:
    return [{"n": i} for i in range(n)]


def test_429_waits_retry_after_and_retries_same_offset(make_client, clock):
    items = _items(150)
    state = {"limited": False}

    def handler(path, params):
        if not state["limited"]:
            state["limited"] = True
            return FakeResponse(429, headers={"Retry-After": "2"})
        return paged(items, params)

    client, session = make_client(handler)
    result = asyncio.run(client.fetch_all_pages(PATH, page_size=100, max_items=2000))

    assert len(result.items) == 150
    assert not result.truncated
    assert [p["offset"] for p in session.calls_to(PATH)] == [0, 0, 100]
    assert clock.sleeps and clock.sleeps[0] >= 2.0


def test_stops_on_short_page(make_client):
    items = _items(230)
    client, session = make_client(lambda path, params: paged(items, params))
    result = asyncio.run(client.fetch_all_pages(PATH, page_size=100, max_items=2000))

    assert len(result.items) == 230
    assert len(session.calls) == 3


def test_stops_on_empty_page(make_client):
    items = _items(200)
    client, session = make_client(lambda path, params: paged(items, params))
    result = asyncio.run(client.fetch_all_pages(PATH, page_size=100, max_items=2000))

    assert len(result.items) == 200
    assert [p["offset"] for p in session.calls_to(PATH)] == [0, 100, 200]


def test_request_count_never_exceeds_page_cap(make_client):
    # upstream that always returns a full page, whatever the offset
    def handler(path, params):
        return FakeResponse(200, {"items": _items(int(params["limit"]))})

    client, session = make_client(handler)
    result = asyncio.run(client.fetch_all_pages(PATH, page_size=100, max_items=250))

    assert len(result.items) == 250
    assert len(session.calls) <= 250 // 100 + 1


def test_exhausted_retries_without_items_raises(make_client):
    client, session = make_client(lambda path, params: FakeResponse(429), max_attempts=3)

    with pytest.raises(ExhaustedRetries):
        asyncio.run(client.fetch_all_pages(PATH, page_size=100, max_items=2000))
    assert len(session.calls) == 3


def test_exhausted_retries_after_some_pages_returns_partial(make_client):
    items = _items(300)

    def handler(path, params):
        if params["offset"] >= 100:
            return FakeResponse(429, headers={"Retry-After": "1"})
        return paged(items, params)

    client, _ = make_client(handler, max_attempts=2)
    result = asyncio.run(client.fetch_all_pages(PATH, page_size=100, max_items=2000))

    assert len(result.items) == 100
    assert result.truncated


def test_central_5xx_raises_after_backoff(make_client, clock):
    client, session = make_client(lambda path, params: FakeResponse(503), max_attempts=3)

    with pytest.raises(UpstreamUnavailable):
        asyncio.run(client.fetch_all_pages(PATH, page_size=100, max_items=2000))
    assert len(session.calls) == 3
    assert clock.sleeps == [1.0, 2.0]


def test_auxiliary_5xx_skips_the_page(make_client):
    items = _items(300)

    def handler(path, params):
        if params["offset"] == 100:
            return FakeResponse(502)
        return paged(items, params)

    client, _ = make_client(handler, max_attempts=2)
    result = asyncio.run(
        client.fetch_all_pages("me/playlists", page_size=100, max_items=300, central=False)
    )

    assert [i["n"] for i in result.items][:1] == [0]
    assert len(result.items) == 200
    assert result.truncated


def test_unauthorized_is_not_retried(make_client):
    client, session = make_client(lambda path, params: FakeResponse(401, {"error": "expired"}))

    with pytest.raises(Unauthorized):
        asyncio.run(client.get_json("me/top/tracks"))
    assert len(session.calls) == 1


def test_deadline_truncates_pagination(make_client, clock):
    def handler(path, params):
        clock.now += 10
        return FakeResponse(200, {"items": _items(int(params["limit"]))})

    client, session = make_client(handler, deadline=15.0)
    result = asyncio.run(client.fetch_all_pages(PATH, page_size=100, max_items=2000))

    assert result.truncated
    assert len(session.calls) == 2
    assert len(result.items) == 200


def test_nested_items_key(make_client):
    client, _ = make_client(
        lambda path, params: FakeResponse(200, {"tracks": {"items": _items(3)}})
    )
    result = asyncio.run(
        client.fetch_all_pages("search", page_size=10, max_items=10, items_key="tracks.items")
    )
    assert len(result.items) == 3


def test_client_without_session_refuses_requests():
    client = SpotifyClient("token")
    with pytest.raises(RuntimeError):
        asyncio.run(client.get_json("me"))
