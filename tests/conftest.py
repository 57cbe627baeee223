"""Shared fakes: an aiohttp-like session, a manual clock, raw Spotify payloads."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Callable, Optional

import pytest

from playlist_profiler.models import (
    ArtistAnalysis,
    AudioAnalysis,
    AudioAverages,
    GenreAnalysis,
    GenreCount,
    MusicalProfile,
    Recommendations,
    RecommendedSong,
)
from playlist_profiler.rate_limiter import BackoffPolicy, RateLimiter
from playlist_profiler.spotify_client import SpotifyClient


# ── HTTP fakes ────────────────────────────────────────────────────────────
class FakeResponse:
    def __init__(self, status: int = 200, payload=None, headers: Optional[dict] = None):
        self.status = status
        self._payload = payload if payload is not None else {}
        self.headers = headers or {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def json(self):
        return self._payload

    async def text(self):
        return json.dumps(self._payload)


Handler = Callable[[str, dict], FakeResponse]


class FakeSession:
    """Routes ``get`` calls to ``handler(path, params)`` and records them."""

    def __init__(self, handler: Handler):
        self.handler = handler
        self.calls: list[tuple[str, dict]] = []

    def get(self, url, params=None, headers=None, timeout=None):
        path = url.split("/v1/", 1)[-1]
        params = dict(params or {})
        self.calls.append((path, params))
        return self.handler(path, params)

    def calls_to(self, path: str) -> list[dict]:
        return [params for p, params in self.calls if p == path]

    async def close(self):
        pass


# ── Time fake ─────────────────────────────────────────────────────────────
class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ── Raw Spotify payload builders ──────────────────────────────────────────
def raw_track(track_id: str, artists=(("a1", "Artist One"),), popularity: int = 50, **extra) -> dict:
    data = {
        "id": track_id,
        "name": f"Track {track_id}",
        "popularity": popularity,
        "duration_ms": 200_000,
        "is_local": False,
        "artists": [{"id": aid, "name": name} for aid, name in artists],
        "album": {"name": "Album"},
    }
    data.update(extra)
    return data


def raw_artist(artist_id: str, genres=(), name: Optional[str] = None) -> dict:
    return {"id": artist_id, "name": name or artist_id, "genres": list(genres), "popularity": 40}


def raw_features(track_id: str, energy=0.5, valence=0.5, tempo=110.0, **extra) -> dict:
    data = {
        "id": track_id,
        "energy": energy,
        "danceability": 0.5,
        "valence": valence,
        "tempo": tempo,
        "acousticness": 0.2,
        "instrumentalness": 0.0,
    }
    data.update(extra)
    return data


def paged(items: list, params: dict) -> FakeResponse:
    """Serve the slice of ``items`` selected by ``offset``/``limit``."""
    offset = int(params.get("offset", 0))
    limit = int(params.get("limit", 100))
    return FakeResponse(200, {"items": items[offset : offset + limit], "total": len(items)})


def by_ids(table: dict, key: str, params: dict) -> FakeResponse:
    """Batch endpoint: look up each comma-separated id in ``table``."""
    ids = params["ids"].split(",")
    return FakeResponse(200, {key: [table.get(i) for i in ids]})


# ── Ready-made profile ─────────────────────────────────────────────────────
def sample_profile(playlist_id: str = "p1") -> MusicalProfile:
    return MusicalProfile(
        playlist_id=playlist_id,
        playlist_name="Mix",
        total_tracks=2,
        genre_analysis=GenreAnalysis(
            top_genres=(GenreCount("rock", 1, 50.0), GenreCount("pop", 1, 50.0)),
            genre_diversity=1.0,
            dominant_genre="rock",
            distinct_genres=2,
        ),
        audio_analysis=AudioAnalysis(averages=AudioAverages(), mood="energetic", mood_source="genre"),
        artist_analysis=ArtistAnalysis(unique_artists=2, top_artists=(), artist_diversity=1.0),
        recommendations=Recommendations(
            recommended_songs=(
                RecommendedSong("Everlong", "Foo Fighters", "rock", "r", 1997),
                RecommendedSong("Untitled", "Someone", "rock", "r"),
            ),
            energy_level="high",
        ),
        analyzed_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


# ── Fixtures ──────────────────────────────────────────────────────────────
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_client(clock):
    """Build a :class:`SpotifyClient` over a :class:`FakeSession` and the fake clock."""

    def _make(handler: Handler, *, max_attempts: int = 3, deadline: float = 300.0, min_interval: float = 0.0):
        session = FakeSession(handler)
        limiter = RateLimiter(min_interval=min_interval, clock=clock, sleep=clock.sleep)
        backoff = BackoffPolicy(base=1.0, cap=8.0, jitter=0.0, max_attempts=max_attempts)
        client = SpotifyClient(
            "test-token",
            session=session,
            limiter=limiter,
            backoff=backoff,
            deadline=deadline,
        )
        return client, session

    return _make
