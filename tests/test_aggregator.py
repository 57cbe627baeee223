"""Tests for genre/artist distributions, diversity and audio means."""

from __future__ import annotations

import pytest

from playlist_profiler.aggregator import (
    aggregate,
    average_audio_features,
    count_artists,
    count_genres,
    diversity,
    track_genres,
)
from playlist_profiler.models import AudioFeatures, Track


def _track(tid: str, *artists: str) -> Track:
    return Track(
        spotify_id=tid,
        name=tid,
        artist_ids=list(artists),
        artist_names=[a.upper() for a in artists],
    )


def _features(tid: str, energy: float, tempo: float = 120.0) -> AudioFeatures:
    return AudioFeatures(
        spotify_id=tid,
        energy=energy,
        danceability=0.5,
        valence=0.5,
        tempo=tempo,
        acousticness=0.1,
        instrumentalness=0.0,
    )


# ── diversity ─────────────────────────────────────────────────────────────
def test_diversity_uniform_is_one():
    assert diversity([3, 3, 3, 3]) == 1.0
    assert diversity([1, 1]) == 1.0


def test_diversity_degenerate_cases_are_zero():
    assert diversity([]) == 0.0
    assert diversity([7]) == 0.0
    assert diversity([0, 0, 0]) == 0.0


def test_diversity_single_nonzero_category_is_zero():
    assert diversity([5, 0, 0]) == 0.0


@pytest.mark.parametrize("counts", [[1, 2, 3], [10, 1], [5, 5, 1, 1, 1], [100, 1, 1, 1]])
def test_diversity_is_bounded(counts):
    value = diversity(counts)
    assert 0.0 <= value <= 1.0


def test_diversity_grows_as_distribution_evens_out():
    assert diversity([9, 1]) < diversity([7, 3]) < diversity([5, 5])


# ── genres ────────────────────────────────────────────────────────────────
def test_rock_pop_tie_keeps_first_seen_order():
    tracks = [_track("t1", "a1"), _track("t2", "a2")]
    ga = count_genres(tracks, {"a1": ["rock"], "a2": ["pop"]})

    assert [(g.genre, g.count) for g in ga.top_genres] == [("rock", 1), ("pop", 1)]
    assert ga.genre_diversity == 1.0
    assert ga.dominant_genre == "rock"


def test_each_track_counts_a_genre_once():
    tracks = [_track("t1", "a1", "a2")]
    ga = count_genres(tracks, {"a1": ["rock", "indie"], "a2": ["rock"]})

    assert {g.genre: g.count for g in ga.top_genres} == {"rock": 1, "indie": 1}


def test_genre_percentages_sum_to_100():
    tracks = [_track(f"t{i}", f"a{i % 4}") for i in range(11)]
    genres = {"a0": ["rock", "pop"], "a1": ["jazz"], "a2": ["pop"], "a3": ["house", "techno"]}
    ga = count_genres(tracks, genres)

    assert sum(g.percentage for g in ga.top_genres) == pytest.approx(100.0)
    assert ga.distinct_genres == 5


def test_no_genres_gives_unknown_dominant():
    ga = count_genres([_track("t1", "a1")], {})
    assert ga.top_genres == ()
    assert ga.dominant_genre == "unknown"
    assert ga.genre_diversity == 0.0


def test_top_genres_limited():
    tracks = [_track(f"t{i}", f"a{i}") for i in range(15)]
    genres = {f"a{i}": [f"g{i}"] for i in range(15)}
    ga = count_genres(tracks, genres, top_n=10)

    assert len(ga.top_genres) == 10
    assert ga.distinct_genres == 15


# ── artists ───────────────────────────────────────────────────────────────
def test_count_artists():
    tracks = [
        _track("t1", "a1", "a2"),
        _track("t2", "a1"),
        _track("t3", "a3"),
        _track("t1", "a1", "a2"),  # duplicate track id
    ]
    aa = count_artists(tracks)

    assert aa.unique_artists == 3
    assert [(a.name, a.track_count) for a in aa.top_artists] == [("A1", 2), ("A2", 1), ("A3", 1)]
    assert 0.0 < aa.artist_diversity < 1.0


# ── audio ─────────────────────────────────────────────────────────────────
def test_audio_means_only_over_tracks_with_features():
    tracks = [_track("t1", "a1"), _track("t2", "a1"), _track("t3", "a1")]
    features = {"t1": _features("t1", 0.8, 100.0), "t3": _features("t3", 0.4, 140.0)}
    avg = average_audio_features(tracks, features)

    assert avg.energy == pytest.approx(0.6)
    assert avg.tempo == pytest.approx(120.0)
    assert avg.sample_count == 2


def test_audio_means_default_to_zero():
    avg = average_audio_features([_track("t1", "a1")], {})
    assert avg.energy == 0.0 and avg.tempo == 0.0
    assert not avg.has_samples


# ── aggregate ─────────────────────────────────────────────────────────────
def test_aggregate_is_idempotent():
    tracks = [_track(f"t{i}", f"a{i % 3}") for i in range(9)]
    genres = {"a0": ["rock"], "a1": ["pop", "dance pop"], "a2": []}
    features = {f"t{i}": _features(f"t{i}", i / 10) for i in range(0, 9, 2)}

    assert aggregate(tracks, genres, features) == aggregate(tracks, genres, features)


def test_track_genres_is_a_first_seen_union():
    genres = {"a1": ["rock", "indie"], "a2": ["indie", "", "folk"]}
    assert track_genres(_track("t1", "a1", "a2", "missing"), genres) == ["rock", "indie", "folk"]
    assert track_genres(_track("t2"), genres) == []
