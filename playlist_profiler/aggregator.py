"""Playlist aggregation: genre and artist distributions, diversity, audio means.

Public API
----------
diversity(counts)                                   → float in [0, 1]
track_genres(track, artist_genres)                  → [genre]
count_genres(tracks, artist_genres)                 → GenreAnalysis
count_artists(tracks)                               → ArtistAnalysis
average_audio_features(tracks, audio_features)      → AudioAverages
aggregate(tracks, artist_genres, audio_features)    → ProfileAggregate

Everything here is pure: accumulators live inside each call and the same
inputs always give the same output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Tuple

import numpy as np
import pandas as pd

from playlist_profiler.models import (
    AUDIO_FEATURE_COLS,
    UNKNOWN_GENRE,
    ArtistAnalysis,
    ArtistCount,
    AudioAverages,
    AudioFeatures,
    GenreAnalysis,
    GenreCount,
    Track,
)

TOP_GENRES = 10
TOP_ARTISTS = 10


@dataclass(frozen=True)
class ProfileAggregate:
    genre_analysis: GenreAnalysis
    artist_analysis: ArtistAnalysis
    audio_averages: AudioAverages


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def diversity(counts: Iterable[float]) -> float:
    """Shannon entropy of ``counts`` normalised by ``ln(n)``.

    1.0 for a uniform distribution, 0.0 when a single category holds
    everything (or there are fewer than two categories / no data).
    """
    values = np.asarray(list(counts), dtype=float)
    n = values.size
    if n <= 1:
        return 0.0
    total = values.sum()
    if total <= 0:
        return 0.0

    p = values[values > 0] / total
    shannon = float(-(p * np.log(p)).sum())
    normalised = shannon / float(np.log(n))
    # rounding absorbs float noise so a uniform split is exactly 1.0
    return float(np.clip(round(normalised, 10), 0.0, 1.0))


def _rank(counts: Dict[str, int], limit: int) -> List[Tuple[str, int]]:
    """Sort by count desc; ``sorted`` is stable so ties keep first-seen order."""
    return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:limit]


def _dedupe_tracks(tracks: Iterable[Track]) -> List[Track]:
    seen: set[str] = set()
    unique: List[Track] = []
    for t in tracks:
        if t.spotify_id in seen:
            continue
        seen.add(t.spotify_id)
        unique.append(t)
    return unique


def track_genres(track: Track, artist_genres: Mapping[str, Iterable[str]]) -> List[str]:
    """Distinct genres of a track's artists, in first-seen order."""
    return list(
        dict.fromkeys(
            genre
            for artist_id in track.artist_ids
            for genre in artist_genres.get(artist_id, ())
            if genre
        )
    )


# ═══════════════════════════════════════════════════════════════════════════
# Genres
# ═══════════════════════════════════════════════════════════════════════════

def count_genres(
    tracks: Iterable[Track],
    artist_genres: Mapping[str, Iterable[str]],
    top_n: int = TOP_GENRES,
) -> GenreAnalysis:
    """Each track adds 1 to every *distinct* genre among its artists."""
    genre_counts: Dict[str, int] = {}
    total_occurrences = 0

    for track in _dedupe_tracks(tracks):
        for genre in track_genres(track, artist_genres):
            genre_counts[genre] = genre_counts.get(genre, 0) + 1
            total_occurrences += 1

    top = tuple(
        GenreCount(genre=genre, count=count, percentage=count / total_occurrences * 100)
        for genre, count in _rank(genre_counts, top_n)
    )
    return GenreAnalysis(
        top_genres=top,
        genre_diversity=diversity(genre_counts.values()),
        dominant_genre=top[0].genre if top else UNKNOWN_GENRE,
        distinct_genres=len(genre_counts),
    )


# ═══════════════════════════════════════════════════════════════════════════
# Artists
# ═══════════════════════════════════════════════════════════════════════════

def count_artists(tracks: Iterable[Track], top_n: int = TOP_ARTISTS) -> ArtistAnalysis:
    """Tracks credited to each artist (an artist counts once per track)."""
    artist_counts: Dict[str, int] = {}
    names: Dict[str, str] = {}

    for track in _dedupe_tracks(tracks):
        credited = dict.fromkeys(
            (artist_id or name, name)
            for artist_id, name in zip(track.artist_ids, track.artist_names)
            if artist_id or name
        )
        for key, name in credited:
            names.setdefault(key, name)
            artist_counts[key] = artist_counts.get(key, 0) + 1

    return ArtistAnalysis(
        unique_artists=len(artist_counts),
        top_artists=tuple(
            ArtistCount(name=names[key], track_count=count)
            for key, count in _rank(artist_counts, top_n)
        ),
        artist_diversity=diversity(artist_counts.values()),
    )


# ═══════════════════════════════════════════════════════════════════════════
# Audio features
# ═══════════════════════════════════════════════════════════════════════════

def _audio_features_df(
    tracks: Iterable[Track],
    audio_features: Mapping[str, AudioFeatures],
) -> pd.DataFrame:
    """DataFrame indexed by spotify_id, one row per track that has features."""
    rows = []
    for t in _dedupe_tracks(tracks):
        af = audio_features.get(t.spotify_id)
        if af is None:
            continue
        row = {"spotify_id": t.spotify_id}
        for c in AUDIO_FEATURE_COLS:
            row[c] = float(getattr(af, c))
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=["spotify_id", *AUDIO_FEATURE_COLS]).set_index("spotify_id")
    return pd.DataFrame(rows).set_index("spotify_id")


def average_audio_features(
    tracks: Iterable[Track],
    audio_features: Mapping[str, AudioFeatures],
) -> AudioAverages:
    """Mean of each feature over tracks with a feature record; zeros if none."""
    df = _audio_features_df(tracks, audio_features)
    if df.empty:
        return AudioAverages()

    means = df[AUDIO_FEATURE_COLS].mean()
    return AudioAverages(
        energy=float(means["energy"]),
        danceability=float(means["danceability"]),
        valence=float(means["valence"]),
        tempo=float(means["tempo"]),
        acousticness=float(means["acousticness"]),
        instrumentalness=float(means["instrumentalness"]),
        sample_count=int(len(df)),
    )


# ═══════════════════════════════════════════════════════════════════════════
# Core aggregation
# ═══════════════════════════════════════════════════════════════════════════

def aggregate(
    tracks: Iterable[Track],
    artist_genres: Mapping[str, Iterable[str]],
    audio_features: Mapping[str, AudioFeatures],
) -> ProfileAggregate:
    unique = _dedupe_tracks(tracks)
    return ProfileAggregate(
        genre_analysis=count_genres(unique, artist_genres),
        artist_analysis=count_artists(unique),
        audio_averages=average_audio_features(unique, audio_features),
    )
