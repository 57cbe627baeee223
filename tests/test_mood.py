"""Tests for mood and energy classification."""

from __future__ import annotations

import pytest

from playlist_profiler.models import ENERGY_LEVELS, MOODS, AudioAverages
from playlist_profiler.mood import (
    classify_mood,
    classify_mood_from_genre,
    energy_level,
    resolve_mood,
)


@pytest.mark.parametrize(
    "energy, valence, tempo, expected",
    [
        (0.8, 0.5, 130, "energetic"),
        (0.8, 0.9, 130, "energetic"),  # energy rule wins over valence
        (0.7, 0.5, 130, "mixed"),  # thresholds are strict
        (0.8, 0.5, 120, "mixed"),
        (0.5, 0.8, 100, "happy"),
        (0.5, 0.7, 100, "mixed"),
        (0.3, 0.5, 90, "chill"),
        (0.4, 0.5, 90, "mixed"),
        (0.3, 0.5, 100, "mixed"),
        (0.5, 0.2, 110, "melancholic"),
        (0.3, 0.2, 90, "chill"),  # chill checked before melancholic
        (0.5, 0.3, 110, "mixed"),
    ],
)
def test_classify_mood_boundaries(energy, valence, tempo, expected):
    assert classify_mood(energy, valence, tempo) == expected


@pytest.mark.parametrize(
    "genre, expected",
    [
        ("alternative rock", "energetic"),
        ("dance pop", "energetic"),  # "dance" is checked before "pop"
        ("k-pop", "happy"),
        ("Smooth Jazz", "chill"),
        ("indie folk", "melancholic"),
        ("unknown", "mixed"),
        ("", "mixed"),
    ],
)
def test_genre_fallback(genre, expected):
    assert classify_mood_from_genre(genre) == expected


def test_resolve_mood_uses_audio_when_available():
    avg = AudioAverages(energy=0.9, valence=0.5, tempo=140.0, sample_count=3)
    analysis = resolve_mood(avg, "jazz")
    assert analysis.mood == "energetic"
    assert analysis.mood_source == "audio"


def test_resolve_mood_falls_back_to_genre_without_samples():
    analysis = resolve_mood(AudioAverages(), "ambient")
    assert analysis.mood == "chill"
    assert analysis.mood_source == "genre"
    assert analysis.averages.energy == 0.0
    assert analysis.mood in MOODS


@pytest.mark.parametrize(
    "avg, genre, expected",
    [
        (AudioAverages(energy=0.3, sample_count=1), "metal", "low"),
        (AudioAverages(energy=0.75, sample_count=1), "jazz", "high"),
        (AudioAverages(energy=0.7, sample_count=1), "rock", "medium"),
        (AudioAverages(energy=0.4, sample_count=1), "rock", "medium"),
        (AudioAverages(), "heavy metal", "high"),
        (AudioAverages(), "chillhop", "low"),
        (AudioAverages(), "pop", "medium"),
    ],
)
def test_energy_level(avg, genre, expected):
    level = energy_level(avg, genre)
    assert level == expected
    assert level in ENERGY_LEVELS
