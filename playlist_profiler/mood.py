"""Rule-based mood and energy classification."""

from __future__ import annotations

from typing import Tuple

from playlist_profiler.models import AudioAnalysis, AudioAverages

# Checked in this order; the first keyword found in the genre label wins.
GENRE_MOOD_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("energetic", ("rock", "metal", "electronic", "dance")),
    ("happy", ("pop", "reggaeton", "salsa", "funk")),
    ("chill", ("ambient", "chill", "lofi", "jazz")),
    ("melancholic", ("blues", "sad", "emo", "indie")),
)

HIGH_ENERGY_GENRES = ("rock", "metal", "electronic")
LOW_ENERGY_GENRES = ("ambient", "chill", "jazz")


def classify_mood(energy: float, valence: float, tempo: float) -> str:
    if energy > 0.7 and tempo > 120:
        return "energetic"
    if valence > 0.7:
        return "happy"
    if energy < 0.4 and tempo < 100:
        return "chill"
    if valence < 0.3:
        return "melancholic"
    return "mixed"


def classify_mood_from_genre(dominant_genre: str) -> str:
    """Lossy substitute for :func:`classify_mood` when no audio features exist."""
    genre = (dominant_genre or "").lower()
    for mood, keywords in GENRE_MOOD_KEYWORDS:
        if any(k in genre for k in keywords):
            return mood
    return "mixed"


def resolve_mood(averages: AudioAverages, dominant_genre: str) -> AudioAnalysis:
    """Audio-based mood, or the genre fallback when there are zero samples."""
    if averages.has_samples:
        mood = classify_mood(averages.energy, averages.valence, averages.tempo)
        return AudioAnalysis(averages=averages, mood=mood, mood_source="audio")
    return AudioAnalysis(
        averages=averages,
        mood=classify_mood_from_genre(dominant_genre),
        mood_source="genre",
    )


def energy_level(averages: AudioAverages, dominant_genre: str) -> str:
    if averages.has_samples:
        if averages.energy < 0.4:
            return "low"
        if averages.energy > 0.7:
            return "high"
        return "medium"

    genre = (dominant_genre or "").lower()
    if any(k in genre for k in HIGH_ENERGY_GENRES):
        return "high"
    if any(k in genre for k in LOW_ENERGY_GENRES):
        return "low"
    return "medium"
