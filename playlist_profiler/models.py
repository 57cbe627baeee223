"""Data classes shared across modules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

MOODS = ("energetic", "happy", "chill", "melancholic", "mixed")
ENERGY_LEVELS = ("low", "medium", "high")
UNKNOWN_GENRE = "unknown"

AUDIO_FEATURE_COLS = [
    "energy",
    "danceability",
    "valence",
    "tempo",
    "acousticness",
    "instrumentalness",
]


@dataclass
class Artist:
    spotify_id: str
    name: str
    genres: Tuple[str, ...] = ()
    popularity: int = 0


@dataclass
class Track:
    """Minimal Spotify track info collected from a playlist."""

    spotify_id: str
    name: str
    artist_ids: list[str]
    artist_names: list[str]
    album_name: str = ""
    duration_ms: int = 0
    popularity: int = 0


@dataclass
class AudioFeatures:
    """Spotify audio features for one track."""

    spotify_id: str
    energy: float
    danceability: float
    valence: float
    tempo: float
    acousticness: float
    instrumentalness: float


@dataclass(frozen=True)
class GenreCount:
    genre: str
    count: int
    percentage: float


@dataclass(frozen=True)
class ArtistCount:
    name: str
    track_count: int


@dataclass(frozen=True)
class GenreAnalysis:
    top_genres: Tuple[GenreCount, ...]
    genre_diversity: float
    dominant_genre: str
    distinct_genres: int = 0


@dataclass(frozen=True)
class ArtistAnalysis:
    unique_artists: int
    top_artists: Tuple[ArtistCount, ...]
    artist_diversity: float


@dataclass(frozen=True)
class AudioAverages:
    """Mean audio features over the tracks that had a feature record."""

    energy: float = 0.0
    danceability: float = 0.0
    valence: float = 0.0
    tempo: float = 0.0
    acousticness: float = 0.0
    instrumentalness: float = 0.0
    sample_count: int = 0

    @property
    def has_samples(self) -> bool:
        return self.sample_count > 0


@dataclass(frozen=True)
class AudioAnalysis:
    averages: AudioAverages
    mood: str
    mood_source: str  # "audio" or "genre"


@dataclass(frozen=True)
class RecommendedArtist:
    name: str
    genre: str
    reason: str


@dataclass(frozen=True)
class RecommendedSong:
    title: str
    artist: str
    genre: str
    reason: str
    year: Optional[int] = None


@dataclass(frozen=True)
class Recommendations:
    similar_genres: Tuple[str, ...] = ()
    recommended_artists: Tuple[RecommendedArtist, ...] = ()
    recommended_songs: Tuple[RecommendedSong, ...] = ()
    mood_suggestions: Tuple[str, ...] = ()
    energy_level: str = "medium"
    playlist_suggestions: Tuple[str, ...] = ()
    discovery_tips: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MusicalProfile:
    """Top-level analysis output for a playlist."""

    playlist_id: str
    playlist_name: str
    total_tracks: int
    genre_analysis: GenreAnalysis
    audio_analysis: AudioAnalysis
    artist_analysis: ArtistAnalysis
    recommendations: Recommendations
    analyzed_at: datetime
    truncated: bool = False


@dataclass
class Playlist:
    """Basic Spotify playlist metadata (without tracks)."""

    spotify_id: str
    name: str
    total_tracks: int = 0
    owner: str = ""
    description: Optional[str] = None
    image_url: Optional[str] = None
