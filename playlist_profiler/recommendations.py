"""Rule-based recommendations from a playlist's aggregate profile.

The genre families, reference artists/songs and phrase banks are data, not
code: they live in ``data/reference_catalog.json`` (or the file named by
``REFERENCE_CATALOG_PATH``) so they can be extended without touching the
rules below.  Given the same inputs the engine always returns the same
output.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from playlist_profiler import config
from playlist_profiler.models import (
    UNKNOWN_GENRE,
    ArtistAnalysis,
    AudioAnalysis,
    GenreAnalysis,
    GenreCount,
    RecommendedArtist,
    RecommendedSong,
    Recommendations,
)
from playlist_profiler.mood import energy_level

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "reference_catalog.json"

DIVERSITY_HIGH = 0.7
DIVERSITY_LOW = 0.3
FEW_GENRES = 5
MANY_GENRES = 15

MAX_SIMILAR_GENRES = 8
MAX_RECOMMENDED_ARTISTS = 8
MAX_RECOMMENDED_SONGS = 8
MAX_MOOD_SUGGESTIONS = 6
MAX_PLAYLIST_SUGGESTIONS = 4
MAX_DISCOVERY_TIPS = 3


@dataclass(frozen=True)
class ReferenceCatalog:
    """Static lookup tables loaded from JSON."""

    genre_families: Dict[str, List[str]] = field(default_factory=dict)
    artists: Tuple[Dict[str, Any], ...] = ()
    songs: Tuple[Dict[str, Any], ...] = ()
    mood_suggestions: Dict[str, List[str]] = field(default_factory=dict)
    diversity_mood_suggestions: Dict[str, List[str]] = field(default_factory=dict)
    playlist_suggestions: Dict[str, List[str]] = field(default_factory=dict)
    discovery_tips: Dict[str, List[str]] = field(default_factory=dict)
    reasons: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReferenceCatalog":
        return cls(
            genre_families={k.lower(): list(v) for k, v in (data.get("genre_families") or {}).items()},
            artists=tuple(data.get("artists") or ()),
            songs=tuple(data.get("songs") or ()),
            mood_suggestions=dict(data.get("mood_suggestions") or {}),
            diversity_mood_suggestions=dict(data.get("diversity_mood_suggestions") or {}),
            playlist_suggestions=dict(data.get("playlist_suggestions") or {}),
            discovery_tips=dict(data.get("discovery_tips") or {}),
            reasons=dict(data.get("reasons") or {}),
        )


@lru_cache(maxsize=4)
def _load_catalog_file(path: str) -> ReferenceCatalog:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    logger.debug("Loaded reference catalog from %s", path)
    return ReferenceCatalog.from_dict(data)


def load_reference_catalog(path: Optional[str] = None) -> ReferenceCatalog:
    """Load (and memoise) the reference catalog."""
    resolved = path or config.REFERENCE_CATALOG_PATH or str(DEFAULT_CATALOG_PATH)
    return _load_catalog_file(str(Path(resolved).resolve()))


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def _dedupe(items: Iterable[str], limit: int) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(i for i in items if i))[:limit]


def _genre_matches(reference_genre: str, genre: str) -> bool:
    """``"rock"`` matches ``"rock"`` and ``"alternative rock"``."""
    reference_genre = reference_genre.lower()
    genre = genre.lower()
    return reference_genre == genre or reference_genre in genre


def _fill(template: str, **values: str) -> Optional[str]:
    """Format ``template``; None when it needs a value that is missing."""
    try:
        return template.format(**values)
    except KeyError:
        return None


def _title(genre: str) -> str:
    return " ".join(w[:1].upper() + w[1:] for w in genre.split())


# ═══════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════

class RecommendationEngine:
    """Stateless recommender over a :class:`ReferenceCatalog`."""

    def __init__(self, catalog: Optional[ReferenceCatalog] = None):
        self.catalog = catalog or load_reference_catalog()

    # -- genres ---------------------------------------------------------

    def similar_genres(self, top_genres: Sequence[GenreCount]) -> Tuple[str, ...]:
        existing = {g.genre.lower() for g in top_genres}
        related: List[str] = []
        for gc in top_genres[:3]:
            for key, family in self.catalog.genre_families.items():
                if _genre_matches(key, gc.genre):
                    related.extend(g for g in family if g.lower() not in existing)
        return _dedupe(related, MAX_SIMILAR_GENRES)

    # -- artists & songs ------------------------------------------------

    def _reason(self, genre: str, tier: str, genre_diversity: float) -> str:
        reasons = self.catalog.reasons
        if genre_diversity > DIVERSITY_HIGH:
            template = reasons.get("high_diversity", "Fits your eclectic taste with a touch of {genre}")
        elif tier == "high":
            template = reasons.get("popular", "Popular {genre} pick that matches your playlist")
        else:
            template = reasons.get("default", "Because your playlist features {genre}")
        return _fill(template, genre=genre) or template

    def _matching_entries(
        self,
        entries: Sequence[Dict[str, Any]],
        top_genres: Sequence[GenreCount],
        excluded_artists: set[str],
        genre_diversity: float,
    ) -> List[Tuple[Dict[str, Any], str]]:
        """Reference entries matching the playlist's genres, in genre rank order."""
        matches: List[Tuple[Dict[str, Any], str]] = []
        taken: set[int] = set()
        for gc in top_genres:
            for index, entry in enumerate(entries):
                if index in taken:
                    continue
                artist = (entry.get("artist") or entry.get("name") or "").casefold()
                if artist in excluded_artists:
                    continue
                if _genre_matches(entry.get("genre", ""), gc.genre):
                    taken.add(index)
                    matches.append((entry, gc.genre))

        if genre_diversity < DIVERSITY_LOW:
            # stable: keeps genre rank order within each tier
            matches.sort(key=lambda m: m[0].get("tier") != "high")
        return matches

    def recommended_artists(
        self,
        genre_analysis: GenreAnalysis,
        artist_analysis: ArtistAnalysis,
    ) -> Tuple[RecommendedArtist, ...]:
        excluded = {a.name.casefold() for a in artist_analysis.top_artists}
        picks: Dict[str, RecommendedArtist] = {}
        for entry, genre in self._matching_entries(
            self.catalog.artists, genre_analysis.top_genres, excluded, genre_analysis.genre_diversity
        ):
            key = entry["name"].casefold()
            if key in picks:
                continue
            picks[key] = RecommendedArtist(
                name=entry["name"],
                genre=entry.get("genre", genre),
                reason=self._reason(genre, entry.get("tier", ""), genre_analysis.genre_diversity),
            )
            if len(picks) >= MAX_RECOMMENDED_ARTISTS:
                break
        return tuple(picks.values())

    def recommended_songs(
        self,
        genre_analysis: GenreAnalysis,
        artist_analysis: ArtistAnalysis,
    ) -> Tuple[RecommendedSong, ...]:
        excluded = {a.name.casefold() for a in artist_analysis.top_artists}
        picks: Dict[Tuple[str, str], RecommendedSong] = {}
        for entry, genre in self._matching_entries(
            self.catalog.songs, genre_analysis.top_genres, excluded, genre_analysis.genre_diversity
        ):
            key = (entry["title"].casefold(), entry.get("artist", "").casefold())
            if key in picks:
                continue
            year = entry.get("year")
            picks[key] = RecommendedSong(
                title=entry["title"],
                artist=entry.get("artist", ""),
                genre=entry.get("genre", genre),
                reason=self._reason(genre, entry.get("tier", ""), genre_analysis.genre_diversity),
                year=int(year) if year is not None else None,
            )
            if len(picks) >= MAX_RECOMMENDED_SONGS:
                break
        return tuple(picks.values())

    # -- phrase banks ---------------------------------------------------

    def mood_suggestions(self, mood: str, genre_diversity: float) -> Tuple[str, ...]:
        phrases = list(self.catalog.mood_suggestions.get(mood) or self.catalog.mood_suggestions.get("mixed", []))
        extra = self.catalog.diversity_mood_suggestions
        if genre_diversity > DIVERSITY_HIGH:
            phrases.extend(extra.get("high", []))
        elif genre_diversity < DIVERSITY_LOW:
            phrases.extend(extra.get("low", []))
        return _dedupe(phrases, MAX_MOOD_SUGGESTIONS)

    def playlist_suggestions(self, mood: str, genre_analysis: GenreAnalysis) -> Tuple[str, ...]:
        bank = self.catalog.playlist_suggestions
        diversity = genre_analysis.genre_diversity
        templates = list(bank.get(mood, []))
        if diversity > DIVERSITY_HIGH:
            templates.extend(bank.get("high_diversity", []))
        elif diversity < DIVERSITY_LOW:
            templates.extend(bank.get("low_diversity", []))
        else:
            templates.extend(bank.get("default", []))

        values: Dict[str, str] = {}
        if genre_analysis.dominant_genre != UNKNOWN_GENRE:
            values["genre"] = _title(genre_analysis.dominant_genre)
        return _dedupe((_fill(t, **values) for t in templates), MAX_PLAYLIST_SUGGESTIONS)

    def discovery_tips(
        self,
        genre_analysis: GenreAnalysis,
        similar: Sequence[str],
    ) -> Tuple[str, ...]:
        bank = self.catalog.discovery_tips
        diversity = genre_analysis.genre_diversity
        templates: List[str] = []
        if diversity > DIVERSITY_HIGH:
            templates.extend(bank.get("high_diversity", []))
        elif diversity < DIVERSITY_LOW:
            templates.extend(bank.get("low_diversity", []))
        if genre_analysis.distinct_genres < FEW_GENRES:
            templates.extend(bank.get("few_genres", []))
        elif genre_analysis.distinct_genres > MANY_GENRES:
            templates.extend(bank.get("many_genres", []))
        templates.extend(bank.get("default", []))

        values: Dict[str, str] = {}
        if similar:
            values["similar"] = " and ".join(similar[:2])
        if genre_analysis.dominant_genre != UNKNOWN_GENRE:
            values["genre"] = genre_analysis.dominant_genre
        return _dedupe((_fill(t, **values) for t in templates), MAX_DISCOVERY_TIPS)

    # -- entry point ----------------------------------------------------

    def recommend(
        self,
        genre_analysis: GenreAnalysis,
        audio_analysis: AudioAnalysis,
        artist_analysis: ArtistAnalysis,
        level: Optional[str] = None,
    ) -> Recommendations:
        """Build the full recommendation block; ``level`` defaults to :func:`energy_level`."""
        similar = self.similar_genres(genre_analysis.top_genres)
        if level is None:
            level = energy_level(audio_analysis.averages, genre_analysis.dominant_genre)
        return Recommendations(
            similar_genres=similar,
            recommended_artists=self.recommended_artists(genre_analysis, artist_analysis),
            recommended_songs=self.recommended_songs(genre_analysis, artist_analysis),
            mood_suggestions=self.mood_suggestions(audio_analysis.mood, genre_analysis.genre_diversity),
            energy_level=level,
            playlist_suggestions=self.playlist_suggestions(audio_analysis.mood, genre_analysis),
            discovery_tips=self.discovery_tips(genre_analysis, similar),
        )


def recommend(
    genre_analysis: GenreAnalysis,
    audio_analysis: AudioAnalysis,
    artist_analysis: ArtistAnalysis,
    level: Optional[str] = None,
    catalog: Optional[ReferenceCatalog] = None,
) -> Recommendations:
    """Module-level shortcut for :meth:`RecommendationEngine.recommend`."""
    return RecommendationEngine(catalog).recommend(
        genre_analysis, audio_analysis, artist_analysis, level
    )
