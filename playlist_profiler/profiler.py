"""Playlist profiling pipeline: fetch → aggregate → classify → recommend.

Public API
----------
profile_playlist(gateway, playlist_id, max_tracks)         → MusicalProfile
analyze_playlist(token, playlist_id, max_tracks)           → MusicalProfile
analyze_playlists(token, playlist_ids, max_tracks)         → (profiles, errors)
profile_to_dict(profile)                                   → JSON-safe dict
clear_cache(playlist_id=None)

Each call builds a fresh profile unless ``use_cache=True`` is passed, in
which case results are memoised in-process per (playlist, cap).
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from aiohttp import ClientSession

from playlist_profiler import config
from playlist_profiler.aggregator import aggregate
from playlist_profiler.catalog import CatalogGateway
from playlist_profiler.errors import EmptyPlaylist, SpotifyError, Unauthorized
from playlist_profiler.models import (
    ArtistAnalysis,
    AudioAnalysis,
    GenreAnalysis,
    MusicalProfile,
    Recommendations,
)
from playlist_profiler.mood import energy_level, resolve_mood
from playlist_profiler.rate_limiter import RateLimiter
from playlist_profiler.recommendations import RecommendationEngine
from playlist_profiler.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)

# In-memory cache keyed by (playlist_id, max_tracks)
_PROFILE_CACHE: Dict[Tuple[str, int], MusicalProfile] = {}


# ═══════════════════════════════════════════════════════════════════════════
# Core pipeline
# ═══════════════════════════════════════════════════════════════════════════

async def profile_playlist(
    gateway: CatalogGateway,
    playlist_id: str,
    max_tracks: int = config.MAX_TRACKS,
    engine: Optional[RecommendationEngine] = None,
) -> MusicalProfile:
    """Run the whole pipeline for one playlist over an open gateway.

    Raises :class:`EmptyPlaylist` when no analysable track is left, and
    lets failures on the playlist's own track list propagate.
    """
    tracks, truncated = await gateway.all_tracks_of(playlist_id, max_tracks)
    if not tracks:
        raise EmptyPlaylist(playlist_id)

    artist_ids = [aid for t in tracks for aid in t.artist_ids]
    info, artists, features = await asyncio.gather(
        gateway.playlist_info(playlist_id),
        gateway.artists_by_ids(artist_ids),
        gateway.audio_features_by_ids([t.spotify_id for t in tracks]),
    )

    artist_genres = {aid: artist.genres for aid, artist in artists.items()}
    agg = aggregate(tracks, artist_genres, features)

    dominant = agg.genre_analysis.dominant_genre
    audio = resolve_mood(agg.audio_averages, dominant)
    level = energy_level(agg.audio_averages, dominant)
    recs = (engine or RecommendationEngine()).recommend(
        agg.genre_analysis, audio, agg.artist_analysis, level
    )

    logger.info(
        f"[analysis] {playlist_id}: {len(tracks)} tracks, dominant genre '{dominant}', "
        f"mood '{audio.mood}' ({audio.mood_source}), energy {level}"
        + (" [truncated]" if truncated else "")
    )

    return MusicalProfile(
        playlist_id=playlist_id,
        playlist_name=info.name,
        total_tracks=len(tracks),
        genre_analysis=agg.genre_analysis,
        audio_analysis=audio,
        artist_analysis=agg.artist_analysis,
        recommendations=recs,
        analyzed_at=datetime.now(timezone.utc),
        truncated=truncated,
    )


async def analyze_playlist(
    token: str,
    playlist_id: str,
    max_tracks: int = config.MAX_TRACKS,
    *,
    session: Optional[ClientSession] = None,
    limiter: Optional[RateLimiter] = None,
    use_cache: bool = False,
) -> MusicalProfile:
    """Profile one playlist with a fresh client for ``token``."""
    key = (playlist_id, max_tracks)
    if use_cache and key in _PROFILE_CACHE:
        logger.info(f"[analysis] Cache hit for playlist {playlist_id}")
        return _PROFILE_CACHE[key]

    async with SpotifyClient(token, session=session, limiter=limiter) as client:
        profile = await profile_playlist(CatalogGateway(client), playlist_id, max_tracks)

    if use_cache:
        _PROFILE_CACHE[key] = profile
    return profile


async def analyze_playlists(
    token: str,
    playlist_ids: Sequence[str],
    max_tracks: int = config.MAX_TRACKS,
    *,
    session: Optional[ClientSession] = None,
    limiter: Optional[RateLimiter] = None,
    concurrency: int = config.PLAYLIST_CONCURRENCY,
    use_cache: bool = False,
) -> Tuple[List[MusicalProfile], Dict[str, str]]:
    """Profile several playlists sharing one client and one rate limiter.

    Returns ``(profiles, errors)``: profiles in request order and a map of
    playlist id → error message for the ones that failed.  An invalid token
    (:class:`Unauthorized`) fails the whole batch and cancels the playlists
    still in flight, so no request is issued after the error surfaces.
    """
    ids = list(dict.fromkeys(pid for pid in playlist_ids if pid))
    semaphore = asyncio.Semaphore(max(1, concurrency))
    engine = RecommendationEngine()
    errors: Dict[str, str] = {}

    async with SpotifyClient(token, session=session, limiter=limiter) as client:
        gateway = CatalogGateway(client)

        async def _one(pid: str) -> Optional[MusicalProfile]:
            key = (pid, max_tracks)
            if use_cache and key in _PROFILE_CACHE:
                return _PROFILE_CACHE[key]
            async with semaphore:
                try:
                    profile = await profile_playlist(gateway, pid, max_tracks, engine)
                except Unauthorized:
                    raise
                except (EmptyPlaylist, SpotifyError) as exc:
                    logger.warning(f"[analysis] Playlist {pid} failed: {exc}")
                    errors[pid] = str(exc)
                    return None
            if use_cache:
                _PROFILE_CACHE[key] = profile
            return profile

        tasks = [asyncio.create_task(_one(pid)) for pid in ids]
        try:
            results = await asyncio.gather(*tasks)
        finally:
            # Siblings still in flight when one task raised
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    profiles = [p for p in results if p is not None]
    logger.info(f"[analysis] Profiled {len(profiles)}/{len(ids)} playlist(s)")
    return profiles, errors


def clear_cache(playlist_id: Optional[str] = None) -> None:
    """Clear the profile cache (all entries, or only one playlist's)."""
    if playlist_id:
        for key in [k for k in _PROFILE_CACHE if k[0] == playlist_id]:
            _PROFILE_CACHE.pop(key, None)
    else:
        _PROFILE_CACHE.clear()


# ═══════════════════════════════════════════════════════════════════════════
# Serialisation helpers (dataclass → camelCase dict for JSON responses)
# ═══════════════════════════════════════════════════════════════════════════

def _genre_analysis_to_dict(ga: GenreAnalysis) -> dict:
    return {
        "topGenres": [
            {"genre": g.genre, "count": g.count, "percentage": g.percentage}
            for g in ga.top_genres
        ],
        "genreDiversity": ga.genre_diversity,
        "dominantGenre": ga.dominant_genre,
    }


def _audio_analysis_to_dict(aa: AudioAnalysis) -> dict:
    avg = aa.averages
    return {
        "averageEnergy": avg.energy,
        "averageDanceability": avg.danceability,
        "averageValence": avg.valence,
        "averageTempo": avg.tempo,
        "averageAcousticness": avg.acousticness,
        "averageInstrumentalness": avg.instrumentalness,
        "mood": aa.mood,
        "moodSource": aa.mood_source,
        "sampleCount": avg.sample_count,
    }


def _artist_analysis_to_dict(ar: ArtistAnalysis) -> dict:
    return {
        "uniqueArtists": ar.unique_artists,
        "topArtists": [{"name": a.name, "trackCount": a.track_count} for a in ar.top_artists],
        "artistDiversity": ar.artist_diversity,
    }


def _recommendations_to_dict(r: Recommendations) -> dict:
    songs = []
    for s in r.recommended_songs:
        song = {"title": s.title, "artist": s.artist, "genre": s.genre, "reason": s.reason}
        if s.year is not None:
            song["year"] = s.year
        songs.append(song)

    return {
        "similarGenres": list(r.similar_genres),
        "recommendedArtists": [
            {"name": a.name, "genre": a.genre, "reason": a.reason}
            for a in r.recommended_artists
        ],
        "recommendedSongs": songs,
        "moodSuggestions": list(r.mood_suggestions),
        "energyLevel": r.energy_level,
        "playlistSuggestions": list(r.playlist_suggestions),
        "discoveryTips": list(r.discovery_tips),
    }


def profile_to_dict(profile: MusicalProfile) -> dict:
    """Convert a ``MusicalProfile`` dataclass tree to a JSON-safe dict."""
    return {
        "playlistId": profile.playlist_id,
        "playlistName": profile.playlist_name,
        "totalTracks": profile.total_tracks,
        "genreAnalysis": _genre_analysis_to_dict(profile.genre_analysis),
        "audioAnalysis": _audio_analysis_to_dict(profile.audio_analysis),
        "artistAnalysis": _artist_analysis_to_dict(profile.artist_analysis),
        "recommendations": _recommendations_to_dict(profile.recommendations),
        "analyzedAt": profile.analyzed_at.isoformat(),
        "truncated": profile.truncated,
    }
