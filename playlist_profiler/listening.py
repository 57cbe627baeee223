"""Heuristic listening estimates.

Spotify exposes no per-track or per-playlist play counts.  The figures
produced here are *estimates* built from catalog co-occurrence: how many of
a playlist's tracks show up in the user's recently played and top tracks,
how many playlists a track appears in, and track popularity.  They must be
presented as such.

Public API
----------
estimate_playlist_listens(track_ids, recent_ids, top_ids)   → int
rank_most_played(playlist_tracks, limit=25)                 → [TrackPlays]
estimate_top_track_plays(tracks)                            → [TrackPlays]
playlist_listens(client, playlist_ids=None)                 → [PlaylistListens]
most_played_tracks(client, playlist_ids=None)               → [TrackPlays]
user_top_tracks(client)                                     → [TrackPlays]
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from playlist_profiler.catalog import CatalogGateway
from playlist_profiler.models import Track
from playlist_profiler.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)

ESTIMATE_NOTE = (
    "Listen and play counts are estimates derived from playlist membership, "
    "recent plays and popularity, not actual Spotify listening data"
)


@dataclass(frozen=True)
class ListeningHeuristics:
    """Weights used by the estimators; override any of them per call."""

    recent_play_weight: int = 2
    top_track_weight: int = 3
    active_playlist_bonus: int = 5
    tracks_per_fallback_listen: int = 10
    occurrence_weight: int = 2
    popularity_bonus_cap: int = 10
    rank_bonus_slots: int = 25
    rank_bonus_step: float = 0.5
    top_rank_base: int = 51
    top_rank_multiplier: int = 2


DEFAULT_HEURISTICS = ListeningHeuristics()


@dataclass(frozen=True)
class PlaylistListens:
    playlist_id: str
    name: str
    track_count: int
    estimated_listens: int
    recently_played_from_playlist: int
    top_tracks_from_playlist: int
    image_url: Optional[str] = None


@dataclass(frozen=True)
class TrackPlays:
    track: Track
    rank: int
    estimated_plays: int
    playlist_count: int = 0
    playlist_ids: Tuple[str, ...] = ()


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _overlap(ids: Iterable[str], members: set[str]) -> int:
    return sum(1 for i in ids if i in members)


# ═══════════════════════════════════════════════════════════════════════════
# Pure estimators
# ═══════════════════════════════════════════════════════════════════════════

def estimate_playlist_listens(
    track_ids: Iterable[str],
    recent_ids: Iterable[str],
    top_ids: Iterable[str],
    heuristics: ListeningHeuristics = DEFAULT_HEURISTICS,
) -> int:
    """Estimated listens for one playlist.

    Weighted hits against recently played and top tracks, plus a bonus when
    there is any hit.  A playlist with no hits still gets one listen per
    ``tracks_per_fallback_listen`` tracks (at least 1) if it has tracks.
    """
    members = set(track_ids)
    recent_hits = _overlap(recent_ids, members)
    top_hits = _overlap(top_ids, members)

    listens = recent_hits * heuristics.recent_play_weight + top_hits * heuristics.top_track_weight
    if recent_hits or top_hits:
        listens += heuristics.active_playlist_bonus
    if listens == 0 and members:
        listens = max(1, len(members) // heuristics.tracks_per_fallback_listen)
    return listens


def rank_most_played(
    playlist_tracks: Mapping[str, Sequence[Track]],
    limit: int = 25,
    heuristics: ListeningHeuristics = DEFAULT_HEURISTICS,
) -> List[TrackPlays]:
    """Rank tracks by the number of playlists they appear in.

    ``playlist_tracks`` maps playlist id → tracks.  Ties keep first-seen
    order.
    """
    counts: Dict[str, int] = {}
    tracks: Dict[str, Track] = {}
    memberships: Dict[str, List[str]] = {}

    for playlist_id, playlist in playlist_tracks.items():
        for track in {t.spotify_id: t for t in playlist}.values():
            tracks.setdefault(track.spotify_id, track)
            counts[track.spotify_id] = counts.get(track.spotify_id, 0) + 1
            memberships.setdefault(track.spotify_id, []).append(playlist_id)

    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:limit]

    h = heuristics
    out: List[TrackPlays] = []
    for index, (track_id, count) in enumerate(ranked):
        track = tracks[track_id]
        plays = (
            count * h.occurrence_weight
            + min(h.popularity_bonus_cap, track.popularity / 100 * h.popularity_bonus_cap)
            + max(0.0, (h.rank_bonus_slots - index) * h.rank_bonus_step)
        )
        out.append(
            TrackPlays(
                track=track,
                rank=index + 1,
                estimated_plays=max(1, _round_half_up(plays)),
                playlist_count=count,
                playlist_ids=tuple(memberships[track_id]),
            )
        )
    return out


def estimate_top_track_plays(
    tracks: Sequence[Track],
    heuristics: ListeningHeuristics = DEFAULT_HEURISTICS,
) -> List[TrackPlays]:
    """Plays for the user's top tracks, decaying with rank and scaled by popularity."""
    h = heuristics
    return [
        TrackPlays(
            track=track,
            rank=index + 1,
            estimated_plays=max(
                1,
                _round_half_up(
                    (h.top_rank_base - (index + 1)) * (track.popularity / 100) * h.top_rank_multiplier
                ),
            ),
        )
        for index, track in enumerate(tracks)
    ]


# ═══════════════════════════════════════════════════════════════════════════
# Async flows
# ═══════════════════════════════════════════════════════════════════════════

async def playlist_listens(
    client: SpotifyClient,
    playlist_ids: Optional[Sequence[str]] = None,
    *,
    heuristics: ListeningHeuristics = DEFAULT_HEURISTICS,
    max_playlists: int = 10,
    tracks_per_playlist: int = 50,
    history_limit: int = 50,
) -> List[PlaylistListens]:
    """Estimated listens per playlist, highest first.

    Without ``playlist_ids`` the user's own playlists are used.  Recently
    played and top tracks are auxiliary: if they cannot be fetched every
    playlist falls back to the track-count estimate.
    """
    gateway = CatalogGateway(client)
    recent, top = await asyncio.gather(
        gateway.recently_played(history_limit),
        gateway.top_tracks(history_limit),
    )
    recent_ids = [t.spotify_id for t in recent]
    top_ids = [t.spotify_id for t in top]
    logger.info(f"[listens] {len(recent_ids)} recently played, {len(top_ids)} top track(s)")

    results: List[PlaylistListens] = []
    for playlist in await gateway.playlists_for(playlist_ids, max_playlists):
        tracks = await gateway.tracks_or_none(playlist, tracks_per_playlist)
        if tracks is None:
            continue
        track_ids = [t.spotify_id for t in tracks]
        members = set(track_ids)
        results.append(
            PlaylistListens(
                playlist_id=playlist.spotify_id,
                name=playlist.name,
                track_count=len(track_ids),
                estimated_listens=estimate_playlist_listens(track_ids, recent_ids, top_ids, heuristics),
                recently_played_from_playlist=_overlap(recent_ids, members),
                top_tracks_from_playlist=_overlap(top_ids, members),
                image_url=playlist.image_url,
            )
        )

    results.sort(key=lambda p: p.estimated_listens, reverse=True)
    return results


async def most_played_tracks(
    client: SpotifyClient,
    playlist_ids: Optional[Sequence[str]] = None,
    *,
    heuristics: ListeningHeuristics = DEFAULT_HEURISTICS,
    limit: int = 25,
    max_playlists: int = 20,
    tracks_per_playlist: int = 50,
) -> List[TrackPlays]:
    """Tracks appearing in the most playlists, with estimated plays."""
    gateway = CatalogGateway(client)
    playlist_tracks: Dict[str, List[Track]] = {}
    for playlist in await gateway.playlists_for(playlist_ids, max_playlists):
        tracks = await gateway.tracks_or_none(playlist, tracks_per_playlist)
        if tracks:
            playlist_tracks[playlist.spotify_id] = tracks
    logger.info(f"[listens] Ranking tracks across {len(playlist_tracks)} playlist(s)")
    return rank_most_played(playlist_tracks, limit, heuristics)


async def user_top_tracks(
    client: SpotifyClient,
    *,
    heuristics: ListeningHeuristics = DEFAULT_HEURISTICS,
    limit: int = 50,
    time_range: str = "medium_term",
) -> List[TrackPlays]:
    gateway = CatalogGateway(client)
    return estimate_top_track_plays(await gateway.top_tracks(limit, time_range), heuristics)


# ═══════════════════════════════════════════════════════════════════════════
# Serialisation helpers
# ═══════════════════════════════════════════════════════════════════════════

def playlist_listens_to_dict(p: PlaylistListens) -> dict:
    return {
        "id": p.playlist_id,
        "name": p.name,
        "image": p.image_url,
        "trackCount": p.track_count,
        "estimatedListens": p.estimated_listens,
        "recentlyPlayedFromPlaylist": p.recently_played_from_playlist,
        "topTracksFromPlaylist": p.top_tracks_from_playlist,
    }


def track_plays_to_dict(tp: TrackPlays) -> dict:
    t = tp.track
    return {
        "id": t.spotify_id,
        "name": t.name,
        "artists": list(t.artist_names),
        "album": t.album_name,
        "durationMs": t.duration_ms,
        "popularity": t.popularity,
        "rank": tp.rank,
        "estimatedPlays": tp.estimated_plays,
        "playlistCount": tp.playlist_count,
        "playlistIds": list(tp.playlist_ids),
    }
