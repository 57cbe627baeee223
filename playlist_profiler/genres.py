"""Library-wide genre breakdown across a user's playlists.

A track belongs to every distinct genre of its artists (see
:func:`playlist_profiler.aggregator.track_genres`).  Tracks are counted once
per genre even when they sit in several playlists; the first playlist they
were seen in is the one reported.

Public API
----------
group_by_genre(entries, artist_genres, tracks_per_genre=20)   → [GenreTracks]
tracks_for_genre(entries, artist_genres, genre)               → [LibraryTrack]
genre_breakdown(client, playlist_ids=None)                    → GenreBreakdown
genre_tracks(client, genre, playlist_ids=None)                → [LibraryTrack]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from playlist_profiler.aggregator import track_genres
from playlist_profiler.catalog import CatalogGateway
from playlist_profiler.models import Track
from playlist_profiler.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)

TRACKS_PER_GENRE = 20


@dataclass(frozen=True)
class LibraryTrack:
    """A track together with the playlist it was found in."""

    track: Track
    playlist_id: str
    playlist_name: str


@dataclass(frozen=True)
class GenreTracks:
    genre: str
    track_count: int
    tracks: Tuple[LibraryTrack, ...]


@dataclass(frozen=True)
class GenreBreakdown:
    genres: Tuple[GenreTracks, ...]
    total_tracks: int


def _unique(entries: Iterable[LibraryTrack]) -> List[LibraryTrack]:
    seen: set[str] = set()
    unique: List[LibraryTrack] = []
    for entry in entries:
        if entry.track.spotify_id in seen:
            continue
        seen.add(entry.track.spotify_id)
        unique.append(entry)
    return unique


# ═══════════════════════════════════════════════════════════════════════════
# Pure grouping
# ═══════════════════════════════════════════════════════════════════════════

def group_by_genre(
    entries: Iterable[LibraryTrack],
    artist_genres: Mapping[str, Iterable[str]],
    tracks_per_genre: int = TRACKS_PER_GENRE,
) -> List[GenreTracks]:
    """Group tracks by genre, largest genre first.

    ``track_count`` is the full count; only the first ``tracks_per_genre``
    tracks of each genre are kept.  Ties keep first-seen order.
    """
    members: Dict[str, List[LibraryTrack]] = {}
    for entry in _unique(entries):
        for genre in track_genres(entry.track, artist_genres):
            members.setdefault(genre, []).append(entry)

    grouped = [
        GenreTracks(genre=genre, track_count=len(tracks), tracks=tuple(tracks[:tracks_per_genre]))
        for genre, tracks in members.items()
    ]
    grouped.sort(key=lambda g: g.track_count, reverse=True)
    return grouped


def tracks_for_genre(
    entries: Iterable[LibraryTrack],
    artist_genres: Mapping[str, Iterable[str]],
    genre: str,
) -> List[LibraryTrack]:
    """Every track tagged with ``genre`` (case-insensitive), by playlist then title."""
    wanted = genre.strip().casefold()
    matches = [
        entry
        for entry in _unique(entries)
        if any(g.casefold() == wanted for g in track_genres(entry.track, artist_genres))
    ]
    matches.sort(key=lambda e: (e.playlist_name.casefold(), e.track.name.casefold()))
    return matches


# ═══════════════════════════════════════════════════════════════════════════
# Async flows
# ═══════════════════════════════════════════════════════════════════════════

async def _collect(
    gateway: CatalogGateway,
    playlist_ids: Optional[Sequence[str]],
    max_playlists: int,
    tracks_per_playlist: int,
) -> Tuple[List[LibraryTrack], Dict[str, Tuple[str, ...]]]:
    """Walk the playlists, then look up every artist once."""
    entries: List[LibraryTrack] = []
    for playlist in await gateway.playlists_for(playlist_ids, max_playlists):
        tracks = await gateway.tracks_or_none(playlist, tracks_per_playlist)
        entries.extend(LibraryTrack(t, playlist.spotify_id, playlist.name) for t in tracks or ())

    artists = await gateway.artists_by_ids([aid for e in entries for aid in e.track.artist_ids])
    logger.info(f"[genres] {len(entries)} track(s) from the library, {len(artists)} artist(s)")
    return entries, {aid: artist.genres for aid, artist in artists.items()}


async def genre_breakdown(
    client: SpotifyClient,
    playlist_ids: Optional[Sequence[str]] = None,
    *,
    tracks_per_genre: int = TRACKS_PER_GENRE,
    max_playlists: int = 20,
    tracks_per_playlist: int = 200,
) -> GenreBreakdown:
    """Genres across the given playlists (default: the user's own)."""
    entries, artist_genres = await _collect(
        CatalogGateway(client), playlist_ids, max_playlists, tracks_per_playlist
    )
    return GenreBreakdown(
        genres=tuple(group_by_genre(entries, artist_genres, tracks_per_genre)),
        total_tracks=len(_unique(entries)),
    )


async def genre_tracks(
    client: SpotifyClient,
    genre: str,
    playlist_ids: Optional[Sequence[str]] = None,
    *,
    max_playlists: int = 20,
    tracks_per_playlist: int = 200,
) -> List[LibraryTrack]:
    entries, artist_genres = await _collect(
        CatalogGateway(client), playlist_ids, max_playlists, tracks_per_playlist
    )
    return tracks_for_genre(entries, artist_genres, genre)


# ═══════════════════════════════════════════════════════════════════════════
# Serialisation helpers
# ═══════════════════════════════════════════════════════════════════════════

def library_track_to_dict(entry: LibraryTrack) -> dict:
    t = entry.track
    return {
        "id": t.spotify_id,
        "name": t.name,
        "artists": list(t.artist_names),
        "album": t.album_name,
        "popularity": t.popularity,
        "playlistId": entry.playlist_id,
        "playlistName": entry.playlist_name,
    }


def genre_tracks_to_dict(g: GenreTracks) -> dict:
    return {
        "genre": g.genre,
        "trackCount": g.track_count,
        "tracks": [library_track_to_dict(e) for e in g.tracks],
    }
