"""Typed catalog lookups built on :class:`SpotifyClient`.

Public entry points
-------------------
CatalogGateway.all_tracks_of(playlist_id, cap)   → (tracks, truncated)
CatalogGateway.artists_by_ids(ids)              → {artist_id: Artist}
CatalogGateway.audio_features_by_ids(ids)       → {track_id: AudioFeatures}
CatalogGateway.playlists_for(ids, max_playlists) → [Playlist]
CatalogGateway.tracks_or_none(playlist, cap)    → [Track] | None

Only the playlist's own track list is *central*: its failures propagate.
Everything else is auxiliary and degrades to an empty collection.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Iterator, Optional, Sequence

from playlist_profiler import config
from playlist_profiler.errors import AccessRestricted, SpotifyError
from playlist_profiler.models import Artist, AudioFeatures, Playlist, Track
from playlist_profiler.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)

_PLAYLIST_TRACK_FIELDS = (
    "items(track(id,name,popularity,duration_ms,is_local,artists(id,name),album(name)))"
)
_PLAYLIST_INFO_FIELDS = "id,name,description,owner(display_name),images,tracks(total)"


def unique_ids(ids: Iterable[Optional[str]]) -> list[str]:
    """Drop empty and repeated ids, keeping first-seen order."""
    return list(dict.fromkeys(i for i in ids if i))


def _chunks(seq: Sequence[str], size: int) -> Iterator[list[str]]:
    for i in range(0, len(seq), size):
        yield list(seq[i : i + size])


def parse_track(raw: Optional[dict]) -> Optional[Track]:
    """Build a :class:`Track` from a Spotify track object, or None for local/unavailable items."""
    if not raw or not raw.get("id") or raw.get("is_local"):
        return None
    artists = [a for a in raw.get("artists") or [] if a]
    return Track(
        spotify_id=raw["id"],
        name=raw.get("name", ""),
        artist_ids=[a.get("id") or "" for a in artists],
        artist_names=[a.get("name", "") for a in artists],
        album_name=(raw.get("album") or {}).get("name", ""),
        duration_ms=int(raw.get("duration_ms") or 0),
        popularity=int(raw.get("popularity") or 0),
    )


def _parse_features(raw: dict) -> AudioFeatures:
    return AudioFeatures(
        spotify_id=raw["id"],
        energy=float(raw.get("energy") or 0.0),
        danceability=float(raw.get("danceability") or 0.0),
        valence=float(raw.get("valence") or 0.0),
        tempo=float(raw.get("tempo") or 0.0),
        acousticness=float(raw.get("acousticness") or 0.0),
        instrumentalness=float(raw.get("instrumentalness") or 0.0),
    )


def _parse_playlist(raw: dict) -> Playlist:
    tracks_field = raw.get("tracks")
    total = tracks_field.get("total", 0) if isinstance(tracks_field, dict) else 0
    images = raw.get("images") or []
    return Playlist(
        spotify_id=raw["id"],
        name=raw.get("name") or f"Playlist {raw['id']}",
        total_tracks=total,
        owner=(raw.get("owner") or {}).get("display_name") or "",
        description=raw.get("description"),
        image_url=images[0].get("url") if images else None,
    )


class CatalogGateway:
    """Playlist, artist and audio-feature lookups for one credential."""

    def __init__(
        self,
        client: SpotifyClient,
        *,
        page_size: int = config.PAGE_SIZE,
        artist_batch_size: int = config.ARTIST_BATCH_SIZE,
        features_batch_size: int = config.FEATURES_BATCH_SIZE,
        batch_delay: float = config.BATCH_DELAY,
        concurrency: int = config.FETCH_CONCURRENCY,
    ):
        self.client = client
        self.page_size = page_size
        self.artist_batch_size = artist_batch_size
        self.features_batch_size = features_batch_size
        self.batch_delay = batch_delay
        self._semaphore = asyncio.Semaphore(max(1, concurrency))

    # ------------------------------------------------------------------
    # Central data
    # ------------------------------------------------------------------

    async def all_tracks_of(
        self,
        playlist_id: str,
        cap: int = config.MAX_TRACKS,
    ) -> tuple[list[Track], bool]:
        """Fetch every track of a playlist, deduplicated by id.

        Returns ``(tracks, truncated)``.  Errors propagate: without the track
        list there is nothing to analyse.
        """
        result = await self.client.fetch_all_pages(
            f"playlists/{playlist_id}/tracks",
            page_size=self.page_size,
            max_items=cap,
            params={"fields": _PLAYLIST_TRACK_FIELDS},
            central=True,
        )

        seen: set[str] = set()
        tracks: list[Track] = []
        skipped = 0
        for item in result.items:
            track = parse_track((item or {}).get("track"))
            if track is None:
                skipped += 1
                continue
            if track.spotify_id in seen:
                continue
            seen.add(track.spotify_id)
            tracks.append(track)

        if skipped:
            logger.info("Playlist %s: skipped %d local/unavailable item(s)", playlist_id, skipped)
        logger.info(
            "Playlist %s: %d unique track(s) from %d item(s) in %d request(s)",
            playlist_id,
            len(tracks),
            len(result.items),
            result.requests,
        )
        return tracks, result.truncated

    # ------------------------------------------------------------------
    # Batched auxiliary lookups
    # ------------------------------------------------------------------

    async def _fetch_batched(self, path: str, ids: list[str], size: int, key: str) -> list[dict]:
        """One GET per ``size`` ids, with a fixed pause between chunks.

        Failing chunks are logged and skipped; ``AccessRestricted`` is
        re-raised so callers can treat the whole capability as absent.
        """
        collected: list[dict] = []
        for index, chunk in enumerate(_chunks(ids, size)):
            if index:
                await self.client.sleep(self.batch_delay)
            try:
                async with self._semaphore:
                    data = await self.client.get_json(path, {"ids": ",".join(chunk)})
            except AccessRestricted:
                raise
            except SpotifyError as exc:
                logger.warning(
                    "[%s] Skipping chunk %d (%d ids): %s", path, index + 1, len(chunk), exc
                )
                continue
            collected.extend(entry for entry in data.get(key) or [] if entry)
        return collected

    async def artists_by_ids(self, ids: Iterable[Optional[str]]) -> dict[str, Artist]:
        artist_ids = unique_ids(ids)
        if not artist_ids:
            return {}

        try:
            raw_artists = await self._fetch_batched(
                "artists", artist_ids, self.artist_batch_size, "artists"
            )
        except AccessRestricted:
            logger.warning("Artist lookup is restricted for these credentials; genres unavailable")
            return {}

        artists: dict[str, Artist] = {}
        for raw in raw_artists:
            if not raw.get("id"):
                continue
            artists[raw["id"]] = Artist(
                spotify_id=raw["id"],
                name=raw.get("name", ""),
                genres=tuple(raw.get("genres") or ()),
                popularity=int(raw.get("popularity") or 0),
            )
        logger.info("Fetched %d/%d artist(s)", len(artists), len(artist_ids))
        return artists

    async def audio_features_by_ids(self, ids: Iterable[Optional[str]]) -> dict[str, AudioFeatures]:
        """Audio features by track id.

        An empty dict is a normal answer: Spotify restricts this endpoint for
        many apps (403), and callers must check before relying on it.
        """
        track_ids = unique_ids(ids)
        if not track_ids:
            return {}

        try:
            raw_features = await self._fetch_batched(
                "audio-features", track_ids, self.features_batch_size, "audio_features"
            )
        except AccessRestricted:
            logger.warning(
                "Audio-features endpoint returned 403 Forbidden. "
                "Falling back to genre-based mood and energy."
            )
            return {}

        features = {raw["id"]: _parse_features(raw) for raw in raw_features if raw.get("id")}
        logger.info("Fetched audio features for %d/%d track(s)", len(features), len(track_ids))
        return features

    # ------------------------------------------------------------------
    # Other auxiliary data
    # ------------------------------------------------------------------

    async def playlist_info(self, playlist_id: str) -> Playlist:
        try:
            raw = await self.client.get_json(
                f"playlists/{playlist_id}", {"fields": _PLAYLIST_INFO_FIELDS}
            )
        except SpotifyError as exc:
            logger.warning("Could not fetch details for playlist %s: %s", playlist_id, exc)
            return Playlist(spotify_id=playlist_id, name=f"Playlist {playlist_id}")
        raw.setdefault("id", playlist_id)
        return _parse_playlist(raw)

    async def user_playlists(self, max_items: int = 50) -> list[Playlist]:
        try:
            result = await self.client.fetch_all_pages(
                "me/playlists", page_size=50, max_items=max_items, central=False
            )
        except SpotifyError as exc:
            logger.warning("Could not list the user's playlists: %s", exc)
            return []
        return [_parse_playlist(raw) for raw in result.items if raw and raw.get("id")]

    async def recently_played(self, limit: int = 50) -> list[Track]:
        try:
            async with self._semaphore:
                data = await self.client.get_json("me/player/recently-played", {"limit": limit})
        except SpotifyError as exc:
            logger.warning("Recently played tracks unavailable: %s", exc)
            return []
        tracks = (parse_track((item or {}).get("track")) for item in data.get("items") or [])
        return [t for t in tracks if t is not None]

    async def top_tracks(self, limit: int = 50, time_range: str = "medium_term") -> list[Track]:
        try:
            async with self._semaphore:
                data = await self.client.get_json(
                    "me/top/tracks", {"limit": limit, "time_range": time_range}
                )
        except SpotifyError as exc:
            logger.warning("Top tracks unavailable: %s", exc)
            return []
        tracks = (parse_track(item) for item in data.get("items") or [])
        return [t for t in tracks if t is not None]

    # ------------------------------------------------------------------
    # Library walks
    # ------------------------------------------------------------------

    async def playlists_for(
        self, playlist_ids: Optional[Sequence[str]], max_playlists: int
    ) -> list[Playlist]:
        """The requested playlists, or the user's own when ``playlist_ids`` is None."""
        if playlist_ids is None:
            return (await self.user_playlists(max_items=max_playlists))[:max_playlists]
        ids = unique_ids(playlist_ids)[:max_playlists]
        return list(await asyncio.gather(*(self.playlist_info(pid) for pid in ids)))

    async def tracks_or_none(self, playlist: Playlist, cap: int) -> Optional[list[Track]]:
        """Tracks of ``playlist``; None when access is denied, [] on other failures.

        Used by library-wide walks, where one unreadable playlist must not
        sink the rest.
        """
        try:
            tracks, _ = await self.all_tracks_of(playlist.spotify_id, cap)
        except AccessRestricted:
            logger.warning("403 Forbidden for playlist '%s', skipping", playlist.name)
            return None
        except SpotifyError as exc:
            logger.warning("Could not fetch tracks for '%s': %s", playlist.name, exc)
            return []
        return tracks
