"""FastAPI server exposing playlist profiles and listening estimates.

Endpoints
---------
GET  /                                   → health check
GET  /analysis/playlist/{playlist_id}    → profile one playlist
POST /analysis                           → profile several playlists
GET  /analytics/playlists/listens        → estimated listens per playlist
GET  /analytics/tracks/most-played       → tracks found in the most playlists
GET  /analytics/tracks/user-top          → user's top tracks with estimated plays
GET  /analytics/genres                   → genres across the library, largest first
GET  /analytics/genres/{genre}/tracks    → every library track tagged with a genre

Every route except the health check needs the caller's Spotify access token
in ``Authorization: Bearer <token>``.  Spotify failures are mapped to HTTP
statuses by the exception handlers below.  Requests carrying the same token
share one rate limiter, so a 429 seen by one holds back the others.

Run with::

    uvicorn playlist_profiler.server:app --host 0.0.0.0 --port 8888 --reload
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from playlist_profiler import config, genres, listening, profiler
from playlist_profiler.errors import (
    AccessRestricted,
    EmptyPlaylist,
    ExhaustedRetries,
    RateLimited,
    SpotifyError,
    Unauthorized,
)
from playlist_profiler.rate_limiter import RateLimiter
from playlist_profiler.spotify_client import SpotifyClient

# Set up logging
logger = logging.getLogger(__name__)
logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="[%(asctime)s] %(levelname)s - %(message)s",
)
# Silence noisy HTTP libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("aiohttp").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(title="Playlist Profiler API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Middleware to log incoming requests
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming request path for debugging."""
    logger.info(f"[request] {request.method} {request.url.path}")
    response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

@app.exception_handler(EmptyPlaylist)
async def _empty_playlist(request: Request, exc: EmptyPlaylist):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "code": "empty_playlist", "playlistId": exc.playlist_id},
    )


def _status_for(exc: SpotifyError) -> int:
    if isinstance(exc, Unauthorized):
        return 401
    if isinstance(exc, AccessRestricted):
        return 403
    if isinstance(exc, (ExhaustedRetries, RateLimited)):
        return 429
    return 502


@app.exception_handler(SpotifyError)
async def _spotify_error(request: Request, exc: SpotifyError):
    status = _status_for(exc)
    logger.error(f"[request] {request.url.path} failed with {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "code": type(exc).__name__},
    )


# ---------------------------------------------------------------------------
# Auth dependency
# ---------------------------------------------------------------------------

async def require_token(request: Request) -> str:
    """FastAPI dependency returning the caller's Spotify access token.

    Raises 401 if the header is missing or malformed.
    """
    auth = request.headers.get("Authorization", "")
    token: Optional[str] = auth[7:].strip() if auth.startswith("Bearer ") else None
    if not token:
        raise HTTPException(status_code=401, detail="Missing or invalid Spotify access token")
    return token


@lru_cache(maxsize=256)
def limiter_for(token: str) -> RateLimiter:
    """The rate limiter shared by every request made with ``token``."""
    return RateLimiter()


def _split_ids(raw: Optional[str]) -> Optional[list[str]]:
    if raw is None:
        return None
    return [pid.strip() for pid in raw.split(",") if pid.strip()]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/")
async def root():
    """Health check / root endpoint."""
    return {
        "status": "ok",
        "service": "Playlist Profiler API",
        "docs": "/docs",
    }


@app.get("/analysis/playlist/{playlist_id}")
async def analyze_playlist(
    playlist_id: str,
    max_tracks: int = Query(config.MAX_TRACKS, ge=1),
    token: str = Depends(require_token),
):
    """Compute the musical profile of a single playlist."""
    profile = await profiler.analyze_playlist(
        token, playlist_id, max_tracks, limiter=limiter_for(token)
    )
    return {"profile": profiler.profile_to_dict(profile)}


class AnalysisRequest(BaseModel):
    playlist_ids: list[str]
    max_tracks: int = Field(config.MAX_TRACKS, ge=1)
    use_cache: bool = False


@app.post("/analysis")
async def analyze_playlists(
    body: AnalysisRequest,
    token: str = Depends(require_token),
):
    """Profile several playlists.

    Playlists that fail (empty, restricted, upstream errors) are reported
    under ``errors`` instead of failing the whole request.
    """
    if not body.playlist_ids:
        raise HTTPException(status_code=400, detail="No playlist IDs provided.")

    profiles, errors = await profiler.analyze_playlists(
        token,
        body.playlist_ids,
        body.max_tracks,
        limiter=limiter_for(token),
        use_cache=body.use_cache,
    )
    return {
        "profiles": [profiler.profile_to_dict(p) for p in profiles],
        "errors": errors,
    }


@app.get("/analytics/playlists/listens")
async def playlist_listens(
    playlist_ids: Optional[str] = Query(None, description="Comma-separated playlist IDs"),
    token: str = Depends(require_token),
):
    """Estimated listens per playlist (defaults to the user's playlists)."""
    async with SpotifyClient(token, limiter=limiter_for(token)) as client:
        results = await listening.playlist_listens(client, _split_ids(playlist_ids))
    return {
        "playlists": [listening.playlist_listens_to_dict(p) for p in results],
        "totalPlaylists": len(results),
        "note": listening.ESTIMATE_NOTE,
    }


@app.get("/analytics/tracks/most-played")
async def most_played_tracks(
    playlist_ids: Optional[str] = Query(None, description="Comma-separated playlist IDs"),
    limit: int = Query(25, ge=1, le=100),
    token: str = Depends(require_token),
):
    """Tracks that appear in the most playlists, with estimated plays."""
    async with SpotifyClient(token, limiter=limiter_for(token)) as client:
        results = await listening.most_played_tracks(client, _split_ids(playlist_ids), limit=limit)
    return {
        "tracks": [listening.track_plays_to_dict(t) for t in results],
        "note": listening.ESTIMATE_NOTE,
    }


@app.get("/analytics/tracks/user-top")
async def user_top_tracks(
    time_range: str = Query("medium_term", pattern="^(short_term|medium_term|long_term)$"),
    limit: int = Query(50, ge=1, le=50),
    token: str = Depends(require_token),
):
    """The user's top tracks with estimated plays."""
    async with SpotifyClient(token, limiter=limiter_for(token)) as client:
        results = await listening.user_top_tracks(client, limit=limit, time_range=time_range)
    return {
        "tracks": [listening.track_plays_to_dict(t) for t in results],
        "timeRange": time_range,
        "note": listening.ESTIMATE_NOTE,
    }


@app.get("/analytics/genres")
async def genre_breakdown(
    playlist_ids: Optional[str] = Query(None, description="Comma-separated playlist IDs"),
    tracks_per_genre: int = Query(genres.TRACKS_PER_GENRE, ge=1, le=100),
    token: str = Depends(require_token),
):
    """Genres across the library with the tracks behind each one."""
    async with SpotifyClient(token, limiter=limiter_for(token)) as client:
        breakdown = await genres.genre_breakdown(
            client, _split_ids(playlist_ids), tracks_per_genre=tracks_per_genre
        )
    return {
        "genres": [genres.genre_tracks_to_dict(g) for g in breakdown.genres],
        "totalGenres": len(breakdown.genres),
        "totalTracks": breakdown.total_tracks,
    }


@app.get("/analytics/genres/{genre}/tracks")
async def genre_tracks(
    genre: str,
    playlist_ids: Optional[str] = Query(None, description="Comma-separated playlist IDs"),
    token: str = Depends(require_token),
):
    """Every library track tagged with ``genre``."""
    async with SpotifyClient(token, limiter=limiter_for(token)) as client:
        results = await genres.genre_tracks(client, genre, _split_ids(playlist_ids))
    return {
        "genre": genre,
        "tracks": [genres.library_track_to_dict(e) for e in results],
        "totalTracks": len(results),
        "playlists": list(dict.fromkeys(e.playlist_name for e in results)),
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run("playlist_profiler.server:app", host="0.0.0.0", port=8888, reload=True)
