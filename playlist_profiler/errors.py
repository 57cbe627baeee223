"""Exceptions raised while talking to the Spotify Web API."""

from __future__ import annotations

from typing import Optional


class SpotifyError(Exception):
    """Base class for upstream failures."""


class RateLimited(SpotifyError):
    """Raised when Spotify answers 429 (Too Many Requests)."""

    def __init__(self, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        msg = "Spotify rate limit hit"
        if retry_after is not None:
            msg += f" (retry after {retry_after:g}s)"
        super().__init__(msg)


class UpstreamError(SpotifyError):
    """Non-recoverable HTTP status (4xx other than 429)."""

    def __init__(self, status: int, detail: str = ""):
        self.status = status
        self.detail = detail
        super().__init__(f"Spotify returned HTTP {status}: {detail[:200]}")


class AccessRestricted(UpstreamError):
    """403 Forbidden – the endpoint is not available for these credentials."""


class Unauthorized(UpstreamError):
    """401 – the access token is missing, invalid or expired."""


class UpstreamUnavailable(SpotifyError):
    """5xx or network failure that persisted through every retry."""


class ExhaustedRetries(SpotifyError):
    """The backoff budget was spent before any data could be collected."""

    def __init__(self, path: str, attempts: int):
        self.path = path
        self.attempts = attempts
        super().__init__(f"Gave up on {path} after {attempts} attempts")


class EmptyPlaylist(Exception):
    """The playlist exists but has no analysable tracks."""

    def __init__(self, playlist_id: str):
        self.playlist_id = playlist_id
        super().__init__(f"Playlist {playlist_id} has no tracks")
