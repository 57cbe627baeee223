"""Environment configuration loaded from .env file."""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, fallback: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


def _env_float(name: str, fallback: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return fallback
    try:
        return float(raw)
    except ValueError:
        return fallback


SPOTIFY_API_BASE: str = os.environ.get("SPOTIFY_API_BASE", "https://api.spotify.com/v1")

# Per-request timeout (seconds) and overall pagination deadline.
REQUEST_TIMEOUT: float = _env_float("REQUEST_TIMEOUT", 15.0)
PAGINATION_DEADLINE: float = _env_float("PAGINATION_DEADLINE", 300.0)

# Playlist pagination
MAX_TRACKS: int = _env_int("MAX_TRACKS", 2000)
PAGE_SIZE: int = _env_int("PAGE_SIZE", 100)

# Spotify batch endpoints: /artists takes 50 ids, /audio-features takes 100.
ARTIST_BATCH_SIZE: int = _env_int("ARTIST_BATCH_SIZE", 50)
FEATURES_BATCH_SIZE: int = _env_int("FEATURES_BATCH_SIZE", 100)
BATCH_DELAY: float = _env_float("BATCH_DELAY", 0.1)

# Retry / backoff
MAX_RETRIES: int = _env_int("MAX_RETRIES", 5)
BACKOFF_BASE: float = _env_float("BACKOFF_BASE", 1.0)
BACKOFF_CAP: float = _env_float("BACKOFF_CAP", 16.0)
BACKOFF_JITTER: float = _env_float("BACKOFF_JITTER", 0.1)
MIN_REQUEST_INTERVAL: float = _env_float("MIN_REQUEST_INTERVAL", 0.3)

# Concurrency caps
FETCH_CONCURRENCY: int = _env_int("FETCH_CONCURRENCY", 4)
PLAYLIST_CONCURRENCY: int = _env_int("PLAYLIST_CONCURRENCY", 2)

# Static artist/song/genre tables used for recommendations
REFERENCE_CATALOG_PATH: str = os.environ.get("REFERENCE_CATALOG_PATH", "")

# Frontend URL for CORS
FRONTEND_URL: str = os.environ.get("FRONTEND_URL", "http://localhost:5173")

LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
