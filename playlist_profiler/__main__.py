"""Command-line entry point.

Usage::

    SPOTIFY_ACCESS_TOKEN=... python -m playlist_profiler <playlist_id> [--max-tracks N] [--out FILE]

Exit codes: 0 on success, 1 on Spotify failures or a missing token, 2 when
the playlist has no analysable tracks.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional, Sequence

from playlist_profiler import config
from playlist_profiler.errors import EmptyPlaylist, SpotifyError
from playlist_profiler.profiler import analyze_playlist, profile_to_dict

logger = logging.getLogger("playlist_profiler")


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="playlist_profiler",
        description="Compute the musical profile of a Spotify playlist.",
    )
    parser.add_argument("playlist_id", help="Spotify playlist ID")
    parser.add_argument(
        "--max-tracks",
        type=int,
        default=config.MAX_TRACKS,
        help=f"maximum number of tracks to analyse (default {config.MAX_TRACKS})",
    )
    parser.add_argument("--out", help="write the profile JSON to this file instead of stdout")
    parser.add_argument(
        "--token",
        default=os.environ.get("SPOTIFY_ACCESS_TOKEN", ""),
        help="Spotify access token (default: $SPOTIFY_ACCESS_TOKEN)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="[%(asctime)s] %(levelname)s - %(message)s",
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    if not args.token:
        logger.error("No access token: set SPOTIFY_ACCESS_TOKEN or pass --token")
        return 1
    if args.max_tracks < 1:
        logger.error("--max-tracks must be at least 1")
        return 1

    try:
        profile = asyncio.run(analyze_playlist(args.token, args.playlist_id, args.max_tracks))
    except EmptyPlaylist as exc:
        logger.error(str(exc))
        return 2
    except SpotifyError as exc:
        logger.error(f"Analysis failed: {exc}")
        return 1

    payload = json.dumps(profile_to_dict(profile), indent=2)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(payload + "\n")
        logger.info(f"Profile written to {args.out}")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
