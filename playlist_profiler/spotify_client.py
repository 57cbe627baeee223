"""Spotify Web API client – retrying GETs and offset pagination.

Every call goes through the shared :class:`RateLimiter` first.  A 429
response publishes its ``Retry-After`` delay (or the backoff delay) to the
limiter so all concurrent workers pause, then the *same* request is retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

from playlist_profiler import config
from playlist_profiler.errors import (
    AccessRestricted,
    ExhaustedRetries,
    RateLimited,
    Unauthorized,
    UpstreamError,
    UpstreamUnavailable,
)
from playlist_profiler.rate_limiter import BackoffPolicy, Clock, RateLimiter, Sleep

logger = logging.getLogger(__name__)


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _status_error(status: int, detail: str) -> UpstreamError:
    if status == 401:
        return Unauthorized(status, detail)
    if status == 403:
        return AccessRestricted(status, detail)
    return UpstreamError(status, detail)


def _extract_items(data: Any, items_key: str) -> list[dict]:
    """Pull the item list out of a paging object (``"tracks.items"`` style keys)."""
    node = data
    for part in items_key.split("."):
        if not isinstance(node, dict):
            return []
        node = node.get(part)
    return list(node) if isinstance(node, list) else []


@dataclass
class FetchResult:
    """Items collected by :meth:`SpotifyClient.fetch_all_pages`.

    ``truncated`` is True when pagination stopped early because of upstream
    failures (exhausted retries, skipped pages, deadline), not when the
    ``max_items`` cap was reached.
    """

    items: list[dict] = field(default_factory=list)
    truncated: bool = False
    requests: int = 0


class SpotifyClient:
    """Thin async wrapper around the Spotify Web API for one access token."""

    def __init__(
        self,
        token: str,
        *,
        session: Optional[ClientSession] = None,
        limiter: Optional[RateLimiter] = None,
        backoff: Optional[BackoffPolicy] = None,
        base_url: str = config.SPOTIFY_API_BASE,
        timeout: float = config.REQUEST_TIMEOUT,
        deadline: float = config.PAGINATION_DEADLINE,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.token = token
        self.limiter = limiter or RateLimiter()
        self.backoff = backoff or BackoffPolicy()
        self.base_url = base_url.rstrip("/")
        self.timeout = ClientTimeout(total=timeout)
        self.deadline = deadline
        self.clock = clock or self.limiter.clock
        self.sleep = sleep or self.limiter.sleep
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "SpotifyClient":
        if self._session is None:
            self._session = ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    # ------------------------------------------------------------------
    # Single requests
    # ------------------------------------------------------------------

    async def get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> dict:
        """GET ``path`` with retries; raise the matching ``SpotifyError`` on failure."""
        if self._session is None:
            raise RuntimeError("SpotifyClient used outside of 'async with'")

        url = self._url(path)
        last_error: Optional[Exception] = None

        for attempt in range(self.backoff.max_attempts):
            await self.limiter.wait()
            retry_delay: Optional[float] = None

            try:
                async with self._session.get(
                    url,
                    params=params,
                    headers=_auth_header(self.token),
                    timeout=self.timeout,
                ) as resp:
                    if resp.status == 429:
                        delay = self.backoff.wait_for(attempt, resp.headers.get("Retry-After"))
                        logger.warning(
                            f"[{path}] Rate limited (429). Waiting {delay:g}s "
                            f"(attempt {attempt + 1}/{self.backoff.max_attempts})"
                        )
                        self.limiter.record_error()
                        self.limiter.block_for(delay)
                        last_error = RateLimited(delay)
                        continue

                    if resp.status >= 500:
                        detail = await resp.text()
                        logger.error(f"[{path}] HTTP {resp.status} error: {detail[:200]}")
                        self.limiter.record_error()
                        last_error = UpstreamUnavailable(f"{path}: HTTP {resp.status}")
                        retry_delay = self.backoff.delay(attempt)
                    elif resp.status != 200:
                        detail = await resp.text()
                        logger.error(f"[{path}] HTTP {resp.status} error: {detail[:200]}")
                        raise _status_error(resp.status, detail)
                    else:
                        data = await resp.json()
                        self.limiter.record_success()
                        return data or {}
            except (ClientError, asyncio.TimeoutError) as e:
                logger.error(f"[{path}] Request failed: {type(e).__name__}: {e}")
                self.limiter.record_error()
                last_error = UpstreamUnavailable(f"{path}: {type(e).__name__}: {e}")
                retry_delay = self.backoff.delay(attempt)

            if retry_delay is not None and attempt < self.backoff.max_attempts - 1:
                await self.sleep(retry_delay)

        if isinstance(last_error, RateLimited):
            raise ExhaustedRetries(path, self.backoff.max_attempts) from last_error
        raise last_error or UpstreamUnavailable(path)

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    async def fetch_all_pages(
        self,
        path: str,
        page_size: int,
        max_items: int,
        params: Optional[dict[str, Any]] = None,
        *,
        items_key: str = "items",
        central: bool = True,
    ) -> FetchResult:
        """Walk an offset-paginated collection.

        Stops at the first short or empty page, or once ``max_items`` items
        are collected.  At most ``max_items // page_size + 1`` pages are
        requested, and the whole walk is bounded by ``self.deadline`` seconds.

        Central collections (a playlist's own tracks) raise on failure;
        auxiliary ones skip bad pages and return what they have.
        """
        result = FetchResult()
        if max_items <= 0 or page_size <= 0:
            return result

        max_pages = max_items // page_size + 1
        started = self.clock()
        offset = 0

        while len(result.items) < max_items and result.requests < max_pages:
            if self.clock() - started > self.deadline:
                logger.warning(f"[{path}] Pagination deadline of {self.deadline:g}s passed at offset {offset}")
                result.truncated = True
                break

            page_params = dict(params or {})
            page_params.update({"limit": page_size, "offset": offset})
            result.requests += 1

            try:
                data = await self.get_json(path, page_params)
            except ExhaustedRetries as exc:
                if not result.items:
                    raise
                logger.warning(
                    f"[{path}] Retries exhausted at offset {offset}; "
                    f"returning {len(result.items)} item(s) collected so far"
                )
                result.truncated = True
                break
            except UpstreamUnavailable:
                if central:
                    raise
                logger.warning(f"[{path}] Skipping page at offset {offset}")
                result.truncated = True
                offset += page_size
                continue
            except UpstreamError as exc:
                if central:
                    raise
                logger.warning(f"[{path}] Stopping pagination at offset {offset}: HTTP {exc.status}")
                result.truncated = True
                break

            page = _extract_items(data, items_key)
            if not page:
                break
            result.items.extend(page)
            if len(page) < page_size:
                break
            offset += page_size

        if len(result.items) > max_items:
            result.items = result.items[:max_items]
        return result
