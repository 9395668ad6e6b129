"""Artwork cache shared by every session in the process.

Images are cached as raw bytes keyed by URL. Misses are fetched and written
back; when the cache is full the least-recently-used entry goes.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from functools import lru_cache

import httpx

from remote.config import get_settings

logger = logging.getLogger(__name__)


class ArtworkCache:
    """Simple LRU cache for artwork data (URL -> bytes)."""

    def __init__(self, max_size: int = 64):
        self.max_size = max(1, max_size)
        self._cache: OrderedDict[str, bytes] = OrderedDict()

    def get(self, url: str) -> bytes | None:
        if url in self._cache:
            self._cache.move_to_end(url)
            return self._cache[url]
        return None

    def put(self, url: str, data: bytes) -> None:
        if url in self._cache:
            self._cache.move_to_end(url)
        elif len(self._cache) >= self.max_size:
            self._cache.popitem(last=False)
        self._cache[url] = data

    def clear(self) -> None:
        self._cache.clear()

    def __contains__(self, url: str) -> bool:
        return url in self._cache

    def __len__(self) -> int:
        return len(self._cache)


@lru_cache
def get_artwork_cache() -> ArtworkCache:
    """Process-wide cache, sized from settings."""
    return ArtworkCache(max_size=get_settings().artwork_cache_size)


class ArtworkLoader:
    """Fetches artwork through a shared ``ArtworkCache``."""

    def __init__(
        self,
        cache: ArtworkCache | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.cache = cache if cache is not None else get_artwork_cache()
        self._transport = transport

    async def load(self, url: str) -> bytes | None:
        """Return image bytes for *url*, or None if it cannot be fetched."""
        if not url:
            return None
        cached = self.cache.get(url)
        if cached is not None:
            logger.debug("Artwork cache hit for %s", url)
            return cached

        logger.debug("Artwork cache miss, fetching: %s", url)
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.get(url)
                resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Error loading artwork %s: %s", url, exc)
            return None

        if not resp.content:
            logger.warning("Artwork URL returned 0 bytes: %s", url)
            return None
        self.cache.put(url, resp.content)
        return resp.content
