"""Tests for the shared artwork cache (remote/artwork.py)."""

from __future__ import annotations

import httpx
import pytest

from remote.artwork import ArtworkCache, ArtworkLoader, get_artwork_cache


class CountingTransport(httpx.AsyncBaseTransport):
    def __init__(self, status: int = 200, body: bytes = b"\xff\xd8jpeg"):
        self.status = status
        self.body = body
        self.requests = 0

    async def handle_async_request(self, request: httpx.Request):
        self.requests += 1
        return httpx.Response(self.status, content=self.body)


def test_cache_evicts_least_recently_used():
    cache = ArtworkCache(max_size=2)
    cache.put("a", b"1")
    cache.put("b", b"2")
    assert cache.get("a") == b"1"  # a is now most recent
    cache.put("c", b"3")

    assert "b" not in cache
    assert "a" in cache and "c" in cache
    assert len(cache) == 2


def test_put_overwrites_existing_entry():
    cache = ArtworkCache(max_size=2)
    cache.put("a", b"old")
    cache.put("a", b"new")
    assert cache.get("a") == b"new"
    assert len(cache) == 1


def test_shared_cache_is_singleton(monkeypatch, tmp_path):
    monkeypatch.setenv("ARTWORK_CACHE_SIZE", "7")
    from remote.config import get_settings
    get_settings.cache_clear()
    get_artwork_cache.cache_clear()

    assert get_artwork_cache() is get_artwork_cache()
    assert get_artwork_cache().max_size == 7
    get_artwork_cache.cache_clear()


@pytest.mark.asyncio
async def test_loader_fetches_once_then_hits_cache():
    transport = CountingTransport()
    loader = ArtworkLoader(ArtworkCache(4), transport=transport)
    url = "https://img.example/1024x1024.jpg"

    assert await loader.load(url) == b"\xff\xd8jpeg"
    assert await loader.load(url) == b"\xff\xd8jpeg"
    assert transport.requests == 1


@pytest.mark.asyncio
async def test_loader_returns_none_on_http_error():
    transport = CountingTransport(status=404)
    loader = ArtworkLoader(ArtworkCache(4), transport=transport)

    assert await loader.load("https://img.example/missing.jpg") is None
    assert len(loader.cache) == 0


@pytest.mark.asyncio
async def test_loader_ignores_empty_url():
    transport = CountingTransport()
    loader = ArtworkLoader(ArtworkCache(4), transport=transport)
    assert await loader.load("") is None
    assert transport.requests == 0
