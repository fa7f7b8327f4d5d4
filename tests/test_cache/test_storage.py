"""Tests for the named response stores (swroute.cache.storage)."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from swroute.cache import CacheStorage, CacheStore, snapshot, to_response
from swroute.cache import storage as storage_module
from swroute.exceptions import CacheStoreError, InstallError
from swroute.models import CachedResponse


URL = "https://poetize.test/static/app.js"


def _entry(body: bytes = b"x", url: str = URL) -> CachedResponse:
    return CachedResponse(
        url=url,
        status_code=200,
        reason="OK",
        headers=[("content-type", "application/javascript")],
        body=body,
    )


@pytest.fixture
async def store(storage: CacheStorage) -> CacheStore:
    return await storage.open("poetize-cache-v1.1.0")


@pytest.fixture
def opened(monkeypatch: pytest.MonkeyPatch) -> list[CacheStore]:
    """Record every CacheStore the storage layer constructs."""
    created: list[CacheStore] = []

    def _open(name: str, directory: Path) -> CacheStore:
        created.append(CacheStore(name, directory))
        return created[-1]

    monkeypatch.setattr(storage_module, "CacheStore", _open)
    return created


# ------------------------------------------------------------------ #
# Snapshots
# ------------------------------------------------------------------ #


class TestSnapshot:
    def test_snapshot_keeps_status_headers_and_body(self) -> None:
        response = httpx.Response(
            200,
            headers=[("Set-Cookie", "a=1"), ("Set-Cookie", "b=2"), ("Content-Type", "text/plain")],
            content=b"hello",
        )
        entry = snapshot(response, URL, ("sw-cached-time", "2025-01-01T00:00:00.000Z"))

        assert entry.status_code == 200
        assert entry.reason == "OK"
        assert entry.body == b"hello"
        assert [v for k, v in entry.headers if k.lower() == "set-cookie"] == ["a=1", "b=2"]
        assert entry.headers[-1] == ("sw-cached-time", "2025-01-01T00:00:00.000Z")

    def test_to_response_round_trips_the_body(self) -> None:
        entry = _entry(b"console.log(1)")
        response = to_response(entry)

        assert response.status_code == 200
        assert response.content == b"console.log(1)"
        assert response.headers["content-type"] == "application/javascript"
        assert response.request.url == URL

    def test_custom_reason_phrase_is_replayed(self) -> None:
        live = httpx.Response(299, content=b"ok", extensions={"reason_phrase": b"Served Stale"})
        entry = snapshot(live, URL)

        assert entry.reason == "Served Stale"
        assert to_response(entry).reason_phrase == "Served Stale"

    def test_missing_reason_falls_back_to_standard_phrase(self) -> None:
        entry = CachedResponse(url=URL, status_code=404, body=b"")
        assert to_response(entry).reason_phrase == "Not Found"

    def test_to_response_drops_stale_framing_headers(self) -> None:
        entry = CachedResponse(
            url=URL,
            status_code=200,
            headers=[("Content-Encoding", "gzip"), ("Content-Length", "999")],
            body=b"plain",
        )
        response = to_response(entry)

        assert "content-encoding" not in response.headers
        assert response.headers["content-length"] == "5"
        assert response.text == "plain"

    def test_header_lookup_is_case_insensitive(self) -> None:
        assert _entry().header("Content-Type") == "application/javascript"
        assert _entry().header("x-missing") is None


# ------------------------------------------------------------------ #
# CacheStore
# ------------------------------------------------------------------ #


class TestCacheStore:
    async def test_put_and_match(self, store: CacheStore) -> None:
        request = httpx.Request("GET", URL)
        await store.put(request, _entry(b"v1"))

        entry = await store.match(httpx.Request("GET", URL))
        assert entry is not None
        assert entry.body == b"v1"

    async def test_match_by_url_string(self, store: CacheStore) -> None:
        await store.put(URL, _entry())
        assert await store.match(URL) is not None

    async def test_put_replaces_earlier_entry(self, store: CacheStore) -> None:
        await store.put(URL, _entry(b"v1"))
        await store.put(URL, _entry(b"v2"))
        assert (await store.match(URL)).body == b"v2"
        assert await store.keys() == [URL]

    async def test_entry_is_filed_under_the_request_url(self, store: CacheStore) -> None:
        await store.put(URL, _entry(url="https://elsewhere.test/"))
        assert (await store.match(URL)).url == URL

    async def test_non_get_is_never_stored_or_matched(self, store: CacheStore) -> None:
        request = httpx.Request("POST", URL)
        await store.put(request, _entry())

        assert await store.keys() == []
        await store.put(URL, _entry())
        assert await store.match(request) is None

    async def test_query_string_is_part_of_the_key(self, store: CacheStore) -> None:
        await store.put(f"{URL}?v=1", _entry(b"one"))
        assert await store.match(URL) is None
        assert (await store.match(f"{URL}?v=1")).body == b"one"

    async def test_delete(self, store: CacheStore) -> None:
        await store.put(URL, _entry())
        assert await store.delete(URL) is True
        assert await store.delete(URL) is False
        assert await store.match(URL) is None

    async def test_keys_and_entries_are_sorted(self, store: CacheStore) -> None:
        await store.put("https://poetize.test/b", _entry())
        await store.put("https://poetize.test/a", _entry())

        assert await store.keys() == ["https://poetize.test/a", "https://poetize.test/b"]
        assert [e.url for e in await store.entries()] == await store.keys()

    async def test_closed_store_raises(self, store: CacheStore) -> None:
        store.close()
        with pytest.raises(CacheStoreError):
            await store.match(URL)

    async def test_entries_survive_reopen(self, tmp_path: Path) -> None:
        first = CacheStorage(tmp_path)
        await (await first.open("s")).put(URL, _entry(b"persisted"))
        first.close()

        second = CacheStorage(tmp_path)
        entry = await (await second.open("s")).match(URL)
        second.close()
        assert entry.body == b"persisted"


class TestAddAll:
    async def test_all_urls_are_stored(self, store: CacheStore, backend, network) -> None:
        backend.add("/", "<html></html>")
        backend.add("/manifest.json", "{}")

        cached = await store.add_all(["/", "/manifest.json"], network, ("sw-cached-time", "t"))

        assert cached == ["https://poetize.test/", "https://poetize.test/manifest.json"]
        assert await store.keys() == cached
        assert (await store.match(cached[0])).header("sw-cached-time") == "t"

    async def test_one_failure_stores_nothing(self, store: CacheStore, backend, network) -> None:
        backend.add("/", "<html></html>")
        backend.add("/offline.html", status=500)

        with pytest.raises(InstallError, match="offline.html"):
            await store.add_all(["/", "/offline.html"], network)
        assert await store.keys() == []

    async def test_transport_failure_stores_nothing(self, store: CacheStore, backend, network) -> None:
        backend.add("/", "<html></html>")
        backend.add("/poetize.jpg", fail=True)

        with pytest.raises(InstallError):
            await store.add_all(["/", "/poetize.jpg"], network)
        assert await store.keys() == []


# ------------------------------------------------------------------ #
# CacheStorage
# ------------------------------------------------------------------ #


class TestCacheStorage:
    async def test_open_creates_store_on_demand(self, storage: CacheStorage) -> None:
        assert await storage.has("poetize-cache-v1.1.0") is False
        store = await storage.open("poetize-cache-v1.1.0")
        assert store.directory == storage.root / "poetize-cache-v1.1.0"
        assert await storage.has("poetize-cache-v1.1.0") is True

    async def test_open_returns_the_same_handle(self, storage: CacheStorage) -> None:
        assert await storage.open("a") is await storage.open("a")

    async def test_concurrent_first_opens_share_one_handle(
        self, storage: CacheStorage, opened: list[CacheStore]
    ) -> None:
        stores = await asyncio.gather(*(storage.open("poetize-cache-v1.1.0") for _ in range(5)))

        assert len(opened) == 1
        assert all(store is opened[0] for store in stores)

    async def test_close_releases_every_handle_after_concurrent_opens(
        self, storage: CacheStorage, opened: list[CacheStore]
    ) -> None:
        await asyncio.gather(*(storage.open("a") for _ in range(3)), storage.open("b"))
        storage.close()

        assert len(opened) == 2
        for store in opened:
            with pytest.raises(CacheStoreError, match="closed"):
                await store.keys()

    async def test_keys_are_sorted_store_names(self, storage: CacheStorage) -> None:
        await storage.open("poetize-cache-v1.1.0")
        await storage.open("poetize-cache-v1.0.0")
        await storage.open("other")
        assert await storage.keys() == ["other", "poetize-cache-v1.0.0", "poetize-cache-v1.1.0"]

    async def test_delete_removes_files(self, storage: CacheStorage) -> None:
        store = await storage.open("old")
        await store.put(URL, _entry())

        assert await storage.delete("old") is True
        assert not (storage.root / "old").exists()
        assert await storage.keys() == []
        assert await storage.delete("old") is False

    async def test_clear_deletes_every_store(self, storage: CacheStorage) -> None:
        await storage.open("a")
        await storage.open("b")
        assert await storage.clear() == ["a", "b"]
        assert await storage.keys() == []

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b", "a\\b"])
    async def test_invalid_names_are_rejected(self, storage: CacheStorage, name: str) -> None:
        with pytest.raises(CacheStoreError):
            await storage.open(name)
