"""Named, disk-backed response stores.

:class:`CacheStorage` is a registry of named stores living under one root
directory; each :class:`CacheStore` is a :class:`diskcache.Cache` holding
serialised :class:`~swroute.models.CachedResponse` snapshots.  Only GET
responses are ever stored.  Entries have no TTL or size bound at this level:
freshness is judged by the router from the timestamp header injected at write
time, and whole stores are dropped when the cache version changes.

Cache keys are SHA-256 hashes of ``METHOD|URL``.  All blocking diskcache calls
run in a worker thread via :func:`asyncio.to_thread` so that cache access is a
suspension point like any network call.

See Also:
    :mod:`swroute.router.strategies` -- reads and writes these stores.
"""

from __future__ import annotations

import asyncio
import hashlib
import shutil
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional, Union

import diskcache
import httpx

from swroute.exceptions import CacheStoreError, InstallError
from swroute.models import CachedResponse
from swroute.output import debug

if TYPE_CHECKING:
    from swroute.client import Network

RequestLike = Union[httpx.Request, str]


def snapshot(
    response: httpx.Response,
    url: str,
    stamp: Optional[tuple[str, str]] = None,
) -> CachedResponse:
    """Copy *response* into a storable :class:`CachedResponse`.

    Args:
        response: A fully-read response.
        url: The request URL the entry is filed under.
        stamp: Optional ``(header, value)`` pair appended to the headers.
    """
    headers = [(k, v) for k, v in response.headers.multi_items()]
    if stamp is not None:
        headers.append(stamp)
    return CachedResponse(
        url=url,
        status_code=response.status_code,
        reason=response.reason_phrase or "",
        headers=headers,
        body=response.content,
    )


def to_response(entry: CachedResponse, request: Optional[httpx.Request] = None) -> httpx.Response:
    """Rebuild an :class:`httpx.Response` from a stored entry."""
    if request is None:
        request = httpx.Request(entry.method, entry.url)
    # Body is stored decoded; httpx recomputes framing headers.
    headers = [
        (k, v) for k, v in entry.headers
        if k.lower() not in ("content-encoding", "content-length", "transfer-encoding")
    ]
    extensions = {"reason_phrase": entry.reason.encode("ascii", "replace")} if entry.reason else {}
    return httpx.Response(
        status_code=entry.status_code,
        headers=headers,
        content=entry.body,
        request=request,
        extensions=extensions,
    )


def _split(request: RequestLike) -> tuple[str, str]:
    if isinstance(request, httpx.Request):
        return request.method.upper(), str(request.url)
    return "GET", request


class CacheStore:
    """One named store of cached GET responses.

    Args:
        name: Store name (e.g. ``poetize-cache-v1.1.0``).
        directory: Directory backing the :class:`diskcache.Cache`.

    Raises:
        CacheStoreError: If the directory cannot be opened as a cache.
    """

    def __init__(self, name: str, directory: Path) -> None:
        self.name = name
        self._directory = directory
        try:
            self._cache: Optional[diskcache.Cache] = diskcache.Cache(str(directory))
        except (OSError, sqlite3.Error) as exc:
            raise CacheStoreError(f"Cannot open cache store '{name}': {exc}") from exc

    @property
    def directory(self) -> Path:
        return self._directory

    async def match(self, request: RequestLike) -> Optional[CachedResponse]:
        """Return the entry stored for *request*, or ``None``.

        Non-GET requests never match.
        """
        method, url = _split(request)
        if method != "GET":
            return None
        raw = await asyncio.to_thread(self._backend().get, _make_key(method, url))
        if raw is None:
            return None
        return CachedResponse.model_validate(raw)

    async def put(self, request: RequestLike, entry: CachedResponse) -> None:
        """Store *entry* for *request*, replacing any earlier entry.

        Non-GET requests are silently skipped.
        """
        method, url = _split(request)
        if method != "GET":
            return
        data = entry.model_copy(update={"url": url, "method": method}).model_dump()
        await asyncio.to_thread(self._backend().set, _make_key(method, url), data)

    async def delete(self, request: RequestLike) -> bool:
        """Remove the entry for *request*.  Returns True if one existed."""
        method, url = _split(request)
        return await asyncio.to_thread(self._backend().delete, _make_key(method, url))

    async def keys(self) -> list[str]:
        """Return the URLs of all stored entries, sorted."""
        return await asyncio.to_thread(self._urls)

    async def entries(self) -> list[CachedResponse]:
        """Return every stored entry, sorted by URL."""
        return await asyncio.to_thread(self._entries)

    async def add_all(
        self,
        urls: Iterable[str],
        network: Network,
        stamp: Optional[tuple[str, str]] = None,
    ) -> list[str]:
        """Fetch every URL and store the responses, all or nothing.

        Args:
            urls: Paths or absolute URLs; paths are resolved against the
                network's origin.
            network: Transport used for the fetches.
            stamp: Optional ``(header, value)`` pair added to each entry.

        Returns:
            The absolute URLs that were stored.

        Raises:
            InstallError: If any fetch fails or returns a non-2xx status.
                Nothing is stored in that case.
        """
        requests = [network.build_request(url) for url in urls]
        results = await asyncio.gather(
            *(network.fetch(req) for req in requests), return_exceptions=True
        )

        for req, result in zip(requests, results):
            if isinstance(result, BaseException):
                raise InstallError(f"Failed to pre-cache {req.url}: {result}") from result
            if not result.is_success:
                raise InstallError(
                    f"Failed to pre-cache {req.url}: HTTP {result.status_code}"
                )

        for req, result in zip(requests, results):
            await self.put(req, snapshot(result, str(req.url), stamp))
        return [str(req.url) for req in requests]

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()
            self._cache = None

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _backend(self) -> diskcache.Cache:
        if self._cache is None:
            raise CacheStoreError(f"Cache store '{self.name}' is closed")
        return self._cache

    def _entries(self) -> list[CachedResponse]:
        cache = self._backend()
        entries = []
        for key in cache.iterkeys():
            raw = cache.get(key)
            if raw is not None:
                entries.append(CachedResponse.model_validate(raw))
        return sorted(entries, key=lambda e: e.url)

    def _urls(self) -> list[str]:
        return [entry.url for entry in self._entries()]


class CacheStorage:
    """Registry of named :class:`CacheStore` instances under one root.

    Args:
        root: Base directory; stores live in ``<root>/stores/<name>``.

    Example::

        storage = CacheStorage(get_cache_dir())
        store = await storage.open("poetize-cache-v1.1.0")
        names = await storage.keys()
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self._root = Path(root) / "stores"
        self._stores: dict[str, CacheStore] = {}
        self._opening: dict[str, asyncio.Lock] = {}

    @property
    def root(self) -> Path:
        return self._root

    async def open(self, name: str) -> CacheStore:
        """Return the store called *name*, creating it on first use.

        Concurrent first opens of one name share a single handle.
        """
        store = self._stores.get(name)
        if store is not None:
            return store
        lock = self._opening.setdefault(name, asyncio.Lock())
        async with lock:
            store = self._stores.get(name)
            if store is None:
                store = await asyncio.to_thread(CacheStore, name, self._path(name))
                self._stores[name] = store
        if self._opening.get(name) is lock:
            del self._opening[name]
        return store

    async def has(self, name: str) -> bool:
        return name in self._stores or self._path(name).is_dir()

    async def keys(self) -> list[str]:
        """Return the names of all existing stores, sorted."""
        names = set(self._stores)
        if self._root.is_dir():
            names.update(p.name for p in self._root.iterdir() if p.is_dir())
        return sorted(names)

    async def delete(self, name: str) -> bool:
        """Delete the store called *name* and its files.  Returns True if it existed."""
        path = self._path(name)
        store = self._stores.pop(name, None)
        if store is not None:
            store.close()
        if not path.is_dir():
            return store is not None
        await asyncio.to_thread(shutil.rmtree, path)
        debug(f"Deleted cache store {name}")
        return True

    async def clear(self) -> list[str]:
        """Delete every store, whatever its name.  Returns the deleted names."""
        names = await self.keys()
        for name in names:
            await self.delete(name)
        return names

    def close(self) -> None:
        for store in self._stores.values():
            store.close()
        self._stores.clear()

    def _path(self, name: str) -> Path:
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise CacheStoreError(f"Invalid cache store name: {name!r}")
        return self._root / name


def _make_key(method: str, url: str) -> str:
    raw = f"{method.upper()}|{url}"
    return hashlib.sha256(raw.encode()).hexdigest()
