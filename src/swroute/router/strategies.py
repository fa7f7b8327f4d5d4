"""The three caching strategies and the bookkeeping they share.

* :func:`cache_first` -- serve a fresh cached entry without touching the
  network; otherwise fetch, store a timestamped copy, and return the live
  response.
* :func:`network_first` -- race a live fetch against a timer; the timer
  answers from the cache if the network is too slow.
* :func:`network_only` -- plain fetch, no cache interaction.

Only HTTP 200 responses to GET requests are ever written.  Each written
entry gets a retrieval timestamp header (ISO-8601) that :class:`Stamper`
reads back to compute the entry's age.

Writes after a network success go through :class:`CacheWriter`.  By default
they are detached tasks: the response reaches the caller before the write
has necessarily landed, so a read issued right afterwards may still see the
previous entry.  :meth:`CacheWriter.drain` waits for every outstanding write.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from swroute.cache.storage import CacheStore, snapshot, to_response
from swroute.client import Network
from swroute.exceptions import NetworkTimeoutError
from swroute.models import CachedResponse
from swroute.output import debug, warning

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Stamper:
    """Writes and reads the retrieval timestamp header.

    Args:
        header: Header name carrying the timestamp.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(self, header: str, clock: Optional[Clock] = None) -> None:
        self.header = header
        self._clock = clock or utcnow

    def now(self) -> datetime:
        moment = self._clock()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment

    def stamp(self) -> tuple[str, str]:
        """Return the ``(header, value)`` pair for an entry written now."""
        return self.header, _format_timestamp(self.now())

    def age(self, entry: CachedResponse) -> Optional[float]:
        """Seconds since *entry* was written, or ``None`` if it carries no usable stamp."""
        value = entry.header(self.header)
        if value is None:
            return None
        written = _parse_timestamp(value)
        if written is None:
            return None
        return (self.now() - written).total_seconds()

    def is_fresh(self, entry: CachedResponse, max_age: Optional[int]) -> bool:
        """Entries without a stamp are stale whenever a max-age applies."""
        if max_age is None:
            return True
        age = self.age(entry)
        return age is not None and age <= max_age


class CacheWriter:
    """Schedules cache writes and keeps track of detached work.

    Args:
        wait: Await each write before returning instead of detaching it.
    """

    def __init__(self, wait: bool = False) -> None:
        self._wait = wait
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def write(self, store: CacheStore, request: httpx.Request, entry: CachedResponse) -> None:
        if self._wait:
            await store.put(request, entry)
            return
        self.track(asyncio.ensure_future(store.put(request, entry)))

    def track(self, task: asyncio.Future) -> None:
        """Keep *task* alive until it finishes; its failure is logged, never raised."""
        self._pending.add(task)
        task.add_done_callback(self._finished)

    async def drain(self) -> None:
        """Wait until no tracked work is left, including writes spawned meanwhile."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _finished(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            warning(f"Background cache work failed: {exc}")


async def fetch_and_cache(
    request: httpx.Request,
    store: CacheStore,
    network: Network,
    stamper: Stamper,
    writer: CacheWriter,
) -> httpx.Response:
    """Fetch *request*; store a timestamped copy of a 200 GET response."""
    try:
        response = await network.fetch(request)
    except Exception as exc:
        debug(f"Network request failed: {exc}")
        raise
    if response.status_code == 200 and request.method.upper() == "GET":
        entry = snapshot(response, str(request.url), stamper.stamp())
        await writer.write(store, request, entry)
    return response


async def cache_first(
    request: httpx.Request,
    store: CacheStore,
    network: Network,
    stamper: Stamper,
    writer: CacheWriter,
    max_age: Optional[int] = None,
) -> httpx.Response:
    """Serve a fresh cached entry, else fetch and populate.

    A fresh entry is returned as-is with no revalidation request.  There is
    no timeout on the network fallback beyond the transport's own.
    """
    entry = await store.match(request)
    if entry is not None:
        if stamper.is_fresh(entry, max_age):
            debug(f"Cache hit: {request.url}")
            return to_response(entry, request)
        debug(f"Cache entry expired: {request.url}")
    return await fetch_and_cache(request, store, network, stamper, writer)


async def network_first(
    request: httpx.Request,
    store: CacheStore,
    network: Network,
    stamper: Stamper,
    writer: CacheWriter,
    timeout_ms: Optional[int] = None,
) -> httpx.Response:
    """Prefer the network; answer from the cache once *timeout_ms* has passed.

    Whichever branch settles first decides the outcome, including a fetch
    that fails before the timer fires.  A fetch that loses the race is not
    cancelled, so its cache write still lands for the next request.

    Raises:
        NetworkTimeoutError: The timer fired and nothing was cached.
        OriginUnreachableError: The fetch failed before the timer fired.
    """
    fetch = asyncio.ensure_future(fetch_and_cache(request, store, network, stamper, writer))
    if timeout_ms is None:
        return await fetch

    timer = asyncio.ensure_future(_cached_after(request, store, timeout_ms))
    try:
        done, _ = await asyncio.wait({fetch, timer}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        timer.cancel()
        writer.track(fetch)
        raise

    if fetch in done:
        if timer.done():
            _settle(timer)
        else:
            timer.cancel()
        return fetch.result()

    writer.track(fetch)
    return timer.result()


async def network_only(request: httpx.Request, network: Network) -> httpx.Response:
    return await network.fetch(request)


async def _cached_after(request: httpx.Request, store: CacheStore, timeout_ms: int) -> httpx.Response:
    await asyncio.sleep(timeout_ms / 1000)
    entry = await store.match(request)
    if entry is None:
        raise NetworkTimeoutError(
            f"No response from network within {timeout_ms} ms and nothing cached for {request.url}"
        )
    debug(f"Network timed out, serving cache: {request.url}")
    return to_response(entry, request)


def _settle(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()


def _format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

