"""The request cache router: ``intercept(request) -> response``.

:class:`RequestCacheRouter` classifies each request with a
:class:`~swroute.router.rules.RuleTable` and runs the matching strategy
against the single store named by
:attr:`~swroute.models.RouterConfig.cache_name`.  Non-GET requests never
touch the store.

Requests are independent: there is no per-request locking and concurrent
writes to one key are left to the storage layer.  Work that outlives a
request (detached cache writes, fetches that lost a network-first race) is
tracked so :meth:`RequestCacheRouter.drain` can wait for it before shutdown.
"""

from __future__ import annotations

from typing import Optional

import httpx

from swroute.cache import CacheStorage, CacheStore, snapshot
from swroute.client import Network
from swroute.models import RouterConfig, Strategy
from swroute.output import debug
from swroute.router.rules import Route, RuleTable
from swroute.router.strategies import (
    CacheWriter,
    Clock,
    Stamper,
    cache_first,
    network_first,
    network_only,
)


class RequestCacheRouter:
    """Routes requests through cache-first, network-first or network-only.

    Args:
        config: Immutable routing configuration.
        storage: Cache storage holding the named store.
        network: Transport used for every fetch.  Its origin decides which
            requests are same-origin.
        clock: Optional clock for timestamping and age checks.

    Example::

        async with Network(origin) as network:
            router = RequestCacheRouter(RouterConfig(), CacheStorage(root), network)
            response = await router.intercept(network.build_request("/static/app.js"))
            await router.drain()
    """

    def __init__(
        self,
        config: RouterConfig,
        storage: CacheStorage,
        network: Network,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config
        self._storage = storage
        self._network = network
        self._table = RuleTable(config, network.origin)
        self._stamper = Stamper(config.cached_time_header, clock)
        self._writer = CacheWriter(wait=config.await_cache_writes)

    @property
    def config(self) -> RouterConfig:
        return self._config

    @property
    def stamper(self) -> Stamper:
        return self._stamper

    @property
    def pending_writes(self) -> int:
        return self._writer.pending

    def classify(self, request: httpx.Request) -> Route:
        return self._table.classify(request)

    async def intercept(self, request: httpx.Request) -> httpx.Response:
        """Classify *request* and answer it with the matching strategy."""
        return await self.handle(request, self.classify(request))

    async def handle(self, request: httpx.Request, route: Route) -> httpx.Response:
        """Answer *request* with an already computed *route*."""
        debug(f"{request.method} {request.url} -> {route.rule} ({route.strategy.value})")
        if route.strategy is Strategy.NETWORK_ONLY:
            return await network_only(request, self._network)

        store = await self.open_store()
        if route.strategy is Strategy.CACHE_FIRST:
            return await cache_first(
                request, store, self._network, self._stamper, self._writer, route.max_age
            )
        return await network_first(
            request, store, self._network, self._stamper, self._writer, route.timeout_ms
        )

    async def open_store(self) -> CacheStore:
        return await self._storage.open(self._config.cache_name)

    async def remember(self, request: httpx.Request, response: httpx.Response) -> None:
        """Store a timestamped copy of *response* for *request* and wait for the write."""
        store = await self.open_store()
        await store.put(request, snapshot(response, str(request.url), self._stamper.stamp()))

    def is_from_cache(self, response: httpx.Response) -> bool:
        """True if *response* was replayed from the store rather than fetched."""
        return self._stamper.header in response.headers

    async def drain(self) -> None:
        """Wait for detached cache writes and still-running race losers."""
        if self.pending_writes:
            debug(f"Waiting for {self.pending_writes} background cache write(s)")
        await self._writer.drain()
