"""Assembling a ready-to-use worker from the effective configuration.

:func:`open_worker` opens the network transport and the on-disk stores,
builds a :class:`~swroute.worker.ServiceWorker`, and on exit waits for any
background cache writes before closing everything again.  Every CLI
command goes through it; tests pass a mock transport and temporary
directories instead of the XDG defaults.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

import httpx

from swroute.cache import CacheStorage, CollectionStore
from swroute.client import Network
from swroute.config import get_cache_dir, get_data_dir
from swroute.models import GlobalConfig
from swroute.router.strategies import Clock
from swroute.worker import ConsoleHost, ServiceWorker, WorkerHost


@asynccontextmanager
async def open_worker(
    config: GlobalConfig,
    host: Optional[WorkerHost] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    cache_dir: Optional[Union[str, Path]] = None,
    data_dir: Optional[Union[str, Path]] = None,
    clock: Optional[Clock] = None,
) -> AsyncIterator[ServiceWorker]:
    """Yield a :class:`ServiceWorker` wired to *config*.

    Args:
        config: Effective configuration from
            :func:`~swroute.config.resolve_config`.
        host: Platform services; defaults to a :class:`ConsoleHost`.
        transport: Optional httpx transport for the network layer.
        cache_dir: Cache storage root; defaults to :func:`get_cache_dir`.
        data_dir: Data root for synced collections; defaults to
            :func:`get_data_dir`.
        clock: Optional clock for cache timestamps.

    Example::

        async with open_worker(resolve_config()) as worker:
            await worker.on_install()
    """
    storage = CacheStorage(cache_dir if cache_dir is not None else get_cache_dir())
    collections = CollectionStore(data_dir if data_dir is not None else get_data_dir())
    try:
        async with Network(config.origin, config.request, transport=transport) as network:
            worker = ServiceWorker(
                config,
                storage,
                network,
                host if host is not None else ConsoleHost(),
                collections,
                clock=clock,
            )
            try:
                yield worker
            finally:
                await worker.drain()
    finally:
        storage.close()
        collections.close()
