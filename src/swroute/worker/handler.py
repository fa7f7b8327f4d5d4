"""The worker: one handler method per lifecycle event.

:class:`ServiceWorker` is what a hosting environment dispatches to.  It owns
no platform registration logic; the host decides when ``install``,
``activate``, ``fetch`` and the other events fire and calls the matching
``on_*`` coroutine.

=====================  ==================================================
Event                  Handler
=====================  ==================================================
install                :meth:`ServiceWorker.on_install`
activate               :meth:`ServiceWorker.on_activate`
fetch                  :meth:`ServiceWorker.on_fetch`
message                :meth:`ServiceWorker.on_message`
push                   :meth:`ServiceWorker.on_push`
notificationclick      :meth:`ServiceWorker.on_notification_click`
notificationclose      :meth:`ServiceWorker.on_notification_close`
sync                   :meth:`ServiceWorker.on_sync`
=====================  ==================================================
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Union

import httpx

from swroute.cache import CacheStorage, CollectionStore
from swroute.client import Network
from swroute.models import (
    GlobalConfig,
    MessageType,
    Notification,
    SyncResult,
    WorkerMessage,
)
from swroute.output import debug, info
from swroute.router import RequestCacheRouter
from swroute.router.strategies import Clock
from swroute.worker.host import WindowClient, WorkerHost
from swroute.worker.notifications import build_notification
from swroute.worker.sync import ArticleSync

ReplyPort = Callable[[dict[str, Any]], None]


class ServiceWorker:
    """Lifecycle event handler wrapping a :class:`RequestCacheRouter`.

    Args:
        config: Effective configuration.  ``config.router`` is handed to the
            router unchanged.
        storage: Cache storage shared with the router.
        network: Transport; its origin is the origin this worker serves.
        host: Platform services (windows, notifications, registration).
        collections: Local store for synced collections.
        clock: Optional clock passed to the router.

    Example::

        worker = ServiceWorker(config, storage, network, ConsoleHost(), collections)
        await worker.on_install()
        await worker.on_activate()
        response = await worker.on_fetch(network.build_request("/"))
    """

    def __init__(
        self,
        config: GlobalConfig,
        storage: CacheStorage,
        network: Network,
        host: WorkerHost,
        collections: CollectionStore,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config
        self._storage = storage
        self._network = network
        self._host = host
        self._router = RequestCacheRouter(config.router, storage, network, clock=clock)
        self._sync = ArticleSync(config.sync, network, self._router, collections)

    @property
    def router(self) -> RequestCacheRouter:
        return self._router

    @property
    def network(self) -> Network:
        return self._network

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def on_install(self) -> list[str]:
        """Pre-cache the shell manifest, then ask to replace the active worker.

        Returns:
            The absolute URLs that were cached.

        Raises:
            InstallError: If any manifest URL could not be fetched; nothing
                is cached and the worker does not take over.
        """
        router_config = self._config.router
        info("Installing...")
        store = await self._storage.open(router_config.cache_name)
        cached = await store.add_all(
            router_config.precache_urls, self._network, self._router.stamper.stamp()
        )
        debug(f"Pre-cached {len(cached)} shell URLs into {router_config.cache_name}")
        await self._host.skip_waiting()
        return cached

    async def on_activate(self) -> list[str]:
        """Delete stores left by older versions, then claim open pages.

        Only stores carrying this router's prefix are considered; the
        current version's store and unrelated stores are kept.

        Returns:
            Names of the deleted stores.
        """
        router_config = self._config.router
        info("Activating...")
        deleted = []
        for name in await self._storage.keys():
            if name != router_config.cache_name and router_config.owns(name):
                info(f"Deleting old cache: {name}")
                await self._storage.delete(name)
                deleted.append(name)
        await self._host.claim_clients()
        return deleted

    async def on_fetch(self, request: httpx.Request) -> Optional[httpx.Response]:
        """Answer an intercepted request.

        Returns ``None`` for requests the worker does not intercept
        (non-GET, foreign origin); the host then performs its default fetch.
        """
        route = self._router.classify(request)
        if not route.intercepted:
            debug(f"Not intercepted: {request.method} {request.url}")
            return None
        return await self._router.handle(request, route)

    async def on_message(
        self,
        message: Union[WorkerMessage, dict[str, Any]],
        reply: Optional[ReplyPort] = None,
    ) -> Optional[dict[str, Any]]:
        """Handle a message posted by a page.

        ``CLEAR_CACHE`` and ``CHECK_UPDATE`` acknowledge through *reply*
        once their work is done; the acknowledgement is also returned.
        Unknown message types are ignored.
        """
        if not isinstance(message, WorkerMessage):
            message = WorkerMessage.model_validate(message)

        if message.type == MessageType.SKIP_WAITING.value:
            await self._host.skip_waiting()
            return None

        if message.type == MessageType.CLEAR_CACHE.value:
            deleted = await self._storage.clear()
            debug(f"Cleared caches: {', '.join(deleted) or 'none'}")
            return _acknowledge(reply, {"success": True})

        if message.type == MessageType.CHECK_UPDATE.value:
            await self._host.update_registration()
            return _acknowledge(reply, {"hasUpdate": True})

        debug(f"Ignoring message of type {message.type!r}")
        return None

    async def on_push(self, payload: Optional[Union[bytes, str]]) -> Notification:
        """Show a notification for a push *payload*."""
        info("Push message received")
        notification = build_notification(payload, self._config.notifications)
        await self._host.show_notification(notification)
        return notification

    async def on_notification_click(
        self,
        notification: Notification,
        action: str = "",
    ) -> Optional[WindowClient]:
        """Focus or open the page a notification points to.

        Dismiss actions (``close`` / ``dismiss``) do nothing beyond closing
        the notification.

        Returns:
            The focused or opened window, or ``None``.
        """
        debug(f"Notification clicked: {action or '<body>'}")
        if action in self._config.notifications.dismiss_actions:
            return None

        target = str(self._network.resolve(str(notification.data.get("url") or "/")))
        for window in await self._host.match_windows():
            if window.url == target:
                await window.focus()
                return window
        return await self._host.open_window(target)

    async def on_notification_close(self, notification: Notification) -> None:
        debug(f"Notification closed: {notification.title}")

    async def on_sync(self, tag: str) -> Optional[SyncResult]:
        """Run the background sync registered under *tag*.

        Returns ``None`` for unknown tags.  Sub-task failures are reported in
        the result, never raised.
        """
        info(f"Background sync: {tag}")
        if tag != self._config.sync.tag:
            debug(f"No sync job registered for tag {tag!r}")
            return None
        return await self._sync.run()

    async def drain(self) -> None:
        """Wait for cache writes still in flight."""
        await self._router.drain()


def _acknowledge(reply: Optional[ReplyPort], body: dict[str, Any]) -> dict[str, Any]:
    if reply is not None:
        reply(body)
    else:
        debug("Message carried no reply port")
    return body
