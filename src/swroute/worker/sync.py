"""Background sync for the ``sync-articles`` tag.

Two independent, best-effort jobs run concurrently:

* **articles** -- POST the first page of the article listing, then fetch
  each article's detail page and store it as HTML in the router's cache so
  it can be read offline.
* **collections** -- GET the signed-in user's saved collections (with the
  configured cookie) and replace the local :class:`~swroute.cache.CollectionStore`.

A failure in one job is logged and recorded in the
:class:`~swroute.models.SyncResult`; it never reaches the caller and never
stops the other job.  Both endpoints answer with the backend's usual
envelope, ``{"code": 200, "data": {"records": [...]}}``.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import httpx

from swroute.cache import CollectionStore
from swroute.client import Network
from swroute.exceptions import SwrouteError
from swroute.models import SyncConfig, SyncResult
from swroute.output import debug, error

if TYPE_CHECKING:
    from swroute.router import RequestCacheRouter


class ArticleSync:
    """Runs the ``sync-articles`` jobs.

    Args:
        config: Endpoints and the fixed pagination body.
        network: Transport for all calls.
        router: Router whose store receives the article pages.
        collections: Local store for the collection list.
    """

    def __init__(
        self,
        config: SyncConfig,
        network: Network,
        router: RequestCacheRouter,
        collections: CollectionStore,
    ) -> None:
        self._config = config
        self._network = network
        self._router = router
        self._collections = collections

    async def run(self) -> SyncResult:
        result = SyncResult(tag=self._config.tag)
        await asyncio.gather(self.sync_articles(result), self.sync_collections(result))
        return result

    async def sync_articles(self, result: SyncResult) -> None:
        try:
            response = await self._network.request(
                "POST", self._config.articles_path, json_body=self._config.articles_query
            )
            records = _records(response.json())
        except Exception as exc:
            _record_failure(result, f"Article list sync failed: {exc}")
            return

        result.articles_listed = len(records)
        debug(f"Article list synced: {len(records)} records")
        warmed = await asyncio.gather(*(self._warm(article) for article in records))
        result.articles_cached = sum(warmed)

    async def sync_collections(self, result: SyncResult) -> None:
        try:
            response = await self._network.request(
                "GET", self._config.collections_path, credentials=True
            )
            if not response.is_success:
                raise SwrouteError(f"HTTP {response.status_code}")
            records = _records(response.json())
            result.collections_saved = await asyncio.to_thread(
                self._collections.replace, records
            )
        except Exception as exc:
            _record_failure(result, f"Collection sync failed: {exc}")
            return
        debug(f"Collections synced: {result.collections_saved} records")

    async def _warm(self, article: Any) -> bool:
        article_id = article.get("id") if isinstance(article, dict) else None
        if article_id is None:
            return False
        request = self._network.build_request(self._config.article_page.format(id=article_id))
        try:
            fetched = await self._network.fetch(request)
            if not fetched.is_success:
                debug(f"Skipping article {article_id}: HTTP {fetched.status_code}")
                return False
            page = httpx.Response(
                200,
                headers={"Content-Type": "text/html"},
                text=fetched.text,
                request=request,
            )
            await self._router.remember(request, page)
        except Exception as exc:
            error(f"Caching article {article_id} failed: {exc}")
            return False
        return True


def _records(payload: Any) -> list[Any]:
    if not isinstance(payload, dict):
        return []
    data = payload.get("data")
    if not isinstance(data, dict):
        return []
    records = data.get("records")
    return records if isinstance(records, list) else []


def _record_failure(result: SyncResult, message: str) -> None:
    error(message)
    result.errors.append(message)
