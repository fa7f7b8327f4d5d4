"""Cache commands -- inspect and clear the on-disk cache stores.

Provides the ``swroute cache`` sub-command group.  Stores live under the
cache directory (see :func:`~swroute.config.get_cache_dir`), one per cache
version; only the store named by the current version is read by the
router.
"""

from __future__ import annotations

from typing import Optional

import httpx
import typer

from swroute.cache import CacheStorage, CollectionStore
from swroute.commands._support import confirm_or_cancel, effective_config, execute
from swroute.exit_codes import EXIT_CACHE_ERROR
from swroute.output import error, format_response, info, print_table, success, warning


cache_app = typer.Typer(no_args_is_help=True)


def _storage() -> CacheStorage:
    from swroute.config import get_cache_dir

    return CacheStorage(get_cache_dir())


@cache_app.command("list")
def cache_list(ctx: typer.Context) -> None:
    """List cache stores with their entry counts.

    The store used by the current cache version is marked ``*``.

    Example::

        swroute cache list
    """
    config = effective_config(ctx)
    storage = _storage()

    async def _run() -> list[list[str]]:
        rows = []
        for name in await storage.keys():
            store = await storage.open(name)
            marker = "*" if name == config.router.cache_name else ""
            rows.append([name, str(len(await store.keys())), marker])
        return rows

    try:
        rows = execute(_run())
    finally:
        storage.close()

    if not rows:
        info("No cache stores.")
        return
    print_table(["Store", "Entries", "Current"], rows, title="Cache stores")


@cache_app.command("show")
def cache_show(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(
        None, help="Store name; defaults to the current cache version."
    ),
) -> None:
    """Show the entries of a cache store.

    Example::

        swroute cache show
        swroute cache show poetize-cache-v1.0.0
    """
    config = effective_config(ctx)
    store_name = name or config.router.cache_name
    header = config.router.cached_time_header
    storage = _storage()

    async def _run() -> Optional[list[list[str]]]:
        if not await storage.has(store_name):
            return None
        store = await storage.open(store_name)
        return [
            [entry.url, str(entry.status_code), entry.header(header) or "-"]
            for entry in await store.entries()
        ]

    try:
        rows = execute(_run())
    finally:
        storage.close()

    if rows is None:
        error(f"Cache store '{store_name}' not found.")
        raise typer.Exit(code=EXIT_CACHE_ERROR)
    if not rows:
        info(f"Cache store '{store_name}' is empty.")
        return
    print_table(["URL", "Status", "Cached at"], rows, title=store_name)


@cache_app.command("collections")
def cache_collections() -> None:
    """Print the collection records saved by the last ``sync-articles`` run.

    Example::

        swroute --json cache collections
    """
    from swroute.config import get_data_dir

    collections = CollectionStore(get_data_dir())
    try:
        count = collections.count()
        records = collections.all()
    finally:
        collections.close()

    if not count:
        info("No synced collections.")
        return
    info(f"{count} collection record(s) saved offline.")
    format_response(records)

@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(
        None, help="Store to delete; all stores when omitted."
    ),
    url: Optional[str] = typer.Option(
        None, "--url", help="Drop only this entry (path or URL) from the store."
    ),
) -> None:
    """Delete one cache store or all of them.

    With ``--url`` only that entry is removed, from NAME or from the
    current store.  Asks for confirmation unless ``--force`` is active.

    Example::

        swroute cache clear
        swroute --force cache clear poetize-cache-v1.0.0
        swroute cache clear --url /api/webInfo/getWebInfo
    """
    if url is not None:
        _drop_entry(ctx, name, url)
        return

    confirm_or_cancel(ctx, f"Delete cache store '{name}'?" if name else "Delete all cache stores?")

    storage = _storage()

    async def _run() -> list[str]:
        if name is None:
            return await storage.clear()
        return [name] if await storage.delete(name) else []

    try:
        deleted = execute(_run())
    finally:
        storage.close()

    if name is not None and not deleted:
        error(f"Cache store '{name}' not found.")
        raise typer.Exit(code=EXIT_CACHE_ERROR)
    success(f"Deleted {len(deleted)} cache store(s).")


def _drop_entry(ctx: typer.Context, name: Optional[str], url: str) -> None:
    config = effective_config(ctx)
    store_name = name or config.router.cache_name
    target = str(httpx.URL(config.origin + "/").join(url))
    confirm_or_cancel(ctx, f"Delete {target} from '{store_name}'?")

    storage = _storage()

    async def _run() -> Optional[bool]:
        if not await storage.has(store_name):
            return None
        store = await storage.open(store_name)
        return await store.delete(target)

    try:
        removed = execute(_run())
    finally:
        storage.close()

    if removed is None:
        error(f"Cache store '{store_name}' not found.")
        raise typer.Exit(code=EXIT_CACHE_ERROR)
    if not removed:
        warning(f"{target} is not cached in '{store_name}'.")
        return
    success(f"Deleted {target} from '{store_name}'.")
