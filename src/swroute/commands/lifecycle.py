"""Lifecycle commands -- dispatch worker events from the command line.

Each command fires exactly one event at a freshly opened worker:

* ``swroute install`` -- pre-cache the app shell.
* ``swroute activate`` -- delete stores left by older cache versions.
* ``swroute push [PAYLOAD]`` -- show the notification for a push payload.
* ``swroute click`` -- handle a click on a notification.
* ``swroute sync TAG`` -- run a background sync job.
* ``swroute message TYPE`` -- post a message to the worker.

A typical upgrade is ``swroute --cache-version v1.2.0 install`` followed by
``swroute --cache-version v1.2.0 activate``.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import typer

from swroute.commands._support import effective_config, execute, worker_session
from swroute.exit_codes import EXIT_INVALID_USAGE
from swroute.models import MessageType, Notification, SyncResult
from swroute.output import error, format_response, info, print_table, success, warning
from swroute.worker import ConsoleHost


def install_command(ctx: typer.Context) -> None:
    """Pre-cache the app shell into the current cache version.

    Nothing is stored unless every shell URL is fetched successfully; the
    command then exits with code 6.

    Example::

        swroute install
    """
    config = effective_config(ctx)

    async def _run() -> list[str]:
        async with worker_session(ctx, config) as worker:
            return await worker.on_install()

    cached = execute(_run())
    print_table(["URL"], [[url] for url in cached], title=config.router.cache_name)
    success(f"Installed {len(cached)} URLs into {config.router.cache_name}.")


def activate_command(ctx: typer.Context) -> None:
    """Delete cache stores belonging to older versions.

    Example::

        swroute activate
        swroute --cache-version v1.2.0 activate
    """
    config = effective_config(ctx)

    async def _run() -> list[str]:
        async with worker_session(ctx, config) as worker:
            return await worker.on_activate()

    deleted = execute(_run())
    if deleted:
        success(f"Deleted {len(deleted)} old cache(s): {', '.join(deleted)}")
    else:
        info("No old caches to delete.")
    success(f"Active cache: {config.router.cache_name}")


def push_command(
    ctx: typer.Context,
    payload: Optional[str] = typer.Argument(
        None, help="Push payload: a JSON object or plain text."
    ),
) -> None:
    """Show the notification a push PAYLOAD would produce.

    Example::

        swroute push
        swroute push '{"title": "New comment", "data": {"url": "/article?id=7"}}'
        swroute push "Server restarting"
    """
    config = effective_config(ctx)

    async def _run() -> Notification:
        async with worker_session(ctx, config) as worker:
            return await worker.on_push(payload)

    notification = execute(_run())
    format_response(notification.model_dump(mode="json"))


def click_command(
    ctx: typer.Context,
    action: str = typer.Option(
        "", "--action", "-a", help="Clicked action; empty for the notification body."
    ),
    url: Optional[str] = typer.Option(
        None, "--url", "-u", help="Target URL carried in the notification data."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the target instead of opening a browser."
    ),
) -> None:
    """Handle a click on a notification.

    Example::

        swroute click --url /article?id=7
        swroute click --action close
    """
    from swroute.worker.notifications import build_notification

    config = effective_config(ctx)
    payload = json.dumps({"data": {"url": url}}) if url else None
    notification = build_notification(payload, config.notifications)
    host = ConsoleHost(open_browser=not no_browser)

    async def _run() -> Optional[str]:
        async with worker_session(ctx, config, host=host) as worker:
            window = await worker.on_notification_click(notification, action)
            await worker.on_notification_close(notification)
            return window.url if window is not None else None

    target = execute(_run())
    if target is None:
        info("Notification dismissed.")
    else:
        success(f"Opened {target}")


def sync_command(
    ctx: typer.Context,
    tag: str = typer.Argument(help="Sync tag, e.g. 'sync-articles'."),
) -> None:
    """Run the background sync registered under TAG.

    Sync is best-effort: failures are reported as warnings and the command
    still succeeds.

    Example::

        swroute sync sync-articles
    """
    config = effective_config(ctx)

    async def _run() -> Optional[SyncResult]:
        async with worker_session(ctx, config) as worker:
            return await worker.on_sync(tag)

    result = execute(_run())
    if result is None:
        warning(f"No sync job registered for tag '{tag}'.")
        return
    for message in result.errors:
        warning(message)
    format_response(result.model_dump(mode="json"))


def message_command(
    ctx: typer.Context,
    message_type: str = typer.Argument(
        metavar="TYPE", help="SKIP_WAITING, CLEAR_CACHE or CHECK_UPDATE."
    ),
) -> None:
    """Post a message of TYPE to the worker and print its reply.

    Example::

        swroute message CLEAR_CACHE
        swroute message CHECK_UPDATE
    """
    known = [member.value for member in MessageType]
    if message_type not in known:
        error(f"Unknown message type: {message_type} (expected one of {', '.join(known)})")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    config = effective_config(ctx)
    replies: list[dict[str, Any]] = []

    async def _run() -> None:
        async with worker_session(ctx, config) as worker:
            await worker.on_message({"type": message_type}, reply=replies.append)

    execute(_run())
    if replies:
        format_response(replies[0])
    else:
        success(f"{message_type} delivered.")
