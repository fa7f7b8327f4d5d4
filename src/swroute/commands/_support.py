"""Helpers shared by the swroute commands.

Every command resolves the effective configuration from the root options
stored on ``ctx.obj``, opens a worker with :func:`~swroute.runtime.open_worker`
and runs one coroutine to completion.  :class:`~swroute.exceptions.SwrouteError`
is reported on stderr and turned into its exit code here, so commands
behave the same under the console script and under ``CliRunner``.
"""

from __future__ import annotations

import asyncio
from contextlib import AbstractAsyncContextManager
from typing import Any, Coroutine, Optional, TypeVar

import typer

from swroute.exceptions import SwrouteError
from swroute.models import GlobalConfig
from swroute.output import error, info
from swroute.worker import ServiceWorker, WorkerHost

T = TypeVar("T")


def _options(ctx: typer.Context) -> dict[str, Any]:
    root = ctx.find_root()
    return root.obj if isinstance(root.obj, dict) else {}


def confirm_or_cancel(ctx: typer.Context, question: str) -> None:
    """Ask *question* unless the root ``--force`` flag is set; exit 0 on "no"."""
    if _options(ctx).get("force"):
        return
    if not typer.confirm(question):
        info("Cancelled.")
        raise typer.Exit()


def effective_config(ctx: typer.Context) -> GlobalConfig:
    """Resolve configuration using the root ``--origin`` / ``--cache-version`` flags.

    Raises:
        typer.Exit: With the error's exit code if the configuration is invalid.
    """
    from swroute.config import resolve_config

    options = _options(ctx)
    try:
        return resolve_config(
            cli_origin=options.get("origin"),
            cli_cache_version=options.get("cache_version"),
        )
    except SwrouteError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def worker_session(
    ctx: typer.Context,
    config: GlobalConfig,
    host: Optional[WorkerHost] = None,
) -> AbstractAsyncContextManager[ServiceWorker]:
    """Open a worker for *config*.

    A transport placed on ``ctx.obj["transport"]`` (tests use
    :class:`httpx.MockTransport`) replaces the real network.
    """
    from swroute.runtime import open_worker

    return open_worker(config, host=host, transport=_options(ctx).get("transport"))


def execute(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* on a fresh event loop.

    Raises:
        typer.Exit: With the error's exit code on :class:`SwrouteError`.
    """
    try:
        return asyncio.run(coro)
    except SwrouteError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
