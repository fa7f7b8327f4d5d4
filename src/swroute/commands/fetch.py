"""Fetch command -- send one request through the router.

``swroute fetch PATH`` dispatches a fetch event to the worker exactly as a
page would.  Intercepted requests are answered by the matching strategy;
requests the worker does not intercept (non-GET, foreign origin) go
straight to the network.  The status line on stderr shows where the
response came from.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx
import typer

from swroute.commands._support import effective_config, execute, worker_session
from swroute.exit_codes import EXIT_INVALID_USAGE
from swroute.output import error, get_output


def fetch_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="Path (resolved against the origin) or absolute URL."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    accept: Optional[str] = typer.Option(
        None, "--accept", "-A", help="Accept header, e.g. 'text/html'."
    ),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="JSON request body."
    ),
) -> None:
    """Fetch PATH through the request cache router.

    The status line names the source of the response: ``network``,
    ``cache`` or ``passthrough`` for requests the worker ignores.

    Example::

        swroute fetch /static/app.js
        swroute fetch / --accept text/html
        swroute fetch /api/article/listArticle -X POST -d '{"current": 1}'
    """
    config = effective_config(ctx)
    body = _parse_body(data)

    async def _run() -> tuple[httpx.Response, str]:
        async with worker_session(ctx, config) as worker:
            request = worker.network.build_request(
                path, method=method, accept=accept, json_body=body
            )
            response = await worker.on_fetch(request)
            if response is None:
                return await worker.network.fetch(request), "passthrough"
            source = "cache" if worker.router.is_from_cache(response) else "network"
            return response, source

    response, source = execute(_run())
    get_output().print_response(response, source)


def _parse_body(data: Optional[str]) -> Any:
    if data is None:
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError:
        error(f"--data is not valid JSON: {data}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None
