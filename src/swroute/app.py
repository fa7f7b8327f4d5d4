"""The ``swroute`` command line.

Global flags live on the root callback.  They choose the output mode and
override the origin and cache version for one invocation.  Subcommands are
attached lazily by :func:`register_commands` so ``swroute --version`` stays
fast.

:func:`main` is the console-script target.  Known failures exit with the
code carried by the :class:`~swroute.exceptions.SwrouteError` raised.  Anything
else leaves a traceback under ``<data dir>/logs`` and exits 1.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from swroute import __version__
from swroute.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED


app = typer.Typer(
    name="swroute",
    help="Request cache router with service-worker lifecycle events.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

_registered = False


def _show_version(value: bool) -> None:
    if not value:
        return
    typer.echo(f"swroute {__version__}")
    raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Print the version."
    ),
    origin: Optional[str] = typer.Option(
        None, "--origin", help="Site origin to route for, e.g. https://poetize.cn."
    ),
    cache_version: Optional[str] = typer.Option(
        None, "--cache-version", help="Version suffix of the cache store, e.g. v1.2.0."
    ),
    json_output: bool = typer.Option(False, "--json", help="Write results as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Write results as tab-separated text."),
    no_color: bool = typer.Option(False, "--no-color", help="Never use colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report warnings and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Report routing decisions."),
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask before deleting."),
) -> None:
    """Request cache router with service-worker lifecycle events."""
    from swroute.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    # ctx.obj may already hold a transport supplied by the caller.
    ctx.ensure_object(dict)
    ctx.obj.update(origin=origin, cache_version=cache_version, force=force, verbose=verbose)


def register_commands() -> typer.Typer:
    """Attach every subcommand to :data:`app`; repeated calls are no-ops."""
    global _registered
    if _registered:
        return app

    from swroute.commands import lifecycle
    from swroute.commands.cache import cache_app
    from swroute.commands.config import config_app
    from swroute.commands.fetch import fetch_command

    commands = {
        "fetch": fetch_command,
        "install": lifecycle.install_command,
        "activate": lifecycle.activate_command,
        "push": lifecycle.push_command,
        "click": lifecycle.click_command,
        "sync": lifecycle.sync_command,
        "message": lifecycle.message_command,
    }
    for name, command in commands.items():
        app.command(name)(command)
    app.add_typer(cache_app, name="cache", help="Inspect and delete cache stores.")
    app.add_typer(config_app, name="config", help="Read and change saved settings.")

    _registered = True
    return app


def _interrupted(signum: int, frame: Any) -> None:  # noqa: ANN401
    sys.stderr.write("\nCancelled.\n")
    sys.exit(EXIT_INTERRUPTED)


def _write_crash_log() -> str:
    """Save the traceback being handled; returns the log path."""
    from swroute.config import get_data_dir

    log_path = get_data_dir() / "logs" / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    log_path.write_text(traceback.format_exc(), encoding="utf-8")
    return str(log_path)


def main() -> None:
    signal.signal(signal.SIGINT, _interrupted)
    try:
        register_commands()
        app()
    except KeyboardInterrupt:
        _interrupted(signal.SIGINT, None)
    except SystemExit:
        raise
    except Exception as exc:
        from swroute.exceptions import SwrouteError
        from swroute.output import error

        if not isinstance(exc, SwrouteError):
            error(f"Unexpected error. Debug log: {_write_crash_log()}")
            sys.exit(EXIT_GENERIC_FAILURE)
        error(str(exc))
        sys.exit(exc.exit_code)
