"""``swroute config``: inspect and edit ``config.json``.

Keys use dots to reach nested settings (``router.cache_version``,
``request.timeout``).  Edits are validated as a whole
:class:`~swroute.models.GlobalConfig` before anything is written.
"""

from __future__ import annotations

import json
from typing import Any

import typer

from swroute.commands._support import confirm_or_cancel
from swroute.exit_codes import EXIT_INVALID_USAGE
from swroute.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


def _usage_error(message: str) -> typer.Exit:
    error(message)
    return typer.Exit(code=EXIT_INVALID_USAGE)


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    effective: bool = typer.Option(
        False, "--effective", "-e",
        help="Apply ./swroute.json, SWROUTE_* variables and global flags first.",
    ),
) -> None:
    """Print the saved settings.

    Example::

        swroute --json config show --effective
    """
    from swroute.config import get_config_dir, load_global_config

    if effective:
        from swroute.commands._support import effective_config

        settings = effective_config(ctx)
    else:
        settings = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(settings.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Dotted key, e.g. router.cache_version."),
    value: str = typer.Argument(help="New value; JSON for list and object keys."),
) -> None:
    """Change one setting.

    The text is converted to the type the key already holds.  Exits with
    code 2 for an unknown key, an unconvertible value or a result the model
    rejects.

    Example::

        swroute config set router.cache_version v1.2.0
        swroute config set request.cookie_source env:POETIZE_COOKIE
    """
    from swroute.config import load_global_config, save_global_config
    from swroute.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")
    *parents, leaf = key.split(".")
    section = data
    for part in parents:
        section = section.get(part)
        if not isinstance(section, dict):
            raise _usage_error(f"Unknown config key: {key}")
    if leaf not in section:
        raise _usage_error(f"Unknown config key: {key}")

    section[leaf] = _convert(key, section[leaf], value)
    try:
        updated = GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise _usage_error(f"Rejected {key}: {exc}") from None

    save_global_config(updated)
    success(f"Set {key} = {section[leaf]}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Overwrite ``config.json`` with the defaults (asks first without ``--force``)."""
    from swroute.config import save_global_config
    from swroute.models import GlobalConfig

    confirm_or_cancel(ctx, "Reset all config to defaults?")
    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")


def _convert(key: str, current: Any, raw: str) -> Any:
    if raw.lower() in {"null", "none"}:
        return None
    if isinstance(current, bool):
        return raw.lower() in {"true", "yes", "on", "1"}
    if isinstance(current, (int, float)):
        for kind in (int, float):
            try:
                return kind(raw)
            except ValueError:
                continue
        raise _usage_error(f"{key} takes a number, not {raw!r}")
    if isinstance(current, (list, dict)):
        try:
            return json.loads(raw)
        except ValueError:
            raise _usage_error(f"{key} takes a JSON value, not {raw!r}") from None
    if current is None:
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    return raw
