"""Where swroute keeps its state, and how the effective settings are built.

Three directories are used, each created on first access:

========  ==============================  ====================
kind      XDG platforms (Linux, BSD)      elsewhere
========  ==============================  ====================
config    ``$XDG_CONFIG_HOME/swroute``    ``~/.swroute``
cache     ``$XDG_CACHE_HOME/swroute``     ``~/.swroute/cache``
data      ``$XDG_DATA_HOME/swroute``      ``~/.swroute/data``
========  ==============================  ====================

The cache directory holds the named cache stores and may be wiped at any
time; ``swroute install`` refills the app shell.  The data directory holds
synced collections.

Settings come from ``config.json`` in the config directory, overridden by
``./swroute.json``, then by ``SWROUTE_*`` environment variables, then by
command-line flags (see :func:`resolve_config`).
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

from swroute.exceptions import ConfigError
from swroute.models import GlobalConfig

_APP_NAME = "swroute"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "swroute.json"

ENV_ORIGIN = "SWROUTE_ORIGIN"
ENV_CACHE_VERSION = "SWROUTE_CACHE_VERSION"

# kind -> (XDG variable, default below $HOME, subdirectory of ~/.swroute)
_DIRECTORIES: dict[str, tuple[str, tuple[str, ...], Optional[str]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), None),
    "cache": ("XDG_CACHE_HOME", (".cache",), "cache"),
    "data": ("XDG_DATA_HOME", (".local", "share"), "data"),
}


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _user_dir(kind: str) -> Path:
    env_var, home_default, subdir = _DIRECTORIES[kind]
    if _is_xdg_platform():
        root = os.environ.get(env_var) or Path.home().joinpath(*home_default)
        path = Path(root) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if subdir:
            path = path / subdir
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    return _user_dir("config")


def get_cache_dir() -> Path:
    """Root of the on-disk cache stores."""
    return _user_dir("cache")


def get_data_dir() -> Path:
    return _user_dir("data")


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* in a single rename.

    The scratch file sits next to *path* so the rename never crosses a
    filesystem.  It is unlinked if anything before the rename fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handle, scratch = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as stream:
            stream.write(data)
            stream.flush()
            os.fsync(stream.fileno())
        os.replace(scratch, path)
    except BaseException:
        Path(scratch).unlink(missing_ok=True)
        raise


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc


def load_global_config() -> GlobalConfig:
    """Read ``config.json``; defaults when the file is absent.

    Raises:
        ConfigError: Malformed JSON or a value the model rejects.
    """
    path = get_config_dir() / _CONFIG_FILENAME
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global config")
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    payload = json.dumps(config.model_dump(mode="json"), indent=2, ensure_ascii=False)
    _atomic_write(get_config_dir() / _CONFIG_FILENAME, payload + "\n")


def load_project_config() -> Optional[dict[str, Any]]:
    """Overrides from ``swroute.json`` in the working directory, if present.

    Any subset of the global keys may appear; nested objects are merged
    rather than replaced.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    data = _read_json(path, "project config")
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = (
            _deep_merge(current, value)
            if isinstance(current, dict) and isinstance(value, dict)
            else value
        )
    return merged


def resolve_config(
    cli_origin: Optional[str] = None,
    cli_cache_version: Optional[str] = None,
) -> GlobalConfig:
    """Build the settings a command runs with.

    Later layers win: defaults, user ``config.json``, ``./swroute.json``,
    ``SWROUTE_ORIGIN`` / ``SWROUTE_CACHE_VERSION``, then the ``--origin`` and
    ``--cache-version`` flags.  The origin never keeps a trailing slash.

    Raises:
        ConfigError: A layer is unreadable or the merged result is invalid.
    """
    data = load_global_config().model_dump(mode="json")
    data = _deep_merge(data, load_project_config() or {})

    overrides = (
        (("origin",), cli_origin or os.environ.get(ENV_ORIGIN)),
        (("router", "cache_version"), cli_cache_version or os.environ.get(ENV_CACHE_VERSION)),
    )
    for keys, value in overrides:
        if not value:
            continue
        target = data
        for key in keys[:-1]:
            target = target[key]
        target[keys[-1]] = value

    try:
        config = GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    config.origin = config.origin.rstrip("/")
    return config


def _credential_from_env(name: str) -> str:
    if name not in os.environ:
        raise ConfigError(f"Cookie variable {name} is not set")
    return os.environ[name]


def _credential_from_file(location: str) -> str:
    path = Path(location).expanduser()
    if not path.is_file():
        raise ConfigError(f"Cookie file not found: {path}")
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigError(f"Cannot read cookie file {path}: {exc}") from exc


def resolve_credential(source: str) -> str:
    """Turn a ``cookie_source`` setting into the cookie itself.

    ``env:NAME`` reads an environment variable, ``file:PATH`` reads a file
    (``~`` expanded, whitespace stripped) and ``prompt`` asks on the
    terminal.
    """
    scheme, _, rest = source.partition(":")
    if scheme == "env" and rest:
        return _credential_from_env(rest)
    if scheme == "file" and rest:
        return _credential_from_file(rest)
    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for a cookie: stdin is not a TTY")
        return getpass.getpass("Cookie: ")
    raise ConfigError(f"Unknown credential source: {source}")
