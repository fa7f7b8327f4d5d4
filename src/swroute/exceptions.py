"""Errors that end a swroute command with a specific exit status.

Each class names its status in ``exit_code``; :func:`swroute.app.main` and
:func:`swroute.commands._support.execute` print the message and exit with
it.  Errors not listed here are treated as crashes.

::

    SwrouteError               1
        ConfigError            1
        OriginUnreachableError 3
        NetworkTimeoutError    4
        CacheStoreError        5
        InstallError           6
"""

from swroute.exit_codes import (
    EXIT_CACHE_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INSTALL_ERROR,
    EXIT_TIMEOUT,
)


class SwrouteError(Exception):
    """Root of the hierarchy; *exit_code* overrides the class default."""

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(SwrouteError):
    """Unreadable or invalid settings, or a cookie source that cannot be read."""


class OriginUnreachableError(SwrouteError):
    """The origin could not be reached: DNS, refused or reset connections."""

    exit_code = EXIT_CONNECTION_ERROR


class NetworkTimeoutError(SwrouteError):
    """A network-first fetch ran past its timeout with nothing cached to serve."""

    exit_code = EXIT_TIMEOUT


class CacheStoreError(SwrouteError):
    exit_code = EXIT_CACHE_ERROR


class InstallError(SwrouteError):
    """A shell URL failed to download, so the new cache store was not populated."""

    exit_code = EXIT_INSTALL_ERROR
