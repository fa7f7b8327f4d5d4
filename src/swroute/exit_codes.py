"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a failure category and is referenced by the
corresponding :class:`~swroute.exceptions.SwrouteError` subclass, so shell
wrappers can tell a timed-out fetch from a broken cache store without
parsing stderr.

Example::

    $ swroute fetch /api/article/listArticle
    $ echo $?
    4   # EXIT_TIMEOUT -- network too slow and nothing cached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_CONNECTION_ERROR = 3
"""A network-level error occurred (DNS failure, connection refused, reset)."""

EXIT_TIMEOUT = 4
"""A network-first fetch timed out and no cached entry was available."""

EXIT_CACHE_ERROR = 5
"""A cache store could not be opened or written."""

EXIT_INSTALL_ERROR = 6
"""Pre-caching the shell manifest failed during install."""

EXIT_INTERRUPTED = 130
"""The user pressed Ctrl-C (128 + SIGINT)."""
