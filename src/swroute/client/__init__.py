"""Network transport for swroute.

Exports :class:`Network`, the :mod:`httpx`-based async fetch layer that the
router strategies, install pre-caching and background sync go through.
"""

from swroute.client.network import Network

__all__ = ["Network"]
