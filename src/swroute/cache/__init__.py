"""Disk-backed storage for routed responses and synced user data.

:class:`CacheStorage` manages the named response stores the router reads
and writes; :class:`CollectionStore` keeps the user's synced collections.
Both persist through :mod:`diskcache`.
"""

from swroute.cache.collections import CollectionStore
from swroute.cache.storage import CacheStorage, CacheStore, snapshot, to_response

__all__ = ["CacheStorage", "CacheStore", "CollectionStore", "snapshot", "to_response"]
