"""Local copy of the signed-in user's saved collections.

The ``sync-articles`` background sync downloads the collection list and
replaces whatever was stored before, so the front end can show favourites
while offline.  Records are kept in insertion order in a
:class:`diskcache.Cache` under the data directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

import diskcache


class CollectionStore:
    """Disk-backed list of collection records.

    Args:
        root: Base directory; records live in ``<root>/collections``.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self._directory = Path(root) / "collections"
        self._cache: Optional[diskcache.Cache] = diskcache.Cache(str(self._directory))

    def replace(self, records: list[dict[str, Any]]) -> int:
        """Clear the store and save *records* in order.  Returns the number saved."""
        cache = self._backend()
        cache.clear()
        for index, record in enumerate(records):
            cache.set(index, record)
        return len(records)

    def all(self) -> list[dict[str, Any]]:
        cache = self._backend()
        return [cache[key] for key in sorted(cache.iterkeys())]

    def count(self) -> int:
        return len(self._backend())

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()
            self._cache = None

    def _backend(self) -> diskcache.Cache:
        if self._cache is None:
            raise ValueError("Collection store is closed")
        return self._cache
