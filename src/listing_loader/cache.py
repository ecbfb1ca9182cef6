"""Process-wide cache for address and school lookups.

Keys are ``LookupKey`` tuples (kind plus the ordered input fields) so lookups
of different kinds can share one cache without colliding. Entries may be
positive or negative (a cached ``None`` means "confirmed absent"); ``get``
returns ``MISSING`` when nothing is cached.

The cache is cleared as a whole whenever a chunk rolls back: entries populated
under a failed transaction cannot be told apart from older ones.
"""

from collections import OrderedDict
from collections.abc import Hashable
from enum import StrEnum
from typing import Any, Final, NamedTuple

from listing_loader.logging import get_logger

logger = get_logger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()


class LookupKind(StrEnum):
    """The lookup a cache entry belongs to."""

    ADDRESS_PID = "address_pid"
    STREET_LOCALITY_PID = "street_locality_pid"
    PROPERTY_BY_ADDRESS_PID = "property_by_address_pid"
    PROPERTY_BY_ADDRESS = "property_by_address"
    SCHOOL_ID = "school_id"


class LookupKey(NamedTuple):
    """Composite cache key: lookup kind plus the exact input tuple."""

    kind: LookupKind
    fields: tuple[Hashable, ...]


class LookupCache:
    """Keyed cache with optional LRU bound and clear-all invalidation."""

    def __init__(self, maxsize: int | None = None) -> None:
        """Initialize the cache.

        Args:
            maxsize: Maximum number of entries; None or 0 for unbounded.
        """
        if maxsize is not None and maxsize < 0:
            raise ValueError("maxsize must not be negative")
        self.maxsize = maxsize or None
        self._entries: OrderedDict[LookupKey, Any] = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.clears = 0

    def get(self, key: LookupKey) -> Any:
        """Return the cached value (possibly None) or ``MISSING``."""
        try:
            value = self._entries[key]
        except KeyError:
            self.misses += 1
            return MISSING
        self._entries.move_to_end(key)
        self.hits += 1
        return value

    def put(self, key: LookupKey, value: Any) -> None:
        """Store a lookup result, evicting the least recently used entry if full."""
        self._entries[key] = value
        self._entries.move_to_end(key)
        if self.maxsize is not None and len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        """Drop every entry."""
        dropped = len(self._entries)
        self._entries.clear()
        self.clears += 1
        logger.debug("lookup_cache_cleared", dropped=dropped)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def stats(self) -> dict[str, int]:
        """Counters for logging."""
        return {
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "clears": self.clears,
        }
