"""Read-through and invalidate-on-write caching for the employee record set."""

from .read_through import CacheCoherentReader, CachedRead
from .invalidating_writer import InvalidatingWriter

__all__ = ["CacheCoherentReader", "CachedRead", "InvalidatingWriter"]
