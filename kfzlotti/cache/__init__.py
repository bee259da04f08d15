"""Persistent offline cache and its schema migration guard."""

from .migration import SchemaMigrationGuard
from .store import CacheEntry, CacheKey, CacheMetadata, CacheStore

__all__ = [
    "CacheEntry",
    "CacheKey",
    "CacheMetadata",
    "CacheStore",
    "SchemaMigrationGuard",
]
