"""Data-shape migration for the cached search index."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..telemetry import emit_event
from .store import CacheEntry, CacheKey, CacheStore

logger = logging.getLogger(__name__)


def _obsolete_reason(entry: CacheEntry) -> Optional[str]:
    payload: Any = entry.data
    if isinstance(payload, list):
        return "raw district list"
    if not isinstance(payload, Mapping):
        raise TypeError(f"unexpected cached index payload type {type(payload).__name__}")
    if isinstance(payload.get("districts"), list) and "codeToIds" not in payload:
        return "raw district list"
    if not isinstance(payload.get("codeToIds"), Mapping) or not isinstance(payload.get("features"), Mapping):
        return "missing codeToIds/features"
    # Rows cached before the tag columns existed carry no entry tag; a payload that
    # still holds its own dataVersion is current and is re-tagged on the next fetch.
    if "version" in payload and not entry.data_version and not payload.get("dataVersion"):
        return "predates version tagging"
    return None


class SchemaMigrationGuard:
    """Drops the cached index whenever its shape is obsolete or unreadable."""

    def __init__(self, store: CacheStore, key: CacheKey = CacheKey.INDEX) -> None:
        self._store = store
        self._key = key

    def migrate(self) -> bool:
        try:
            entry = self._store.get_entry(self._key)
            if entry is None:
                return False
            reason = _obsolete_reason(entry)
        except Exception as exc:  # noqa: BLE001
            reason = f"inspection failed: {exc}"

        if reason is None:
            return False

        logger.info("Clearing cached %s: %s", self._key.value, reason)
        self._store.delete(self._key)
        emit_event("cache_schema_migrated", key=self._key, reason=reason)
        return True


__all__ = ["SchemaMigrationGuard"]
