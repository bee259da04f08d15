"""Checks whether the server publishes a newer index than the cached one."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

import httpx
from pydantic import BaseModel

from .cache import CacheKey, CacheStore
from .connectivity import ConnectivityMonitor
from .errors import KfzDataError
from .loaders import NO_CACHE_HEADERS, fetch_json
from .user_settings import UserSettingsStore

logger = logging.getLogger(__name__)


class UpdateStatus(BaseModel):
    checked: bool
    update_available: bool = False
    current_version: Optional[str] = None
    remote_version: Optional[str] = None
    reason: Optional[str] = None


def remote_version_of(document: Any) -> Optional[str]:
    if not isinstance(document, Mapping):
        return None
    for field in ("dataVersion", "version", "generated"):
        value = document.get(field)
        if value not in (None, ""):
            return str(value)
    return None


class UpdateChecker:
    """Short-timeout probe of the index documents, transformed first then raw."""

    def __init__(
        self,
        store: CacheStore,
        settings_store: UserSettingsStore,
        connectivity: ConnectivityMonitor,
        client: httpx.AsyncClient,
        urls: Sequence[str],
        *,
        timeout_seconds: float,
    ) -> None:
        self._store = store
        self._settings_store = settings_store
        self._connectivity = connectivity
        self._client = client
        self._urls = list(urls)
        self._timeout_seconds = timeout_seconds

    async def check(self) -> UpdateStatus:
        meta = self._store.get_metadata(CacheKey.INDEX)
        current = meta.data_version if meta else None

        if self._settings_store.is_offline_mode_enabled():
            logger.info("Offline mode enabled - update check skipped")
            return UpdateStatus(checked=False, current_version=current, reason="offline_mode")
        if not self._connectivity.is_online:
            logger.info("Offline - cannot check for updates")
            return UpdateStatus(checked=False, current_version=current, reason="offline")

        for url in self._urls:
            try:
                document = await fetch_json(
                    self._client,
                    url,
                    headers=NO_CACHE_HEADERS,
                    timeout=self._timeout_seconds,
                )
            except KfzDataError as exc:
                logger.info("Update probe of %s failed: %s", url, exc)
                continue
            remote = remote_version_of(document)
            if remote is None:
                continue
            available = remote != current
            if not available:
                logger.info("Index %s is up to date", current)
            return UpdateStatus(
                checked=True,
                update_available=available,
                current_version=current,
                remote_version=remote,
            )

        return UpdateStatus(checked=False, current_version=current, reason="unreachable")


__all__ = ["UpdateChecker", "UpdateStatus", "remote_version_of"]
