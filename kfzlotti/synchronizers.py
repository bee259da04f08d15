"""Per-dataset synchronizers implementing the network -> cache -> fallback chain."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

import httpx

from .cache import CacheKey, CacheStore, SchemaMigrationGuard
from .connectivity import ConnectivityMonitor
from .errors import DataFetchError, FallbackUnavailableError, KfzDataError
from .fallback import FallbackLoader, load_fallback_data
from .loaders import load_auxiliary_data, load_index_data, load_topology_data
from .telemetry import emit_event
from .user_settings import UserSettingsStore
from .validators import DEFAULT_TOPOLOGY_OBJECT, is_valid_auxiliary, is_valid_topology

logger = logging.getLogger(__name__)

DatasetSource = Literal["network", "cache", "fallback", "none"]

CRITICAL_DATA_ERROR = (
    "Die Kennzeichen-Daten sind gerade nicht verfügbar. "
    "Bitte lade die App neu oder versuche es später noch einmal."
)


@dataclass
class SyncResult:
    dataset: str
    data: Optional[Dict[str, Any]] = None
    source: DatasetSource = "none"
    available: bool = False
    cache_written: bool = False
    stale: bool = False
    data_version: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SyncState:
    is_loading: bool = False
    result: Optional[SyncResult] = None
    last_synced_at: Optional[datetime] = None
    warnings: List[str] = field(default_factory=list)


class DatasetSynchronizer:
    """Shared sync-cycle bookkeeping; subclasses implement ``_sync``."""

    dataset = "dataset"

    def __init__(
        self,
        store: CacheStore,
        settings_store: UserSettingsStore,
        connectivity: ConnectivityMonitor,
        client: httpx.AsyncClient,
        url: str,
    ) -> None:
        self._store = store
        self._settings_store = settings_store
        self._connectivity = connectivity
        self._client = client
        self._url = url
        self.state = SyncState()

    async def sync(self, *, force: bool = False) -> SyncResult:
        self.state.is_loading = True
        self.state.warnings = []
        try:
            result = await self._sync(force=force)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Synchronization of %s failed", self.dataset)
            result = SyncResult(dataset=self.dataset, error=str(exc) or exc.__class__.__name__)
        finally:
            self.state.is_loading = False
        self.state.result = result
        self.state.last_synced_at = datetime.now(timezone.utc)
        emit_event(
            "dataset_sync",
            dataset=self.dataset,
            source=result.source,
            available=result.available,
            cache_written=result.cache_written,
            data_version=result.data_version,
            forced=force,
        )
        return result

    async def _sync(self, *, force: bool) -> SyncResult:  # pragma: no cover - abstract
        raise NotImplementedError

    def _network_allowed(self) -> bool:
        if self._settings_store.is_offline_mode_enabled():
            logger.debug("Offline mode enabled; %s stays on local data", self.dataset)
            return False
        if not self._connectivity.is_online:
            logger.debug("No connectivity; %s stays on local data", self.dataset)
            return False
        return True

    def _warn(self, message: str, exc: Exception) -> None:
        if isinstance(exc, DataFetchError) and exc.not_modified:
            logger.info("%s not modified on server", self.dataset)
            return
        logger.warning("%s: %s", message, exc)
        self.state.warnings.append(str(exc))


class IndexSynchronizer(DatasetSynchronizer):
    """Keeps the search index current; the embedded fallback is the last tier."""

    dataset = "index"

    def __init__(
        self,
        store: CacheStore,
        settings_store: UserSettingsStore,
        connectivity: ConnectivityMonitor,
        client: httpx.AsyncClient,
        url: str,
        *,
        fallback_loader: FallbackLoader = load_fallback_data,
        guard: Optional[SchemaMigrationGuard] = None,
    ) -> None:
        super().__init__(store, settings_store, connectivity, client, url)
        self._fallback_loader = fallback_loader
        self._guard = guard or SchemaMigrationGuard(store, CacheKey.INDEX)

    async def _sync(self, *, force: bool) -> SyncResult:
        if self._guard.migrate():
            logger.info("Cached index dropped by schema migration; refetching")

        network_allowed = self._network_allowed()

        index = self._store.get(CacheKey.INDEX)
        cached_meta = self._store.get_metadata(CacheKey.INDEX) if index is not None else None
        source: DatasetSource = "cache" if index is not None else "none"
        written = False

        if network_allowed:
            headers: Dict[str, str] = {}
            if cached_meta and cached_meta.data_version:
                headers["If-None-Match"] = cached_meta.data_version
            try:
                fresh = await load_index_data(self._client, self._url, headers=headers)
            except KfzDataError as exc:
                self._warn("Could not fetch index, using cache/fallback", exc)
            else:
                if cached_meta is None or fresh["dataVersion"] != cached_meta.data_version:
                    logger.info("Fetched fresh index %s", fresh["dataVersion"])
                    written = self._store.put(
                        CacheKey.INDEX,
                        fresh,
                        data_version=fresh["dataVersion"],
                        build_hash=fresh["buildHash"],
                    )
                    index = fresh
                    source = "network"
                else:
                    logger.info("Cached index %s is up to date", cached_meta.data_version)

        if index is None:
            logger.info("No cached index available; loading embedded fallback")
            try:
                index = await self._fallback_loader()
            except FallbackUnavailableError:
                logger.critical("No index available from network, cache or embedded fallback", exc_info=True)
                return SyncResult(dataset=self.dataset, error=CRITICAL_DATA_ERROR)
            source = "fallback"

        data_version = index.get("dataVersion") or (cached_meta.data_version if cached_meta else None)
        return SyncResult(
            dataset=self.dataset,
            data=index,
            source=source,
            available=True,
            cache_written=written,
            data_version=data_version,
        )


class TopologySynchronizer(DatasetSynchronizer):
    """Map geometry; without valid geometry the map feature is reported unavailable."""

    dataset = "topology"

    def __init__(
        self,
        store: CacheStore,
        settings_store: UserSettingsStore,
        connectivity: ConnectivityMonitor,
        client: httpx.AsyncClient,
        url: str,
        *,
        object_name: str = DEFAULT_TOPOLOGY_OBJECT,
    ) -> None:
        super().__init__(store, settings_store, connectivity, client, url)
        self._object_name = object_name

    def is_valid(self, data: Any) -> bool:
        return is_valid_topology(data, self._object_name)

    async def _sync(self, *, force: bool) -> SyncResult:
        network_allowed = self._network_allowed()

        topology = self._store.get(CacheKey.TOPOLOGY)
        if topology is not None and not self.is_valid(topology):
            logger.warning("Discarding invalid cached topology")
            self._store.delete(CacheKey.TOPOLOGY)
            topology = None
        source: DatasetSource = "cache" if topology is not None else "none"
        written = False

        if network_allowed and (topology is None or force):
            try:
                fresh = await load_topology_data(self._client, self._url, object_name=self._object_name)
            except KfzDataError as exc:
                self._warn("Could not fetch topology, using cache", exc)
            else:
                written = self._store.put(CacheKey.TOPOLOGY, fresh)
                topology = fresh
                source = "network"
                logger.info("Fetched and cached fresh topology")

        available = self.is_valid(topology)
        return SyncResult(
            dataset=self.dataset,
            data=topology if available else None,
            source=source if available else "none",
            available=available,
            cache_written=written,
        )


class AuxiliarySynchronizer(DatasetSynchronizer):
    """TTL-bound auxiliary documents; expired copies are served when refresh is impossible."""

    def __init__(
        self,
        store: CacheStore,
        settings_store: UserSettingsStore,
        connectivity: ConnectivityMonitor,
        client: httpx.AsyncClient,
        url: str,
        *,
        key: CacheKey,
        dataset: str,
        ttl_seconds: int,
    ) -> None:
        super().__init__(store, settings_store, connectivity, client, url)
        self._key = key
        self._ttl_seconds = ttl_seconds
        self.dataset = dataset

    async def _sync(self, *, force: bool) -> SyncResult:
        network_allowed = self._network_allowed()

        meta = self._store.get_metadata(self._key)
        data = self._store.get(self._key, ignore_expired=True)
        if data is not None and not is_valid_auxiliary(data):
            logger.warning("Discarding invalid cached %s", self.dataset)
            self._store.delete(self._key)
            data = None
        expired = data is not None and meta is not None and meta.is_expired
        source: DatasetSource = "cache" if data is not None else "none"
        written = False

        if network_allowed and (data is None or expired or force):
            try:
                fresh = await load_auxiliary_data(self._client, self._url)
            except KfzDataError as exc:
                self._warn(f"Could not fetch {self.dataset}, using cache", exc)
            else:
                written = self._store.put(self._key, fresh, ttl_seconds=self._ttl_seconds)
                data = fresh
                source = "network"
                expired = False

        if expired:
            logger.info("Serving expired %s until it can be refreshed", self.dataset)

        return SyncResult(
            dataset=self.dataset,
            data=data,
            source=source,
            available=data is not None,
            cache_written=written,
            stale=expired,
        )


__all__ = [
    "AuxiliarySynchronizer",
    "CRITICAL_DATA_ERROR",
    "DatasetSource",
    "DatasetSynchronizer",
    "IndexSynchronizer",
    "SyncResult",
    "SyncState",
    "TopologySynchronizer",
]
