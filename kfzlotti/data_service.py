"""Aggregates the dataset synchronizers into one consumable data state."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, sessionmaker

from .cache import CacheKey, CacheStore
from .config import Settings
from .connectivity import ConnectivityEvent, ConnectivityMonitor
from .fallback import FallbackLoader, load_fallback_data
from .loaders import create_http_client
from .synchronizers import (
    AuxiliarySynchronizer,
    DatasetSynchronizer,
    IndexSynchronizer,
    SyncResult,
    TopologySynchronizer,
)
from .user_settings import UserSettingsStore

logger = logging.getLogger(__name__)

MAP_ERROR = "Karte konnte nicht geladen werden"
OFFLINE_NOTICE = "Offline-Modus: App läuft mit gecachten Daten. Einige Funktionen können eingeschränkt sein."
FALLBACK_NOTICE = "Es werden eingebaute Notfalldaten verwendet."
MAP_UNAVAILABLE_NOTICE = "Die Karte ist gerade nicht verfügbar."
STALE_NOTICE = "Einige Zusatzinfos sind veraltet und werden später aktualisiert."


class DataState(BaseModel):
    index: Optional[Dict[str, Any]] = None
    topology: Optional[Dict[str, Any]] = None
    seats: Optional[Dict[str, Any]] = None
    code_details: Optional[Dict[str, Any]] = None
    is_loading: bool = False
    error: Optional[str] = None
    is_offline: bool = False
    map_available: bool = False
    index_source: str = "none"
    data_version: Optional[str] = None
    notices: List[str] = Field(default_factory=list)


class KfzDataService:
    """Facade over the index, topology and auxiliary synchronizers.

    Subscribes to the connectivity monitor on construction and refreshes every
    dataset when the device comes back online; ``close`` releases the
    subscription and the HTTP client when the service owns it.
    """

    def __init__(
        self,
        index: IndexSynchronizer,
        topology: TopologySynchronizer,
        auxiliary: Sequence[AuxiliarySynchronizer],
        connectivity: ConnectivityMonitor,
        *,
        store: Optional[CacheStore] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._index = index
        self._topology = topology
        self._auxiliary = list(auxiliary)
        self._connectivity = connectivity
        self._store = store
        self._client = client
        self._unsubscribe = connectivity.subscribe(self._on_connectivity)

    @property
    def synchronizers(self) -> List[DatasetSynchronizer]:
        return [self._index, self._topology, *self._auxiliary]

    async def load(self) -> DataState:
        await asyncio.gather(*(sync.sync() for sync in self.synchronizers))
        return self.state()

    async def refresh(self) -> DataState:
        """User-initiated refresh: every dataset re-runs its fetch step."""
        logger.info("Refreshing all datasets")
        await asyncio.gather(*(sync.sync(force=True) for sync in self.synchronizers))
        return self.state()

    async def _on_connectivity(self, event: ConnectivityEvent) -> None:
        if event == "online":
            await self.refresh()

    def clear_cache(self) -> bool:
        if self._store is None:
            return False
        return self._store.clear()

    def state(self) -> DataState:
        index_result = self._index.state.result
        topology_result = self._topology.state.result
        aux_results: Dict[str, Optional[SyncResult]] = {
            sync.dataset: sync.state.result for sync in self._auxiliary
        }
        is_offline = not self._connectivity.is_online
        map_available = topology_result is not None and self._topology.is_valid(topology_result.data)

        error: Optional[str] = None
        if index_result is not None and index_result.error:
            error = index_result.error
        elif topology_result is not None and topology_result.error:
            error = MAP_ERROR

        notices: List[str] = []
        if is_offline:
            notices.append(OFFLINE_NOTICE)
        if index_result is not None and index_result.source == "fallback":
            notices.append(FALLBACK_NOTICE)
        if topology_result is not None and not map_available and error != MAP_ERROR:
            notices.append(MAP_UNAVAILABLE_NOTICE)
        if any(result is not None and result.stale for result in aux_results.values()):
            notices.append(STALE_NOTICE)

        seats = aux_results.get("seats")
        code_details = aux_results.get("code_details")
        return DataState(
            index=index_result.data if index_result else None,
            topology=topology_result.data if map_available and topology_result else None,
            seats=seats.data if seats else None,
            code_details=code_details.data if code_details else None,
            is_loading=any(sync.state.is_loading for sync in self.synchronizers),
            error=error,
            is_offline=is_offline,
            map_available=map_available,
            index_source=index_result.source if index_result else "none",
            data_version=index_result.data_version if index_result else None,
            notices=notices,
        )

    async def close(self) -> None:
        self._unsubscribe()
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def build_data_service(
    settings: Settings,
    *,
    connectivity: ConnectivityMonitor,
    session_factory: Optional[sessionmaker[Session]] = None,
    client: Optional[httpx.AsyncClient] = None,
    fallback_loader: Optional[FallbackLoader] = None,
) -> KfzDataService:
    """Wire the cache, settings store and synchronizers for one process."""
    store = CacheStore(session_factory)
    settings_store = UserSettingsStore(session_factory)
    owned_client = client is None
    http_client = client or create_http_client(settings)

    if fallback_loader is None:
        fallback_path = settings.fallback_path

        async def _bundled_fallback() -> Dict[str, Any]:
            return await load_fallback_data(fallback_path)

        fallback_loader = _bundled_fallback

    index = IndexSynchronizer(
        store,
        settings_store,
        connectivity,
        http_client,
        settings.dataset_url(settings.index_path),
        fallback_loader=fallback_loader,
    )
    topology = TopologySynchronizer(
        store,
        settings_store,
        connectivity,
        http_client,
        settings.dataset_url(settings.topology_path),
        object_name=settings.topology_object,
    )
    auxiliary = [
        AuxiliarySynchronizer(
            store,
            settings_store,
            connectivity,
            http_client,
            settings.dataset_url(settings.seats_path),
            key=CacheKey.AUXILIARY,
            dataset="seats",
            ttl_seconds=settings.auxiliary_ttl_seconds,
        ),
        AuxiliarySynchronizer(
            store,
            settings_store,
            connectivity,
            http_client,
            settings.dataset_url(settings.code_details_path),
            key=CacheKey.METADATA,
            dataset="code_details",
            ttl_seconds=settings.auxiliary_ttl_seconds,
        ),
    ]
    return KfzDataService(
        index,
        topology,
        auxiliary,
        connectivity,
        store=store,
        client=http_client if owned_client else None,
    )


__all__ = ["DataState", "KfzDataService", "MAP_ERROR", "build_data_service"]
