"""Process-wide service container built lazily on first use."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from sqlalchemy.orm import Session, sessionmaker

from .cache import CacheStore
from .config import Settings, get_settings
from .connectivity import ConnectivityMonitor
from .data_service import KfzDataService, build_data_service
from .db.session import get_session_factory
from .fallback import FallbackLoader
from .loaders import create_http_client
from .progress import ProgressLedger
from .updates import UpdateChecker
from .user_settings import UserSettingsStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    connectivity: ConnectivityMonitor
    cache_store: CacheStore
    settings_store: UserSettingsStore
    ledger: ProgressLedger
    data_service: KfzDataService
    update_checker: UpdateChecker
    client: httpx.AsyncClient

    async def aclose(self) -> None:
        await self.data_service.close()
        await self.client.aclose()


def build_services(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[sessionmaker[Session]] = None,
    client: Optional[httpx.AsyncClient] = None,
    fallback_loader: Optional[FallbackLoader] = None,
) -> Services:
    settings = settings or get_settings()
    factory = session_factory or get_session_factory()
    http_client = client or create_http_client(settings)
    connectivity = ConnectivityMonitor(online=settings.assume_online)
    cache_store = CacheStore(factory)
    settings_store = UserSettingsStore(factory)
    data_service = build_data_service(
        settings,
        connectivity=connectivity,
        session_factory=factory,
        client=http_client,
        fallback_loader=fallback_loader,
    )
    update_checker = UpdateChecker(
        cache_store,
        settings_store,
        connectivity,
        http_client,
        [settings.dataset_url(settings.index_path), settings.dataset_url(settings.raw_index_path)],
        timeout_seconds=settings.update_check_timeout_seconds,
    )
    return Services(
        settings=settings,
        connectivity=connectivity,
        cache_store=cache_store,
        settings_store=settings_store,
        ledger=ProgressLedger(factory),
        data_service=data_service,
        update_checker=update_checker,
        client=http_client,
    )


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
        logger.info("Services initialised (data at %s)", _services.settings.data_base_url)
    return _services


def set_services(services: Optional[Services]) -> None:
    global _services
    _services = services


async def shutdown_services() -> None:
    global _services
    if _services is not None:
        await _services.aclose()
    _services = None


__all__ = ["Services", "build_services", "get_services", "set_services", "shutdown_services"]
