from __future__ import annotations

import asyncio
from typing import Any, Dict

from kfzlotti.cache import CacheKey, CacheStore
from kfzlotti.connectivity import ConnectivityMonitor
from kfzlotti.data_service import (
    FALLBACK_NOTICE,
    MAP_ERROR,
    MAP_UNAVAILABLE_NOTICE,
    OFFLINE_NOTICE,
    build_data_service,
)
from kfzlotti.errors import FallbackUnavailableError
from kfzlotti.synchronizers import CRITICAL_DATA_ERROR

from conftest import FakeDataServer, make_index, make_topology


async def _fallback() -> Dict[str, Any]:
    return make_index("fallback")


async def _no_fallback() -> Dict[str, Any]:
    raise FallbackUnavailableError("bundle missing")


async def _broken_sync(*, force: bool):
    raise RuntimeError("geometry decoder crashed")


def _serve_all(server: FakeDataServer, version: str = "v1") -> None:
    server.serve("index.transformed.json", make_index(version))
    server.serve("kfz250.topo.json", make_topology())
    server.serve("kreissitze.json", {"HH": {"seat": "Hamburg"}})
    server.serve("code-details.json", {"HH": {"origin": "Hansestadt Hamburg"}})


def test_load_combines_all_datasets(settings, session_factory, server: FakeDataServer) -> None:
    _serve_all(server)

    async def run():
        async with server.client() as client:
            service = build_data_service(
                settings,
                connectivity=ConnectivityMonitor(online=True),
                session_factory=session_factory,
                client=client,
                fallback_loader=_fallback,
            )
            state = await service.load()
            await service.close()
            return state

    state = asyncio.run(run())

    assert state.error is None
    assert not state.is_loading
    assert not state.is_offline
    assert state.map_available
    assert state.index_source == "network"
    assert state.data_version == "v1"
    assert state.seats == {"HH": {"seat": "Hamburg"}}
    assert state.code_details == {"HH": {"origin": "Hansestadt Hamburg"}}
    assert state.notices == []


def test_offline_start_reports_degradation_notices(settings, session_factory, server) -> None:
    async def run():
        async with server.client() as client:
            service = build_data_service(
                settings,
                connectivity=ConnectivityMonitor(online=False),
                session_factory=session_factory,
                client=client,
                fallback_loader=_fallback,
            )
            return await service.load()

    state = asyncio.run(run())

    assert server.requests == []
    assert state.error is None
    assert state.is_offline
    assert not state.map_available
    assert state.topology is None
    assert state.index_source == "fallback"
    assert state.notices == [OFFLINE_NOTICE, FALLBACK_NOTICE, MAP_UNAVAILABLE_NOTICE]


def test_index_error_takes_priority_over_map_error(settings, session_factory, server) -> None:
    async def run(fallback):
        async with server.client() as client:
            service = build_data_service(
                settings,
                connectivity=ConnectivityMonitor(online=False),
                session_factory=session_factory,
                client=client,
                fallback_loader=fallback,
            )
            topology = service.synchronizers[1]
            topology._sync = _broken_sync
            return await service.load()

    assert asyncio.run(run(_no_fallback)).error == CRITICAL_DATA_ERROR
    assert asyncio.run(run(_fallback)).error == MAP_ERROR


def test_reconnect_triggers_refresh(settings, session_factory, server) -> None:
    _serve_all(server, "v2")
    connectivity = ConnectivityMonitor(online=False)

    async def run():
        async with server.client() as client:
            service = build_data_service(
                settings,
                connectivity=connectivity,
                session_factory=session_factory,
                client=client,
                fallback_loader=_fallback,
            )
            offline_state = await service.load()
            await connectivity.set_online(True)
            online_state = service.state()
            await service.close()
            await connectivity.set_online(False)
            await connectivity.set_online(True)
            return offline_state, online_state

    offline_state, online_state = asyncio.run(run())

    assert offline_state.index_source == "fallback"
    assert online_state.index_source == "network"
    assert online_state.data_version == "v2"
    assert online_state.map_available
    # Closed services no longer react to connectivity changes.
    assert server.hits("index.transformed.json") == 1


def test_manual_refresh_refetches_geometry(settings, session_factory, server) -> None:
    _serve_all(server)

    async def run():
        async with server.client() as client:
            service = build_data_service(
                settings,
                connectivity=ConnectivityMonitor(online=True),
                session_factory=session_factory,
                client=client,
                fallback_loader=_fallback,
            )
            await service.load()
            await service.load()
            return await service.refresh()

    state = asyncio.run(run())

    assert state.map_available
    assert server.hits("kfz250.topo.json") == 2
    assert server.hits("index.transformed.json") == 3


def test_clear_cache_wipes_offline_data(settings, session_factory, server) -> None:
    _serve_all(server)

    async def run():
        async with server.client() as client:
            service = build_data_service(
                settings,
                connectivity=ConnectivityMonitor(online=True),
                session_factory=session_factory,
                client=client,
                fallback_loader=_fallback,
            )
            await service.load()
            return service.clear_cache()

    assert asyncio.run(run())
    store = CacheStore(session_factory)
    assert store.get(CacheKey.INDEX) is None
    assert store.get(CacheKey.TOPOLOGY) is None
