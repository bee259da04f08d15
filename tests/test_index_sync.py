from __future__ import annotations

import asyncio
from typing import Any, Dict

import httpx

from kfzlotti.cache import CacheKey, CacheStore
from kfzlotti.errors import FallbackUnavailableError
from kfzlotti.search import search_code
from kfzlotti.synchronizers import CRITICAL_DATA_ERROR, IndexSynchronizer

from conftest import DATA_BASE_URL, FakeDataServer, make_index

INDEX_URL = f"{DATA_BASE_URL}/index.transformed.json"
INDEX_FILE = "index.transformed.json"


def _fallback(data: Dict[str, Any]):
    calls = {"count": 0}

    async def loader() -> Dict[str, Any]:
        calls["count"] += 1
        return data

    loader.calls = calls  # type: ignore[attr-defined]
    return loader


def _sync(store, settings_store, connectivity, server: FakeDataServer, fallback=None, **kwargs):
    async def run():
        async with server.client() as client:
            synchronizer = IndexSynchronizer(
                store,
                settings_store,
                connectivity,
                client,
                INDEX_URL,
                fallback_loader=fallback or _fallback(make_index("fallback")),
            )
            result = await synchronizer.sync(**kwargs)
            return synchronizer, result

    return asyncio.run(run())


def test_newer_remote_version_replaces_cache(store: CacheStore, settings_store, connectivity, server, clock) -> None:
    store.put(CacheKey.INDEX, make_index("v1"), data_version="v1", build_hash="build-v1")
    clock.advance(hours=1)
    server.serve(INDEX_FILE, make_index("v2"))

    _, result = _sync(store, settings_store, connectivity, server)

    assert result.source == "network"
    assert result.cache_written
    assert result.data_version == "v2"
    assert store.get(CacheKey.INDEX)["dataVersion"] == "v2"
    meta = store.get_metadata(CacheKey.INDEX)
    assert meta.data_version == "v2"
    assert meta.build_hash == "build-v2"
    assert meta.updated_at == clock.now
    assert server.last_request(INDEX_FILE).headers["If-None-Match"] == "v1"


def test_same_remote_version_skips_write(store: CacheStore, settings_store, connectivity, server, clock) -> None:
    store.put(CacheKey.INDEX, make_index("v1"), data_version="v1", build_hash="build-v1")
    written_at = store.get_metadata(CacheKey.INDEX).updated_at
    clock.advance(hours=1)
    server.serve(INDEX_FILE, make_index("v1"))

    _, result = _sync(store, settings_store, connectivity, server)

    assert result.source == "cache"
    assert not result.cache_written
    assert result.data_version == "v1"
    assert store.get_metadata(CacheKey.INDEX).updated_at == written_at


def test_empty_cache_fetches_and_writes(store: CacheStore, settings_store, connectivity, server, telemetry_events) -> None:
    server.serve(INDEX_FILE, make_index("v1"))

    synchronizer, result = _sync(store, settings_store, connectivity, server)

    assert result.available and result.cache_written
    assert synchronizer.state.result is result
    assert not synchronizer.state.is_loading
    sync_events = [event for event in telemetry_events if event.name == "dataset_sync"]
    assert sync_events[-1].payload["source"] == "network"
    assert "If-None-Match" not in server.last_request(INDEX_FILE).headers


def test_invalid_remote_payload_is_never_cached(store: CacheStore, settings_store, connectivity, server) -> None:
    store.put(CacheKey.INDEX, make_index("v1"), data_version="v1", build_hash="build-v1")
    server.serve(INDEX_FILE, {"dataVersion": 2, "buildHash": "x", "codeToIds": {}, "features": {}})

    synchronizer, result = _sync(store, settings_store, connectivity, server)

    assert result.source == "cache"
    assert result.data_version == "v1"
    assert not result.cache_written
    assert store.get_metadata(CacheKey.INDEX).data_version == "v1"
    assert synchronizer.state.warnings


def test_invalid_remote_payload_without_cache_uses_fallback(store, settings_store, connectivity, server) -> None:
    server.serve(INDEX_FILE, {"codeToIds": {}, "features": {}})
    fallback = _fallback(make_index("fallback"))

    _, result = _sync(store, settings_store, connectivity, server, fallback=fallback)

    assert result.source == "fallback"
    assert store.get(CacheKey.INDEX) is None
    assert fallback.calls["count"] == 1


def test_network_failure_falls_back_to_cache(store, settings_store, connectivity, server) -> None:
    store.put(CacheKey.INDEX, make_index("v1"), data_version="v1", build_hash="build-v1")
    server.serve(INDEX_FILE, httpx.ConnectError("unreachable"))

    _, result = _sync(store, settings_store, connectivity, server)

    assert result.source == "cache"
    assert result.available
    assert result.error is None


def test_not_modified_response_keeps_cache_without_warning(store, settings_store, connectivity, server) -> None:
    store.put(CacheKey.INDEX, make_index("v1"), data_version="v1", build_hash="build-v1")
    server.serve(INDEX_FILE, httpx.Response(304))

    synchronizer, result = _sync(store, settings_store, connectivity, server)

    assert result.source == "cache"
    assert synchronizer.state.warnings == []


def test_offline_mode_never_contacts_network(store, settings_store, connectivity, server) -> None:
    settings_store.update(offline_mode=True)
    store.put(CacheKey.INDEX, make_index("v1"), data_version="v1", build_hash="build-v1")
    server.serve(INDEX_FILE, make_index("v2"))

    _, result = _sync(store, settings_store, connectivity, server, force=True)

    assert connectivity.is_online
    assert server.requests == []
    assert result.source == "cache"
    assert result.data_version == "v1"


def test_offline_empty_cache_serves_large_fallback(store, settings_store, server) -> None:
    from kfzlotti.connectivity import ConnectivityMonitor

    codes = {"HH": ["02000000"]}
    for number in range(1, 400):
        codes[f"Q{number:03d}"] = [f"99{number:06d}"]
    fallback_index = make_index("fallback-400", codes)
    assert len(fallback_index["features"]) == 400

    synchronizer, result = _sync(
        store,
        settings_store,
        ConnectivityMonitor(online=False),
        server,
        fallback=_fallback(fallback_index),
    )

    assert server.requests == []
    assert result.source == "fallback"
    assert result.error is None
    assert not synchronizer.state.is_loading
    assert search_code("HH", result.data)


def test_missing_fallback_is_critical(store, settings_store, server) -> None:
    from kfzlotti.connectivity import ConnectivityMonitor

    async def broken() -> Dict[str, Any]:
        raise FallbackUnavailableError("bundle missing")

    _, result = _sync(store, settings_store, ConnectivityMonitor(online=False), server, fallback=broken)

    assert result.error == CRITICAL_DATA_ERROR
    assert not result.available
    assert result.data is None


def test_obsolete_cached_shape_is_migrated_before_read(store, settings_store, server) -> None:
    from kfzlotti.connectivity import ConnectivityMonitor

    store.put(CacheKey.INDEX, [{"code": "HH"}])

    _, result = _sync(store, settings_store, ConnectivityMonitor(online=False), server)

    assert result.source == "fallback"
    assert store.get(CacheKey.INDEX) is None


def test_bundled_fallback_resolves_hamburg(store, settings_store, server) -> None:
    from kfzlotti.connectivity import ConnectivityMonitor
    from kfzlotti.fallback import load_fallback_data

    _, result = _sync(store, settings_store, ConnectivityMonitor(online=False), server, fallback=load_fallback_data)

    assert result.source == "fallback"
    assert result.data_version == "fallback-2025-01-01"
    assert [hit.id for hit in search_code("HH", result.data)] == ["02000000"]
