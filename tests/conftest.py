from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import httpx
import pytest

os.environ.setdefault("KFZ_DATABASE_URL", "sqlite://")
os.environ.setdefault("KFZ_ASSUME_ONLINE", "true")

from kfzlotti.cache import CacheStore  # noqa: E402
from kfzlotti.config import Settings  # noqa: E402
from kfzlotti.connectivity import ConnectivityMonitor  # noqa: E402
from kfzlotti.db.session import build_engine, build_session_factory  # noqa: E402
from kfzlotti.telemetry import TelemetryEvent, clear_listeners, register_listener  # noqa: E402
from kfzlotti.user_settings import UserSettingsStore  # noqa: E402

DATA_BASE_URL = "http://data.test/data"


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


Reply = Union[Dict[str, Any], List[Any], Exception, httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeDataServer:
    """Serves dataset documents by file name through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.replies: Dict[str, Reply] = {}
        self.requests: List[httpx.Request] = []

    def serve(self, name: str, reply: Reply) -> None:
        self.replies[name] = reply

    def hits(self, name: str) -> int:
        return sum(1 for request in self.requests if request.url.path.endswith("/" + name))

    def last_request(self, name: str) -> Optional[httpx.Request]:
        matching = [request for request in self.requests if request.url.path.endswith("/" + name)]
        return matching[-1] if matching else None

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        name = request.url.path.rsplit("/", 1)[-1]
        reply = self.replies.get(name)
        if reply is None:
            return httpx.Response(404, json={"detail": "not found"})
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        if callable(reply):
            return reply(request)
        return httpx.Response(200, json=reply)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._handle))


def make_index(version: str, codes: Optional[Dict[str, List[str]]] = None) -> Dict[str, Any]:
    codes = codes or {"HH": ["02000000"], "M": ["09162000", "09184000"]}
    features: Dict[str, Any] = {}
    for code, ids in codes.items():
        for entity_id in ids:
            feature = features.setdefault(
                entity_id,
                {
                    "name": f"Kreis {entity_id}",
                    "regionKey": entity_id + "0000",
                    "codes": [],
                    "center": [10.0, 51.0],
                },
            )
            feature["codes"].append(code)
    return {
        "dataVersion": version,
        "buildHash": f"build-{version}",
        "codeToIds": codes,
        "features": features,
    }


def make_topology(geometries: Iterable[Dict[str, Any]] = ({"type": "Polygon", "arcs": [[0]]},)) -> Dict[str, Any]:
    return {
        "type": "Topology",
        "objects": {"kreise": {"type": "GeometryCollection", "geometries": list(geometries)}},
        "arcs": [[[0, 0], [1, 1]]],
    }


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    factory = build_session_factory(engine, create_schema=True)
    yield factory
    engine.dispose()


@pytest.fixture
def broken_session_factory():
    """Session factory whose database has no tables, so every statement fails."""
    engine = build_engine("sqlite://")
    factory = build_session_factory(engine, create_schema=False)
    yield factory
    engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(session_factory, clock) -> CacheStore:
    return CacheStore(session_factory, clock=clock)


@pytest.fixture
def settings_store(session_factory) -> UserSettingsStore:
    return UserSettingsStore(session_factory)


@pytest.fixture
def connectivity() -> ConnectivityMonitor:
    return ConnectivityMonitor(online=True)


@pytest.fixture
def server() -> FakeDataServer:
    return FakeDataServer()


@pytest.fixture
def settings() -> Settings:
    return Settings(KFZ_DATABASE_URL="sqlite://", KFZ_DATA_BASE_URL=DATA_BASE_URL)


@pytest.fixture
def telemetry_events():
    events: List[TelemetryEvent] = []
    register_listener(events.append)
    yield events
    clear_listeners()
