from __future__ import annotations

import logging
from datetime import datetime, timezone

from kfzlotti.cache import CacheKey
from kfzlotti.logging_config import configure_logging
from kfzlotti.telemetry import emit_event, register_listener


def test_event_fields_are_json_friendly(telemetry_events) -> None:
    emit_event("dataset_sync", key=CacheKey.TOPOLOGY, at=datetime(2025, 3, 10, tzinfo=timezone.utc), count=3)

    assert telemetry_events[-1].payload == {"key": "kfz-topo", "at": "2025-03-10T00:00:00+00:00", "count": 3}


def test_failing_listener_does_not_stop_delivery(telemetry_events) -> None:
    def broken(event) -> None:
        raise RuntimeError("listener bug")

    register_listener(broken)
    emit_event("badges_unlocked", badges=["first_search"])
    emit_event("badges_unlocked", badges=["ten_searches"])

    assert [event.payload["badges"] for event in telemetry_events] == [["first_search"], ["ten_searches"]]


def test_http_request_logging_follows_debug_flag(monkeypatch) -> None:
    monkeypatch.setenv("KFZ_DEBUG_HTTP", "1")
    configure_logging()
    assert logging.getLogger("httpx").level == logging.DEBUG

    monkeypatch.setenv("KFZ_DEBUG_HTTP", "0")
    configure_logging()
    assert logging.getLogger("httpx").level == logging.WARNING
