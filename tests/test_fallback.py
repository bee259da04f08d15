from __future__ import annotations

import asyncio
import json

import pytest

from kfzlotti.errors import FallbackUnavailableError
from kfzlotti.fallback import load_fallback_data, reset_fallback_cache
from kfzlotti.validators import index_integrity_errors, is_valid_index

from conftest import make_index


@pytest.fixture(autouse=True)
def _reset_fallback():
    reset_fallback_cache()
    yield
    reset_fallback_cache()


def test_bundled_fallback_is_valid_and_consistent() -> None:
    data = asyncio.run(load_fallback_data())
    assert is_valid_index(data)
    assert index_integrity_errors(data) == []
    assert data["codeToIds"]["M"] == ["09162000", "09184000"]


def test_fallback_copies_are_independent() -> None:
    first = asyncio.run(load_fallback_data())
    first["codeToIds"].clear()
    assert asyncio.run(load_fallback_data())["codeToIds"]


def test_fallback_from_custom_path(tmp_path) -> None:
    path = tmp_path / "index.json"
    path.write_text(json.dumps(make_index("local")), encoding="utf-8")
    assert asyncio.run(load_fallback_data(str(path)))["dataVersion"] == "local"


def test_corrupt_fallback_is_unavailable(tmp_path) -> None:
    missing = tmp_path / "missing.json"
    garbled = tmp_path / "garbled.json"
    garbled.write_text("{not json", encoding="utf-8")
    dangling = tmp_path / "dangling.json"
    index = make_index("dangling")
    index["codeToIds"]["B"] = ["11000000"]
    dangling.write_text(json.dumps(index), encoding="utf-8")

    for path in (missing, garbled, dangling):
        with pytest.raises(FallbackUnavailableError):
            asyncio.run(load_fallback_data(str(path)))
