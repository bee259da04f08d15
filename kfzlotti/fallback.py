"""Embedded fallback index, the last tier when neither network nor cache has data."""

from __future__ import annotations

import copy
import json
import logging
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import FallbackUnavailableError
from .validators import index_integrity_errors, is_valid_index

logger = logging.getLogger(__name__)

FALLBACK_RESOURCE = "fallback_index.json"

FallbackLoader = Callable[[], Awaitable[Dict[str, Any]]]


def _read_text(path: Optional[str]) -> str:
    if path:
        return Path(path).read_text(encoding="utf-8")
    return resources.files("kfzlotti").joinpath("data", FALLBACK_RESOURCE).read_text(encoding="utf-8")


@lru_cache(maxsize=None)
def _load_bundled(path: Optional[str]) -> Dict[str, Any]:
    try:
        data = json.loads(_read_text(path))
    except (OSError, ValueError) as exc:
        raise FallbackUnavailableError(f"Embedded fallback index could not be read: {exc}") from exc

    if not is_valid_index(data):
        raise FallbackUnavailableError("Embedded fallback index has an invalid structure")
    problems = index_integrity_errors(data)
    if problems:
        raise FallbackUnavailableError(f"Embedded fallback index is inconsistent: {problems[0]}")

    logger.info(
        "Loaded embedded fallback index %s (%s codes)",
        data["dataVersion"],
        len(data["codeToIds"]),
    )
    return data


async def load_fallback_data(path: Optional[str] = None) -> Dict[str, Any]:
    """Return the bundled index, reading it from disk only on first use."""
    return copy.deepcopy(_load_bundled(path))


def reset_fallback_cache() -> None:
    _load_bundled.cache_clear()


__all__ = ["FallbackLoader", "load_fallback_data", "reset_fallback_cache"]
