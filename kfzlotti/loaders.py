"""Fetch-and-validate functions for the remote datasets.

Loaders never fall back on their own: every failure surfaces as a
``DataFetchError`` or ``InvalidDataError`` and the calling synchronizer decides
which tier to consult next.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from .config import Settings
from .errors import DataFetchError, InvalidDataError
from .validators import DEFAULT_TOPOLOGY_OBJECT, is_valid_auxiliary, is_valid_index, is_valid_topology

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS: Dict[str, str] = {"Cache-Control": "no-cache", "Pragma": "no-cache"}
USER_AGENT = "kfzlotti-data/0.1"


def create_http_client(settings: Settings, *, timeout: Optional[float] = None) -> httpx.AsyncClient:
    """Build the shared client; transport retries are bounded by ``KFZ_HTTP_RETRIES``."""
    return httpx.AsyncClient(
        timeout=timeout if timeout is not None else settings.http_timeout_seconds,
        transport=httpx.AsyncHTTPTransport(retries=settings.http_retries),
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> Any:
    kwargs: Dict[str, Any] = {"headers": dict(headers or {})}
    if timeout is not None:
        kwargs["timeout"] = timeout
    try:
        response = await client.get(url, **kwargs)
    except httpx.HTTPError as exc:
        raise DataFetchError(url, None, str(exc) or exc.__class__.__name__) from exc

    if not response.is_success:
        raise DataFetchError(url, response.status_code, response.reason_phrase)

    try:
        return response.json()
    except ValueError as exc:
        raise InvalidDataError(url, f"body is not JSON ({exc})") from exc


async def load_index_data(
    client: httpx.AsyncClient,
    url: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Fetch the versioned search index, bypassing HTTP caches."""
    data = await fetch_json(client, url, headers={**NO_CACHE_HEADERS, **dict(headers or {})})
    if not is_valid_index(data):
        raise InvalidDataError(url, "index requires string dataVersion/buildHash and codeToIds/features objects")
    return data


async def load_topology_data(
    client: httpx.AsyncClient,
    url: str,
    *,
    object_name: str = DEFAULT_TOPOLOGY_OBJECT,
) -> Dict[str, Any]:
    """Fetch district geometry; HTTP caching is allowed since it rarely changes."""
    data = await fetch_json(client, url)
    if not is_valid_topology(data, object_name):
        raise InvalidDataError(url, f"topology object {object_name!r} is missing or empty")
    return data


async def load_auxiliary_data(client: httpx.AsyncClient, url: str) -> Dict[str, Any]:
    data = await fetch_json(client, url, headers=NO_CACHE_HEADERS)
    if not is_valid_auxiliary(data):
        raise InvalidDataError(url, "expected a non-empty JSON object")
    return data


__all__ = [
    "NO_CACHE_HEADERS",
    "create_http_client",
    "fetch_json",
    "load_auxiliary_data",
    "load_index_data",
    "load_topology_data",
]
