"""Dataset status, refresh and lookup endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from .data_service import DataState, KfzDataService
from .search import SearchResult, autocomplete, search_code
from .services import Services, get_services
from .updates import UpdateStatus

router = APIRouter(prefix="/api/data", tags=["data"])
logger = logging.getLogger(__name__)


class DataStatusPayload(BaseModel):
    is_loading: bool
    error: Optional[str] = None
    is_offline: bool
    map_available: bool
    index_source: str
    data_version: Optional[str] = None
    code_count: int = 0
    notices: List[str] = Field(default_factory=list)


class ConnectivityRequest(BaseModel):
    online: bool


def _status_payload(state: DataState) -> DataStatusPayload:
    return DataStatusPayload(
        is_loading=state.is_loading,
        error=state.error,
        is_offline=state.is_offline,
        map_available=state.map_available,
        index_source=state.index_source,
        data_version=state.data_version,
        code_count=len((state.index or {}).get("codeToIds") or {}),
        notices=state.notices,
    )


async def _ensure_loaded(service: KfzDataService) -> DataState:
    state = service.state()
    if state.index is None and state.error is None and not state.is_loading:
        state = await service.load()
    return state


async def _require_index(service: KfzDataService) -> Dict[str, Any]:
    state = await _ensure_loaded(service)
    if state.index is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=state.error or "Index unavailable")
    return state.index


@router.get("/status", response_model=DataStatusPayload)
async def data_status(services: Services = Depends(get_services)) -> DataStatusPayload:
    return _status_payload(await _ensure_loaded(services.data_service))


@router.post("/refresh", response_model=DataStatusPayload)
async def refresh_data(services: Services = Depends(get_services)) -> DataStatusPayload:
    return _status_payload(await services.data_service.refresh())


@router.post("/connectivity")
async def update_connectivity(
    request: ConnectivityRequest,
    services: Services = Depends(get_services),
) -> Dict[str, bool]:
    changed = await services.connectivity.set_online(request.online)
    return {"online": services.connectivity.is_online, "changed": changed}


@router.get("/updates", response_model=UpdateStatus)
async def check_updates(services: Services = Depends(get_services)) -> UpdateStatus:
    return await services.update_checker.check()


@router.delete("/cache")
def clear_offline_cache(services: Services = Depends(get_services)) -> Dict[str, bool]:
    return {"cleared": services.data_service.clear_cache()}


@router.get("/index")
async def get_index(services: Services = Depends(get_services)) -> Dict[str, Any]:
    return await _require_index(services.data_service)


@router.get("/topology")
async def get_topology(services: Services = Depends(get_services)) -> Dict[str, Any]:
    state = await _ensure_loaded(services.data_service)
    if not state.map_available or state.topology is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Map data unavailable")
    return state.topology


@router.get("/search/{code}", response_model=List[SearchResult])
async def search(code: str, services: Services = Depends(get_services)) -> List[SearchResult]:
    index = await _require_index(services.data_service)
    return search_code(code, index)


@router.get("/suggest", response_model=List[str])
async def suggest(
    q: str = Query(..., min_length=1, max_length=8),
    limit: int = Query(5, ge=1, le=20),
    services: Services = Depends(get_services),
) -> List[str]:
    index = await _require_index(services.data_service)
    return autocomplete(q, index, limit=limit)
