"""Progress, badge and settings endpoints."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from .progress import ProgressUpdate, UserProgress
from .services import Services, get_services
from .user_settings import DarkModePreference, UserSettings

router = APIRouter(prefix="/api", tags=["progress"])
logger = logging.getLogger(__name__)


class SearchEventRequest(BaseModel):
    entity_id: str = Field(..., min_length=1, max_length=64)


class QuizAnswerRequest(BaseModel):
    correct: bool
    code: Optional[str] = Field(default=None, max_length=8)


class CorrectedAnswerRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=8)


class SettingsUpdateRequest(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=64)
    dark_mode: Optional[DarkModePreference] = None
    offline_mode: Optional[bool] = None


@router.get("/progress", response_model=UserProgress)
def get_progress(services: Services = Depends(get_services)) -> UserProgress:
    return services.ledger.get_progress()


@router.post("/progress/search", response_model=ProgressUpdate)
def record_search(request: SearchEventRequest, services: Services = Depends(get_services)) -> ProgressUpdate:
    return services.ledger.track_search(request.entity_id)


@router.post("/progress/quiz", response_model=ProgressUpdate)
def record_quiz_answer(request: QuizAnswerRequest, services: Services = Depends(get_services)) -> ProgressUpdate:
    return services.ledger.track_quiz_answer(request.correct, request.code)


@router.post("/progress/quiz/corrected", response_model=ProgressUpdate)
def record_corrected_answer(
    request: CorrectedAnswerRequest,
    services: Services = Depends(get_services),
) -> ProgressUpdate:
    return services.ledger.track_corrected_answer(request.code)


@router.delete("/progress")
def reset_progress(services: Services = Depends(get_services)) -> Dict[str, bool]:
    if not services.ledger.reset():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Progress could not be reset")
    return {"reset": True}


@router.get("/settings", response_model=UserSettings)
def get_user_settings(services: Services = Depends(get_services)) -> UserSettings:
    return services.settings_store.get()


@router.patch("/settings", response_model=UserSettings)
def update_user_settings(
    request: SettingsUpdateRequest,
    services: Services = Depends(get_services),
) -> UserSettings:
    updated = services.settings_store.update(
        display_name=request.display_name,
        dark_mode=request.dark_mode,
        offline_mode=request.offline_mode,
    )
    logger.debug("Settings now offline_mode=%s", updated.offline_mode)
    return updated
