"""Singleton user settings record shared by the synchronizers and the API."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Literal, Optional

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .db.models import UserSettingsModel
from .db.session import session_scope

logger = logging.getLogger(__name__)

SETTINGS_ID = "user-settings"
MAX_DISPLAY_NAME = 32

DarkModePreference = Literal["system", "light", "dark"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserSettings(BaseModel):
    display_name: str = ""
    dark_mode: DarkModePreference = "system"
    offline_mode: bool = False
    updated_at: datetime = Field(default_factory=_now)


def _to_domain(model: UserSettingsModel) -> UserSettings:
    updated_at = model.updated_at
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    dark_mode = model.dark_mode if model.dark_mode in ("system", "light", "dark") else "system"
    return UserSettings(
        display_name=model.display_name,
        dark_mode=dark_mode,  # type: ignore[arg-type]
        offline_mode=bool(model.offline_mode),
        updated_at=updated_at,
    )


class UserSettingsStore:
    """Reads and updates the settings record; falls back to memory when storage fails."""

    def __init__(
        self,
        session_factory: Optional[sessionmaker[Session]] = None,
        *,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._lock = threading.RLock()
        self._memory: Optional[UserSettings] = None

    def _load(self, session: Session, *, for_update: bool) -> UserSettingsModel:
        stmt = select(UserSettingsModel).where(UserSettingsModel.id == SETTINGS_ID)
        if for_update:
            stmt = stmt.with_for_update()
        model = session.execute(stmt).scalar_one_or_none()
        if model is None:
            model = UserSettingsModel(id=SETTINGS_ID, updated_at=self._clock())
            session.add(model)
            session.flush()
        return model

    def get(self) -> UserSettings:
        with self._lock:
            try:
                with session_scope(factory=self._session_factory) as session:
                    settings = _to_domain(self._load(session, for_update=False))
            except SQLAlchemyError:
                logger.exception("Settings store unavailable; using in-memory settings")
                return (self._memory or UserSettings()).model_copy()
            self._memory = settings
            return settings.model_copy()

    def update(
        self,
        *,
        display_name: Optional[str] = None,
        dark_mode: Optional[DarkModePreference] = None,
        offline_mode: Optional[bool] = None,
    ) -> UserSettings:
        changes: dict[str, object] = {}
        if display_name is not None:
            changes["display_name"] = display_name.strip()[:MAX_DISPLAY_NAME]
        if dark_mode is not None:
            if dark_mode not in ("system", "light", "dark"):
                raise ValueError(f"Unsupported dark mode preference: {dark_mode!r}")
            changes["dark_mode"] = dark_mode
        if offline_mode is not None:
            changes["offline_mode"] = bool(offline_mode)

        with self._lock:
            now = self._clock()
            try:
                with session_scope(factory=self._session_factory) as session:
                    model = self._load(session, for_update=True)
                    for field, value in changes.items():
                        setattr(model, field, value)
                    model.updated_at = now
                    session.flush()
                    settings = _to_domain(model)
            except SQLAlchemyError:
                logger.exception("Settings store unavailable; keeping update in memory")
                base = self._memory or UserSettings()
                settings = base.model_copy(update={**changes, "updated_at": now})
            self._memory = settings
        logger.info("User settings updated: %s", sorted(changes))
        return settings.model_copy()

    def is_offline_mode_enabled(self) -> bool:
        return self.get().offline_mode


__all__ = ["DarkModePreference", "UserSettings", "UserSettingsStore"]
