"""ORM models backing the offline cache, progress and settings tables."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin, utcnow

JSONType = JSON


class CacheEntryModel(Base):
    __tablename__ = "cache_entries"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[Any] = mapped_column(JSONType, nullable=True)
    data_version: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    build_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class UserProgressModel(TimestampMixin, Base):
    __tablename__ = "user_progress"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    total_searches: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discovered_entity_ids: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    quiz_correct_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    quiz_total_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    quiz_error_codes: Mapped[Optional[list[str]]] = mapped_column(JSONType, nullable=True)
    quiz_corrected_codes: Mapped[Optional[list[str]]] = mapped_column(JSONType, nullable=True)
    badges: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)
    current_streak_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_active_date: Mapped[str] = mapped_column(String(10), default="", nullable=False)


class UserSettingsModel(TimestampMixin, Base):
    __tablename__ = "user_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    dark_mode: Mapped[str] = mapped_column(String(16), default="system", nullable=False)
    offline_mode: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


__all__ = [
    "CacheEntryModel",
    "UserProgressModel",
    "UserSettingsModel",
]
