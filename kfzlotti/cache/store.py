"""Versioned key-value cache for offline datasets."""

from __future__ import annotations

import copy
import json
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..db.models import CacheEntryModel
from ..db.session import session_scope

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class CacheKey(str, Enum):
    INDEX = "kfz-index"
    TOPOLOGY = "kfz-topo"
    AUXILIARY = "kfz-seats"
    METADATA = "kfz-code-details"


KeyLike = Union[CacheKey, str]


class CacheMetadata(BaseModel):
    key: str
    data_version: Optional[str] = None
    build_hash: Optional[str] = None
    updated_at: datetime
    expires_at: Optional[datetime] = None
    size: int = 0
    is_expired: bool = False


class CacheEntry(CacheMetadata):
    data: Any = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _key(key: KeyLike) -> str:
    return key.value if isinstance(key, CacheKey) else str(key)


def payload_size(data: Any) -> int:
    return len(json.dumps(data, separators=(",", ":"), ensure_ascii=False))


class CacheStore:
    """Persistent dataset cache. Storage errors are logged, never raised."""

    def __init__(
        self,
        session_factory: Optional[sessionmaker[Session]] = None,
        *,
        clock: Clock = _now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def _session(self, *, commit: bool = True):
        return session_scope(commit=commit, factory=self._session_factory)

    def _is_expired(self, expires_at: Optional[datetime]) -> bool:
        expires = _ensure_utc(expires_at)
        return expires is not None and expires <= self._clock()

    def get(self, key: KeyLike, *, ignore_expired: bool = False) -> Any:
        name = _key(key)
        try:
            with self._session() as session:
                model = session.get(CacheEntryModel, name)
                if model is None:
                    return None
                if not ignore_expired and self._is_expired(model.expires_at):
                    session.delete(model)
                    logger.info("Cache entry %s expired; removed", name)
                    return None
                return copy.deepcopy(model.data)
        except SQLAlchemyError:
            logger.exception("Error reading cache entry %s", name)
            return None

    def put(
        self,
        key: KeyLike,
        data: Any,
        *,
        data_version: Optional[str] = None,
        build_hash: Optional[str] = None,
        ttl_seconds: Optional[float] = None,
    ) -> bool:
        name = _key(key)
        try:
            size = payload_size(data)
        except (TypeError, ValueError):
            logger.exception("Refusing to cache non-JSON payload for %s", name)
            return False

        updated_at = self._clock()
        expires_at: Optional[datetime] = None
        if ttl_seconds is not None:
            if ttl_seconds > 0:
                expires_at = updated_at + timedelta(seconds=ttl_seconds)
            else:
                logger.warning("Ignoring non-positive TTL %s for cache entry %s", ttl_seconds, name)

        try:
            with self._session() as session:
                model = session.get(CacheEntryModel, name)
                if model is None:
                    model = CacheEntryModel(key=name)
                    session.add(model)
                model.data = copy.deepcopy(data)
                model.data_version = data_version
                model.build_hash = build_hash
                model.size = size
                model.updated_at = updated_at
                model.expires_at = expires_at
        except SQLAlchemyError:
            logger.exception("Error writing cache entry %s", name)
            return False
        logger.debug("Cached %s (version=%s, size=%s)", name, data_version, size)
        return True

    def get_metadata(self, key: KeyLike) -> Optional[CacheMetadata]:
        name = _key(key)
        stmt = select(
            CacheEntryModel.key,
            CacheEntryModel.data_version,
            CacheEntryModel.build_hash,
            CacheEntryModel.updated_at,
            CacheEntryModel.expires_at,
            CacheEntryModel.size,
        ).where(CacheEntryModel.key == name)
        try:
            with self._session(commit=False) as session:
                row = session.execute(stmt).one_or_none()
        except SQLAlchemyError:
            logger.exception("Error reading cache metadata for %s", name)
            return None
        if row is None:
            return None
        return CacheMetadata(
            key=row.key,
            data_version=row.data_version,
            build_hash=row.build_hash,
            updated_at=_ensure_utc(row.updated_at),
            expires_at=_ensure_utc(row.expires_at),
            size=row.size,
            is_expired=self._is_expired(row.expires_at),
        )

    def get_entry(self, key: KeyLike) -> Optional[CacheEntry]:
        """Return the raw entry including its payload, regardless of expiry."""
        name = _key(key)
        try:
            with self._session(commit=False) as session:
                model = session.get(CacheEntryModel, name)
                if model is None:
                    return None
                return CacheEntry(
                    key=model.key,
                    data=copy.deepcopy(model.data),
                    data_version=model.data_version,
                    build_hash=model.build_hash,
                    updated_at=_ensure_utc(model.updated_at),
                    expires_at=_ensure_utc(model.expires_at),
                    size=model.size,
                    is_expired=self._is_expired(model.expires_at),
                )
        except SQLAlchemyError:
            logger.exception("Error reading cache entry %s", name)
            return None

    def delete(self, key: KeyLike) -> bool:
        name = _key(key)
        try:
            with self._session() as session:
                session.execute(delete(CacheEntryModel).where(CacheEntryModel.key == name))
        except SQLAlchemyError:
            logger.exception("Error deleting cache entry %s", name)
            return False
        return True

    def clear(self) -> bool:
        try:
            with self._session() as session:
                session.execute(delete(CacheEntryModel))
        except SQLAlchemyError:
            logger.exception("Error clearing offline cache")
            return False
        logger.info("Offline cache cleared")
        return True


__all__ = [
    "CacheEntry",
    "CacheKey",
    "CacheMetadata",
    "CacheStore",
    "Clock",
    "payload_size",
]
