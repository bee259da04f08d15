"""Search and quiz progress with one-time badge unlocks."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .db.models import UserProgressModel
from .db.session import session_scope
from .normalize import normalize_code
from .telemetry import emit_event

logger = logging.getLogger(__name__)

PROGRESS_ID = "user-progress"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    name: str
    description: str
    emoji: str


BADGES: Dict[str, BadgeDefinition] = {
    definition.id: definition
    for definition in (
        BadgeDefinition("first_search", "Entdecker", "Deine erste Suche!", "🔍"),
        BadgeDefinition("ten_searches", "Neugierig", "10 Suchen durchgeführt", "🧐"),
        BadgeDefinition("fifty_searches", "Experte", "50 Suchen durchgeführt", "🎓"),
        BadgeDefinition("first_quiz", "Quizzer", "Erstes Quiz gespielt", "❓"),
        BadgeDefinition("quiz_master", "Quiz-Meister", "10 Quiz-Fragen richtig", "🏆"),
        BadgeDefinition("streak_3", "Dranbleiber", "3 Tage in Folge aktiv", "🔥"),
        BadgeDefinition("streak_7", "Wochenstar", "7 Tage in Folge aktiv", "⭐"),
    )
}


class Badge(BaseModel):
    id: str
    name: str
    description: str
    emoji: str
    earned_at: datetime


class UserProgress(BaseModel):
    total_searches: int = 0
    discovered_entity_ids: List[str] = Field(default_factory=list)
    quiz_correct_count: int = 0
    quiz_total_count: int = 0
    quiz_error_codes: List[str] = Field(default_factory=list)
    quiz_corrected_codes: List[str] = Field(default_factory=list)
    badges: List[Badge] = Field(default_factory=list)
    current_streak_days: int = 0
    last_active_date: str = ""
    updated_at: datetime = Field(default_factory=_now)

    def badge_ids(self) -> Set[str]:
        return {badge.id for badge in self.badges}


BadgeRule = Tuple[str, Callable[[UserProgress], bool]]

# Evaluated in order against the updated record; every satisfied rule unlocks.
SEARCH_BADGE_RULES: Sequence[BadgeRule] = (
    ("first_search", lambda progress: progress.total_searches == 1),
    ("ten_searches", lambda progress: progress.total_searches >= 10),
    ("fifty_searches", lambda progress: progress.total_searches >= 50),
    ("streak_3", lambda progress: progress.current_streak_days >= 3),
    ("streak_7", lambda progress: progress.current_streak_days >= 7),
)

QUIZ_BADGE_RULES: Sequence[BadgeRule] = (
    ("first_quiz", lambda progress: progress.quiz_total_count == 1),
    ("quiz_master", lambda progress: progress.quiz_correct_count >= 10),
)


def evaluate_badges(progress: UserProgress, rules: Sequence[BadgeRule], earned_at: datetime) -> List[Badge]:
    """Append newly satisfied badges to ``progress`` and return only those."""
    existing = progress.badge_ids()
    unlocked: List[Badge] = []
    for badge_id, predicate in rules:
        if badge_id in existing or not predicate(progress):
            continue
        definition = BADGES[badge_id]
        badge = Badge(
            id=definition.id,
            name=definition.name,
            description=definition.description,
            emoji=definition.emoji,
            earned_at=earned_at,
        )
        unlocked.append(badge)
        existing.add(badge_id)
    progress.badges.extend(unlocked)
    return unlocked


def next_streak(current: int, last_active_date: str, today: str, yesterday: str) -> int:
    if last_active_date == yesterday:
        return current + 1
    if last_active_date != today:
        return 1
    return current


def _unique(values: Optional[List[str]]) -> List[str]:
    seen: List[str] = []
    for value in values or []:
        if value not in seen:
            seen.append(value)
    return seen


def _to_domain(model: UserProgressModel) -> UserProgress:
    badges: List[Badge] = []
    seen: Set[str] = set()
    for payload in model.badges or []:
        try:
            badge = Badge.model_validate(payload)
        except Exception:  # noqa: BLE001
            logger.warning("Dropping unreadable badge entry %r", payload)
            continue
        if badge.id in seen:
            continue
        seen.add(badge.id)
        badges.append(badge)
    updated_at = model.updated_at
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return UserProgress(
        total_searches=model.total_searches,
        discovered_entity_ids=_unique(model.discovered_entity_ids),
        quiz_correct_count=model.quiz_correct_count,
        quiz_total_count=model.quiz_total_count,
        quiz_error_codes=_unique(model.quiz_error_codes),
        quiz_corrected_codes=_unique(model.quiz_corrected_codes),
        badges=badges,
        current_streak_days=model.current_streak_days,
        last_active_date=model.last_active_date or "",
        updated_at=updated_at,
    )


def _apply(model: UserProgressModel, progress: UserProgress) -> None:
    model.total_searches = progress.total_searches
    model.discovered_entity_ids = list(progress.discovered_entity_ids)
    model.quiz_correct_count = progress.quiz_correct_count
    model.quiz_total_count = progress.quiz_total_count
    model.quiz_error_codes = list(progress.quiz_error_codes)
    model.quiz_corrected_codes = list(progress.quiz_corrected_codes)
    model.badges = [badge.model_dump(mode="json") for badge in progress.badges]
    model.current_streak_days = progress.current_streak_days
    model.last_active_date = progress.last_active_date
    model.updated_at = progress.updated_at


class ProgressUpdate(BaseModel):
    """Record state right after one event, with the badges that event unlocked."""

    badges: List[Badge] = Field(default_factory=list)
    progress: UserProgress


class ProgressLedger:
    """Read-modify-write accumulator over the singleton progress record.

    Every mutation holds the record lock and runs inside one database
    transaction, so concurrent requests cannot drop each other's increments.
    When the database is unavailable the ledger keeps going on an in-memory
    copy of the record.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker[Session]] = None,
        *,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._lock = threading.RLock()
        self._memory: Optional[UserProgress] = None

    def _load(self, session: Session, *, for_update: bool) -> UserProgressModel:
        stmt = select(UserProgressModel).where(UserProgressModel.id == PROGRESS_ID)
        if for_update:
            stmt = stmt.with_for_update()
        model = session.execute(stmt).scalar_one_or_none()
        if model is None:
            model = UserProgressModel(
                id=PROGRESS_ID,
                discovered_entity_ids=[],
                quiz_error_codes=[],
                quiz_corrected_codes=[],
                badges=[],
                last_active_date="",
                updated_at=self._clock(),
            )
            session.add(model)
            session.flush()
        return model

    def _transact(self, mutate: Callable[[UserProgress, datetime], List[Badge]]) -> ProgressUpdate:
        with self._lock:
            now = self._clock()
            try:
                with session_scope(factory=self._session_factory) as session:
                    model = self._load(session, for_update=True)
                    progress = _to_domain(model)
                    unlocked = mutate(progress, now)
                    progress.updated_at = now
                    _apply(model, progress)
            except SQLAlchemyError:
                logger.exception("Progress store unavailable; recording in memory only")
                progress = (self._memory or UserProgress()).model_copy(deep=True)
                unlocked = mutate(progress, now)
                progress.updated_at = now
            self._memory = progress
        if unlocked:
            emit_event("badges_unlocked", badges=[badge.id for badge in unlocked])
        return ProgressUpdate(badges=unlocked, progress=progress.model_copy(deep=True))

    def get_progress(self) -> UserProgress:
        with self._lock:
            try:
                with session_scope(factory=self._session_factory) as session:
                    progress = _to_domain(self._load(session, for_update=False))
            except SQLAlchemyError:
                logger.exception("Progress store unavailable; reading in-memory progress")
                return (self._memory or UserProgress()).model_copy(deep=True)
            self._memory = progress
            return progress.model_copy(deep=True)

    def track_search(self, entity_id: str) -> ProgressUpdate:
        def mutate(progress: UserProgress, now: datetime) -> List[Badge]:
            progress.total_searches += 1
            if entity_id not in progress.discovered_entity_ids:
                progress.discovered_entity_ids.append(entity_id)
            today = now.date()
            progress.current_streak_days = next_streak(
                progress.current_streak_days,
                progress.last_active_date,
                today.isoformat(),
                (today - timedelta(days=1)).isoformat(),
            )
            progress.last_active_date = today.isoformat()
            return evaluate_badges(progress, SEARCH_BADGE_RULES, now)

        return self._transact(mutate)

    def track_quiz_answer(self, correct: bool, code: Optional[str] = None) -> ProgressUpdate:
        normalized = normalize_code(code) if code else ""

        def mutate(progress: UserProgress, now: datetime) -> List[Badge]:
            progress.quiz_total_count += 1
            if correct:
                progress.quiz_correct_count += 1
            elif normalized and normalized not in progress.quiz_error_codes:
                progress.quiz_error_codes.append(normalized)
            return evaluate_badges(progress, QUIZ_BADGE_RULES, now)

        return self._transact(mutate)

    def track_corrected_answer(self, code: str) -> ProgressUpdate:
        """Move a code from the error set to the corrected set during error review.

        Codes that are not in the error set leave the record untouched, so the
        correct count never exceeds the answers already counted in the total.
        """
        normalized = normalize_code(code)

        def mutate(progress: UserProgress, now: datetime) -> List[Badge]:
            if not normalized or normalized not in progress.quiz_error_codes:
                return []
            progress.quiz_error_codes.remove(normalized)
            if normalized not in progress.quiz_corrected_codes:
                progress.quiz_corrected_codes.append(normalized)
            progress.quiz_correct_count += 1
            return evaluate_badges(progress, QUIZ_BADGE_RULES, now)

        return self._transact(mutate)

    def record_search(self, entity_id: str) -> List[Badge]:
        return self.track_search(entity_id).badges

    def record_quiz_answer(self, correct: bool, code: Optional[str] = None) -> List[Badge]:
        return self.track_quiz_answer(correct, code).badges

    def record_corrected_answer(self, code: str) -> List[Badge]:
        return self.track_corrected_answer(code).badges

    def reset(self) -> bool:
        with self._lock:
            self._memory = None
            try:
                with session_scope(factory=self._session_factory) as session:
                    session.execute(delete(UserProgressModel).where(UserProgressModel.id == PROGRESS_ID))
            except SQLAlchemyError:
                logger.exception("Failed to reset stored progress")
                return False
        logger.info("User progress reset")
        return True


__all__ = [
    "BADGES",
    "Badge",
    "BadgeDefinition",
    "ProgressLedger",
    "ProgressUpdate",
    "QUIZ_BADGE_RULES",
    "SEARCH_BADGE_RULES",
    "UserProgress",
    "evaluate_badges",
    "next_streak",
]
