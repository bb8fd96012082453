"""
Progress Tracking for KidLearner
================================

Counters, daily streaks and achievements per learner, persisted through
ProgressRepository. Every mutator returns the updated progress together
with the achievement ids it unlocked.
"""

import logging
import re
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from constants import MAX_LEARNER_ID_LENGTH
from db_service import ProgressRepository
from exceptions import InvalidInputError
from schemas import Achievement, Progress, ProgressStats

logger = logging.getLogger("PROGRESS")

ACHIEVEMENTS: Dict[str, Achievement] = {
    "first_lesson": Achievement(id="first_lesson", name="First Steps",
                                description="Completed your first lesson", icon="🎯"),
    "code_master": Achievement(id="code_master", name="Code Master",
                               description="Completed 5 lessons", icon="👑"),
    "ai_helper": Achievement(id="ai_helper", name="AI Assistant",
                             description="Asked AI for help 10 times", icon="🤖"),
    "validator": Achievement(id="validator", name="Code Validator",
                             description="Validated code 20 times", icon="✅"),
    "streak_7": Achievement(id="streak_7", name="Week Warrior",
                            description="7-day learning streak", icon="🔥"),
    "editor_pro": Achievement(id="editor_pro", name="Editor Pro",
                              description="Saved 10 code files", icon="💾"),
}

# Unlock rules, checked in this order
ACHIEVEMENT_RULES: List[Tuple[str, Callable[[Progress], bool]]] = [
    ("first_lesson", lambda p: p.total_lessons >= 1),
    ("code_master", lambda p: p.total_lessons >= 5),
    ("ai_helper", lambda p: p.ai_interactions >= 10),
    ("validator", lambda p: p.code_validations >= 20),
    ("streak_7", lambda p: p.current_streak >= 7),
    ("editor_pro", lambda p: p.files_saved >= 10),
]

LEARNER_ID_PATTERN = re.compile(rf"^[A-Za-z0-9_.-]{{1,{MAX_LEARNER_ID_LENGTH}}}$")


def validate_learner_id(learner_id: str) -> str:
    """
    Raises:
        InvalidInputError: If the id is empty, too long or has odd characters
    """
    if not isinstance(learner_id, str) or not LEARNER_ID_PATTERN.match(learner_id):
        raise InvalidInputError(
            f"Invalid learner id. Use 1-{MAX_LEARNER_ID_LENGTH} letters, digits, '.', '_' or '-'."
        )
    return learner_id


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def new_progress() -> Progress:
    return Progress()


def update_streak(progress: Progress, today: date) -> None:
    """Same day: no change. Next day: streak + 1. Any gap: streak restarts at 1."""
    today_str = today.isoformat()
    last_active = progress.last_active_date

    if last_active == today_str:
        return

    yesterday = (today - timedelta(days=1)).isoformat()
    if last_active == yesterday:
        progress.current_streak += 1
    else:
        progress.current_streak = 1

    progress.longest_streak = max(progress.longest_streak, progress.current_streak)
    progress.last_active_date = today_str


def check_achievements(progress: Progress) -> List[str]:
    """Unlock every earned achievement once; returns the new ids"""
    unlocked = []
    for achievement_id, rule in ACHIEVEMENT_RULES:
        if achievement_id not in progress.achievements and rule(progress):
            progress.achievements.append(achievement_id)
            unlocked.append(achievement_id)
    return unlocked


class ProgressTracker:
    """
    Learner progress service

    Usage:
        tracker = ProgressTracker(ProgressRepository(get_pool()))
        progress, unlocked = tracker.complete_lesson("sam", "html-basics")
    """

    def __init__(self, repository: ProgressRepository,
                 today_provider: Optional[Callable[[], date]] = None):
        self.repository = repository
        self.today_provider = today_provider or utc_today
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _load(self, learner_id: str) -> Optional[Progress]:
        data = self.repository.load(learner_id)
        if data is None:
            return None
        try:
            return Progress.model_validate(data)
        except ValidationError as e:
            logger.error(f"❌ Stored progress for {learner_id} is invalid, starting fresh: {e}")
            return None

    def _save(self, learner_id: str, progress: Progress) -> None:
        self.repository.save(learner_id, progress.model_dump(mode="json", by_alias=True))

    def get_progress(self, learner_id: str) -> Progress:
        """Current progress, created and stored on first access"""
        validate_learner_id(learner_id)
        with self._lock:
            progress = self._load(learner_id)
            if progress is None:
                progress = new_progress()
                self._save(learner_id, progress)
                logger.info(f"🌱 New learner progress: {learner_id}")
            return progress

    def reset_progress(self, learner_id: str) -> Progress:
        validate_learner_id(learner_id)
        with self._lock:
            progress = new_progress()
            self._save(learner_id, progress)
            logger.info(f"🔄 Progress reset: {learner_id}")
            return progress

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    def _record_activity(self, learner_id: str,
                         mutate: Callable[[Progress], None]) -> Tuple[Progress, List[str]]:
        with self._lock:
            progress = self.get_progress(learner_id)
            mutate(progress)
            update_streak(progress, self.today_provider())
            unlocked = check_achievements(progress)
            self._save(learner_id, progress)

        for achievement_id in unlocked:
            logger.info(f"🏆 {learner_id} unlocked achievement: {ACHIEVEMENTS[achievement_id].name}")
        return progress, unlocked

    def complete_lesson(self, learner_id: str, lesson_id: str) -> Tuple[Progress, List[str]]:
        """Mark a lesson completed; completing it again changes nothing but the streak"""
        lesson_id = str(lesson_id)

        def mutate(progress: Progress) -> None:
            if lesson_id not in progress.lessons_completed:
                progress.lessons_completed.append(lesson_id)
                progress.total_lessons = len(progress.lessons_completed)

        return self._record_activity(learner_id, mutate)

    def increment_ai_interactions(self, learner_id: str) -> Tuple[Progress, List[str]]:
        def mutate(progress: Progress) -> None:
            progress.ai_interactions += 1

        return self._record_activity(learner_id, mutate)

    def increment_validations(self, learner_id: str) -> Tuple[Progress, List[str]]:
        def mutate(progress: Progress) -> None:
            progress.code_validations += 1

        return self._record_activity(learner_id, mutate)

    def increment_files_saved(self, learner_id: str) -> Tuple[Progress, List[str]]:
        def mutate(progress: Progress) -> None:
            progress.files_saved += 1

        return self._record_activity(learner_id, mutate)

    def record_event(self, learner_id: str, event: str) -> Tuple[Progress, List[str]]:
        """
        Raises:
            InvalidInputError: If the event name is unknown
        """
        handlers = {
            "ai_interaction": self.increment_ai_interactions,
            "code_validation": self.increment_validations,
            "file_saved": self.increment_files_saved,
        }
        if event not in handlers:
            raise InvalidInputError(f"Unknown progress event: {event}")
        return handlers[event](learner_id)

    def add_time_spent(self, learner_id: str, minutes: int) -> Progress:
        """
        Raises:
            InvalidInputError: If minutes is negative
        """
        if minutes < 0:
            raise InvalidInputError("Minutes cannot be negative")
        with self._lock:
            progress = self.get_progress(learner_id)
            progress.time_spent += minutes
            self._save(learner_id, progress)
            return progress

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_lesson_completed(self, learner_id: str, lesson_id: str) -> bool:
        return str(lesson_id) in self.get_progress(learner_id).lessons_completed

    def get_stats(self, learner_id: str) -> ProgressStats:
        progress = self.get_progress(learner_id)
        return ProgressStats(
            lessons_completed=progress.total_lessons,
            ai_interactions=progress.ai_interactions,
            code_validations=progress.code_validations,
            files_saved=progress.files_saved,
            current_streak=progress.current_streak,
            longest_streak=progress.longest_streak,
            time_spent=progress.time_spent,
            achievements_count=len(progress.achievements),
            total_achievements=len(ACHIEVEMENTS),
            achievements=[ACHIEVEMENTS[a] for a in progress.achievements if a in ACHIEVEMENTS],
        )

    def export_progress(self, learner_id: str) -> Dict[str, Any]:
        """Progress as a camelCase JSON-ready dict"""
        return self.get_progress(learner_id).model_dump(mode="json", by_alias=True)

    def import_progress(self, learner_id: str, data: Any) -> Progress:
        """
        Replace a learner's progress with an exported snapshot

        Duplicate lessons and unknown or repeated achievement ids are dropped,
        and totalLessons is recomputed.

        Raises:
            InvalidInputError: If the snapshot does not describe valid progress
        """
        validate_learner_id(learner_id)
        if not isinstance(data, dict):
            raise InvalidInputError("Progress data must be a JSON object")
        try:
            progress = Progress.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise InvalidInputError(f"Invalid progress data: {location}: {first['msg']}") from e

        if progress.last_active_date is not None:
            try:
                date.fromisoformat(progress.last_active_date)
            except ValueError as e:
                raise InvalidInputError("Invalid progress data: lastActiveDate must be YYYY-MM-DD") from e

        progress.lessons_completed = list(dict.fromkeys(str(l) for l in progress.lessons_completed))
        progress.total_lessons = len(progress.lessons_completed)
        progress.achievements = [a for a in dict.fromkeys(progress.achievements) if a in ACHIEVEMENTS]
        progress.longest_streak = max(progress.longest_streak, progress.current_streak)

        with self._lock:
            self._save(learner_id, progress)
        logger.info(f"📥 Progress imported: {learner_id}")
        return progress
