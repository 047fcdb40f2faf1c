from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from db.repository import KnowledgeRepository, repository_session
from models import DifficultWord
from .errors import NotFoundError
from .singleflight import KeyedLocks

SECONDS_PER_DAY = 24 * 60 * 60
DEFAULT_SLEEP_DAYS = 7


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_sleep_until(now: datetime, sleep_days: int) -> datetime:
    """Instant a word wakes up after sleeping sleep_days whole days from now."""
    if sleep_days < 0:
        raise ValueError("sleep_days cannot be negative")
    return now + timedelta(days=sleep_days)


def sleep_remaining(sleep_until: datetime, now: datetime) -> int:
    """Whole days left until sleep_until, rounded up; 0 once now has reached it."""
    if sleep_until <= now:
        return 0
    seconds = (sleep_until - now).total_seconds()
    return math.ceil(seconds / SECONDS_PER_DAY)


class DifficultyScheduler:
    """Per-user "too hard" markers that keep a word asleep until a future instant."""

    def __init__(
        self,
        session_factory: Callable = repository_session,
        now: Callable[[], datetime] = utcnow,
        default_sleep_days: int = DEFAULT_SLEEP_DAYS,
    ):
        self.session_factory = session_factory
        self.now = now
        self.default_sleep_days = default_sleep_days
        self._locks = KeyedLocks()

    def _require(self, repository: KnowledgeRepository, user_id: int, word_id: Optional[int] = None) -> None:
        if repository.get_user(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        if word_id is not None and repository.get_word(word_id) is None:
            raise NotFoundError(f"Word {word_id} not found")

    def mark_difficult(self, user_id: int, word_id: int, sleep_days: Optional[int] = None) -> datetime:
        """Put a word to sleep for the user, replacing any earlier marker for the same word."""
        if sleep_days is None:
            sleep_days = self.default_sleep_days
        sleep_until = compute_sleep_until(self.now(), sleep_days)
        with self._locks.hold((user_id, word_id)):
            with self.session_factory() as repository:
                self._require(repository, user_id, word_id)
                repository.upsert_difficult_entry(user_id, word_id, sleep_until)
        return sleep_until

    def list_difficult(self, user_id: int) -> List[DifficultWord]:
        with self.session_factory() as repository:
            self._require(repository, user_id)
            entries = repository.list_difficult_entries(user_id)
        now = self.now()
        return [
            DifficultWord(
                word=word,
                sleep_until=sleep_until,
                active=sleep_until <= now,
                sleep_remaining=sleep_remaining(sleep_until, now),
            )
            for word, sleep_until in entries
        ]

    def due_words(self, user_id: int) -> List[DifficultWord]:
        """Difficult words whose sleep has ended."""
        return [entry for entry in self.list_difficult(user_id) if entry.active]

    def remove_difficult(self, user_id: int, word_id: int) -> None:
        with self._locks.hold((user_id, word_id)):
            with self.session_factory() as repository:
                if not repository.delete_difficult_entry(user_id, word_id):
                    raise NotFoundError(f"Word {word_id} is not in the difficult list of user {user_id}")
