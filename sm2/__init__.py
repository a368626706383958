"""
py-sm2
-------

Py-SM2 is an SM-2 style spaced-repetition scheduler for flashcard applications, with
session selection, review stores and study statistics.
"""

from sm2.scheduler import Scheduler, schedule
from sm2.config import SchedulerConfig
from sm2.grade import Grade
from sm2.flashcard import CardCatalog, Difficulty, Flashcard
from sm2.review_state import ReviewState
from sm2.review_log import ReviewLog, ReviewOutcome
from sm2.selector import SessionSelector, count_due, select_due
from sm2.store import InMemoryReviewStore, ReviewStore, SQLiteReviewStore
from sm2.session import ReviewService
from sm2.errors import (
    ConcurrentUpdateError,
    InvalidGrade,
    PersistenceError,
    SchedulerError,
    UnknownCardError,
)
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sm2.stats import ReviewStats


# lazy load the stats module due to the pandas dependency
def __getattr__(name: str) -> type:
    if name == "ReviewStats":
        global ReviewStats
        from sm2.stats import ReviewStats

        return ReviewStats
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "Scheduler",
    "schedule",
    "SchedulerConfig",
    "Grade",
    "CardCatalog",
    "Difficulty",
    "Flashcard",
    "ReviewState",
    "ReviewLog",
    "ReviewOutcome",
    "SessionSelector",
    "select_due",
    "count_due",
    "ReviewStore",
    "InMemoryReviewStore",
    "SQLiteReviewStore",
    "ReviewService",
    "SchedulerError",
    "InvalidGrade",
    "PersistenceError",
    "ConcurrentUpdateError",
    "UnknownCardError",
    "ReviewStats",
]
