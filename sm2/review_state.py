"""
sm2.review_state
---------

This module defines the ReviewState class.

Classes:
    ReviewState: The scheduling state of one card for one user.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
import json
from typing import TypedDict
from typing_extensions import Self
from sm2.grade import Grade


class ReviewStateDict(TypedDict):
    """
    JSON-serializable dictionary representation of a ReviewState object.
    """

    card_id: str
    interval_days: float
    ease_factor: float
    due_at: str
    repetitions: int
    lapses: int
    last_review: str | None
    last_grade: int | None
    version: int


@dataclass
class ReviewState:
    """
    Represents the scheduling state of a card for a single user.

    Attributes:
        card_id: The id of the card this state belongs to.
        interval_days: The current spacing interval in days. Always positive.
        ease_factor: Multiplier controlling how fast the interval grows.
        due_at: The date and time when the card is next due.
        repetitions: Consecutive successful reviews since the last lapse.
        lapses: Lifetime count of failed reviews.
        last_review: The date and time of the card's last review.
        last_grade: The grade given at the card's last review.
        version: Write counter maintained by the review store.
    """

    card_id: str
    interval_days: float
    ease_factor: float
    due_at: datetime
    repetitions: int = 0
    lapses: int = 0
    last_review: datetime | None = None
    last_grade: Grade | None = None
    version: int = 0

    def is_due(self, now: datetime | None = None) -> bool:
        """
        Returns whether the card is eligible for review at the given time.
        """

        if now is None:
            now = datetime.now(timezone.utc)

        return now >= self.due_at

    def to_dict(self) -> ReviewStateDict:
        """
        Returns a JSON-serializable dictionary representation of the ReviewState object.

        This method is specifically useful for storing ReviewState objects in a database.

        Returns:
            A dictionary representation of the ReviewState object.
        """

        return {
            "card_id": self.card_id,
            "interval_days": self.interval_days,
            "ease_factor": self.ease_factor,
            "due_at": self.due_at.isoformat(),
            "repetitions": self.repetitions,
            "lapses": self.lapses,
            "last_review": self.last_review.isoformat() if self.last_review else None,
            "last_grade": int(self.last_grade) if self.last_grade is not None else None,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, source_dict: ReviewStateDict) -> Self:
        """
        Creates a ReviewState object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing ReviewState object.

        Returns:
            A ReviewState object created from the provided dictionary.
        """

        return cls(
            card_id=str(source_dict["card_id"]),
            interval_days=float(source_dict["interval_days"]),
            ease_factor=float(source_dict["ease_factor"]),
            due_at=datetime.fromisoformat(source_dict["due_at"]),
            repetitions=int(source_dict["repetitions"]),
            lapses=int(source_dict["lapses"]),
            last_review=(
                datetime.fromisoformat(source_dict["last_review"])
                if source_dict["last_review"]
                else None
            ),
            last_grade=(
                Grade(int(source_dict["last_grade"]))
                if source_dict["last_grade"] is not None
                else None
            ),
            version=int(source_dict.get("version", 0)),
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the ReviewState object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a ReviewState object from a JSON-serialized string.
        """

        source_dict: ReviewStateDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["ReviewState"]
