"""
sm2.review_log
--------------

This module defines the ReviewOutcome and ReviewLog classes.

Classes:
    ReviewOutcome: The result of reviewing a card, as reported by the learner.
    ReviewLog: A stored review.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TypedDict
import json
from typing_extensions import Self
from sm2.grade import Grade


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReviewOutcome:
    """
    The outcome of a single review, consumed by the scheduler.

    Attributes:
        card_id: The id of the card that was reviewed.
        grade: The grade given to the card. Validated by the scheduler.
        reviewed_at: The date and time of the review. Defaults to now (UTC).
    """

    card_id: str
    grade: Grade | int | str
    reviewed_at: datetime = field(default_factory=_utcnow)


class ReviewLogDict(TypedDict):
    """
    JSON-serializable dictionary representation of a ReviewLog object.
    """

    card_id: str
    grade: int
    reviewed_at: str
    review_duration: int | None


@dataclass
class ReviewLog:
    """
    A stored review, kept so a user's states can be rebuilt and studied.

    Attributes:
        card_id: The id of the reviewed card.
        grade: The grade given to the card.
        reviewed_at: The date and time of the review.
        review_duration: Milliseconds the review took, or None.
    """

    card_id: str
    grade: Grade
    reviewed_at: datetime
    review_duration: int | None = None

    def to_outcome(self) -> ReviewOutcome:
        return ReviewOutcome(
            card_id=self.card_id, grade=self.grade, reviewed_at=self.reviewed_at
        )

    def to_dict(self) -> ReviewLogDict:
        return {
            "card_id": self.card_id,
            "grade": int(self.grade),
            "reviewed_at": self.reviewed_at.isoformat(),
            "review_duration": self.review_duration,
        }

    @classmethod
    def from_dict(cls, source_dict: ReviewLogDict) -> Self:
        """
        Raises:
            InvalidGrade: If the stored grade is not a valid grade.
        """

        return cls(
            card_id=str(source_dict["card_id"]),
            grade=Grade.parse(source_dict["grade"]),
            reviewed_at=datetime.fromisoformat(source_dict["reviewed_at"]),
            review_duration=source_dict["review_duration"],
        )

    def to_json(self, indent: int | str | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        source_dict: ReviewLogDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["ReviewOutcome", "ReviewLog"]
