"""
sm2.grade
---------

This module defines the Grade enum given when reviewing a card.
"""

from __future__ import annotations
from enum import IntEnum
from sm2.errors import InvalidGrade

# self-rating buttons shown after revealing the answer
DIFFICULTY_LABEL_GRADES = {
    "easy": 3,
    "medium": 1,
    "hard": 0,
}


class Grade(IntEnum):
    """
    Enum representing the four possible grades when reviewing a card.
    """

    Fail = 0
    Hard = 1
    Good = 2
    Easy = 3

    @classmethod
    def parse(cls, value: object) -> Grade:
        """
        Converts a Grade, an integer from 0 to 3 or a grade name into a Grade.

        Args:
            value: The value to convert.

        Returns:
            Grade: The matching grade.

        Raises:
            InvalidGrade: If the value does not name one of the four grades.
        """

        if isinstance(value, cls):
            return value

        # bool is an int subclass, True must not mean Hard
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise InvalidGrade(f"grade {value} is not between 0 and 3") from None

        if isinstance(value, str):
            for grade in cls:
                if grade.name.lower() == value.strip().lower():
                    return grade

        raise InvalidGrade(f"invalid grade: {value!r}")

    @classmethod
    def from_difficulty(cls, label: str) -> Grade:
        """
        Maps a self-rated difficulty button ("easy", "medium" or "hard") to a Grade.

        Raises:
            InvalidGrade: If the label is not one of the three buttons.
        """

        try:
            return cls(DIFFICULTY_LABEL_GRADES[label.strip().lower()])
        except (KeyError, AttributeError):
            raise InvalidGrade(f"unknown difficulty label: {label!r}") from None


__all__ = ["Grade"]
