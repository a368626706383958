"""
sm2.config
---------

This module defines the SchedulerConfig class as well as the default constants used by the scheduler.

Classes:
    SchedulerConfig: The tunable constants of the SM-2 scheduler.
"""

from __future__ import annotations
from dataclasses import dataclass
import json
from typing import TypedDict
from typing_extensions import Self

DEFAULT_INITIAL_EASE = 2.5
DEFAULT_MIN_EASE = 1.3
DEFAULT_MAX_EASE = 3.5
DEFAULT_EASE_PENALTY = 0.2
DEFAULT_HARD_EASE_DELTA = -0.15
DEFAULT_EASY_EASE_DELTA = 0.15

DEFAULT_INITIAL_INTERVAL_DAYS = 1.0
DEFAULT_MIN_INTERVAL_DAYS = 1.0
DEFAULT_FIRST_INTERVAL_DAYS = 1.0
DEFAULT_SECOND_INTERVAL_DAYS = 6.0
DEFAULT_MAXIMUM_INTERVAL_DAYS = 36500

DEFAULT_HARD_MULTIPLIER = 0.8
DEFAULT_EASY_MULTIPLIER = 1.3

DEFAULT_MASTERY_INTERVAL_DAYS = 21.0


class SchedulerConfigDict(TypedDict):
    """
    JSON-serializable dictionary representation of a SchedulerConfig object.
    """

    initial_ease: float
    min_ease: float
    max_ease: float
    ease_penalty: float
    hard_ease_delta: float
    easy_ease_delta: float
    initial_interval_days: float
    min_interval_days: float
    first_interval_days: float
    second_interval_days: float
    maximum_interval_days: float
    hard_multiplier: float
    easy_multiplier: float
    mastery_interval_days: float
    whole_days: bool


@dataclass(init=False)
class SchedulerConfig:
    """
    The constants of the SM-2 scheduler.

    Attributes:
        initial_ease: Ease factor given to a card on its first review.
        min_ease: Lower bound of the ease factor, at least 1.
        max_ease: Upper bound of the ease factor.
        ease_penalty: Amount subtracted from the ease factor on a Fail.
        hard_ease_delta: Change of the ease factor on a Hard (not positive).
        easy_ease_delta: Change of the ease factor on an Easy (not negative).
        initial_interval_days: Interval of the state synthesized for a card's first review.
        min_interval_days: Interval after a Fail, and the lower bound of every interval.
        first_interval_days: Interval after the first successful review.
        second_interval_days: Interval after the second consecutive successful review.
        maximum_interval_days: The maximum number of days a card can be scheduled into the future.
        hard_multiplier: Interval multiplier applied on a Hard (at most 1).
        easy_multiplier: Interval multiplier applied on an Easy (at least 1).
        mastery_interval_days: Interval from which a card counts as mastered.
        whole_days: Whether intervals are rounded up to whole days.
    """

    initial_ease: float
    min_ease: float
    max_ease: float
    ease_penalty: float
    hard_ease_delta: float
    easy_ease_delta: float
    initial_interval_days: float
    min_interval_days: float
    first_interval_days: float
    second_interval_days: float
    maximum_interval_days: float
    hard_multiplier: float
    easy_multiplier: float
    mastery_interval_days: float
    whole_days: bool

    def __init__(
        self,
        initial_ease: float = DEFAULT_INITIAL_EASE,
        min_ease: float = DEFAULT_MIN_EASE,
        max_ease: float = DEFAULT_MAX_EASE,
        ease_penalty: float = DEFAULT_EASE_PENALTY,
        hard_ease_delta: float = DEFAULT_HARD_EASE_DELTA,
        easy_ease_delta: float = DEFAULT_EASY_EASE_DELTA,
        initial_interval_days: float = DEFAULT_INITIAL_INTERVAL_DAYS,
        min_interval_days: float = DEFAULT_MIN_INTERVAL_DAYS,
        first_interval_days: float = DEFAULT_FIRST_INTERVAL_DAYS,
        second_interval_days: float = DEFAULT_SECOND_INTERVAL_DAYS,
        maximum_interval_days: float = DEFAULT_MAXIMUM_INTERVAL_DAYS,
        hard_multiplier: float = DEFAULT_HARD_MULTIPLIER,
        easy_multiplier: float = DEFAULT_EASY_MULTIPLIER,
        mastery_interval_days: float = DEFAULT_MASTERY_INTERVAL_DAYS,
        whole_days: bool = True,
    ) -> None:
        self.initial_ease = initial_ease
        self.min_ease = min_ease
        self.max_ease = max_ease
        self.ease_penalty = ease_penalty
        self.hard_ease_delta = hard_ease_delta
        self.easy_ease_delta = easy_ease_delta
        self.initial_interval_days = initial_interval_days
        self.min_interval_days = min_interval_days
        self.first_interval_days = first_interval_days
        self.second_interval_days = second_interval_days
        self.maximum_interval_days = maximum_interval_days
        self.hard_multiplier = hard_multiplier
        self.easy_multiplier = easy_multiplier
        self.mastery_interval_days = mastery_interval_days
        self.whole_days = whole_days

        self._validate()

    def _validate(self) -> None:
        error_messages = []

        if not 1 <= self.min_ease <= self.initial_ease <= self.max_ease:
            error_messages.append(
                f"ease factors must satisfy 1 <= min_ease ({self.min_ease}) <= "
                f"initial_ease ({self.initial_ease}) <= max_ease ({self.max_ease})"
            )

        if self.ease_penalty < 0:
            error_messages.append(f"ease_penalty = {self.ease_penalty} is negative")

        if self.hard_ease_delta > 0:
            error_messages.append(f"hard_ease_delta = {self.hard_ease_delta} is positive")

        if self.easy_ease_delta < 0:
            error_messages.append(f"easy_ease_delta = {self.easy_ease_delta} is negative")

        for name in (
            "initial_interval_days",
            "min_interval_days",
            "first_interval_days",
            "second_interval_days",
            "maximum_interval_days",
            "mastery_interval_days",
        ):
            value = getattr(self, name)
            if not value > 0:
                error_messages.append(f"{name} = {value} must be positive")

        if self.min_interval_days > self.maximum_interval_days:
            error_messages.append(
                f"min_interval_days ({self.min_interval_days}) exceeds "
                f"maximum_interval_days ({self.maximum_interval_days})"
            )

        if not 0 < self.hard_multiplier <= 1:
            error_messages.append(
                f"hard_multiplier = {self.hard_multiplier} is out of bounds: (0, 1]"
            )

        if self.easy_multiplier < 1:
            error_messages.append(
                f"easy_multiplier = {self.easy_multiplier} must be at least 1"
            )

        if len(error_messages) > 0:
            raise ValueError(
                "One or more scheduler settings are invalid:\n"
                + "\n".join(error_messages)
            )

    def to_dict(self) -> SchedulerConfigDict:
        """
        Returns a dictionary representation of the SchedulerConfig object.
        """

        return {
            "initial_ease": self.initial_ease,
            "min_ease": self.min_ease,
            "max_ease": self.max_ease,
            "ease_penalty": self.ease_penalty,
            "hard_ease_delta": self.hard_ease_delta,
            "easy_ease_delta": self.easy_ease_delta,
            "initial_interval_days": self.initial_interval_days,
            "min_interval_days": self.min_interval_days,
            "first_interval_days": self.first_interval_days,
            "second_interval_days": self.second_interval_days,
            "maximum_interval_days": self.maximum_interval_days,
            "hard_multiplier": self.hard_multiplier,
            "easy_multiplier": self.easy_multiplier,
            "mastery_interval_days": self.mastery_interval_days,
            "whole_days": self.whole_days,
        }

    @classmethod
    def from_dict(cls, source_dict: SchedulerConfigDict) -> Self:
        """
        Creates a SchedulerConfig object from an existing dictionary.

        Keys missing from the dictionary fall back to their defaults.
        """

        return cls(**source_dict)

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the SchedulerConfig object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a SchedulerConfig object from a JSON-serialized string.
        """

        source_dict: SchedulerConfigDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["SchedulerConfig"]
