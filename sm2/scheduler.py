"""
sm2.scheduler
---------

This module defines the Scheduler class, the SM-2 style scheduling engine.

Classes:
    Scheduler: Computes the next review state of a card from a review outcome.

Functions:
    schedule: Applies a single review outcome with a given configuration.
"""

from __future__ import annotations
from collections.abc import Iterable
from copy import copy
from datetime import datetime, timedelta, timezone
import math
from sm2.config import SchedulerConfig
from sm2.grade import Grade
from sm2.review_log import ReviewLog, ReviewOutcome
from sm2.review_state import ReviewState

# float noise below this many decimals is ignored when rounding up to whole days
_ROUNDING_DECIMALS = 6


class Scheduler:
    """
    The SM-2 scheduler.

    Reviewing is a pure function of the previous ReviewState, the ReviewOutcome and the
    scheduler's configuration: nothing is persisted and the given state is never modified.

    Attributes:
        config: The constants used in the scheduling calculations.
    """

    config: SchedulerConfig

    def __init__(self, config: SchedulerConfig | None = None) -> None:
        if config is None:
            config = SchedulerConfig()
        self.config = config

    def __repr__(self) -> str:
        return f"Scheduler(config={self.config!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Scheduler):
            return NotImplemented
        return self.config == other.config

    def initial_state(self, card_id: str, reviewed_at: datetime) -> ReviewState:
        """
        Returns the state a card is considered to be in before its first review.
        """

        return ReviewState(
            card_id=card_id,
            interval_days=self.config.initial_interval_days,
            ease_factor=self.config.initial_ease,
            due_at=reviewed_at,
        )

    def schedule(
        self, current_state: ReviewState | None, outcome: ReviewOutcome
    ) -> ReviewState:
        """
        Computes the card's next review state from its current state and a review outcome.

        Args:
            current_state: The card's current state, or None if the card has never been reviewed.
            outcome: The outcome of the review.

        Returns:
            ReviewState: A new state holding the updated interval, ease factor and due date.

        Raises:
            InvalidGrade: If the outcome's grade is not one of Fail, Hard, Good or Easy.
            ValueError: If `reviewed_at` is not timezone-aware and set to UTC, or if the
                current state belongs to a different card than the outcome.
        """

        grade = Grade.parse(outcome.grade)
        reviewed_at = outcome.reviewed_at

        if (reviewed_at.tzinfo is None) or (reviewed_at.tzinfo != timezone.utc):
            raise ValueError("datetime must be timezone-aware and set to UTC")

        if current_state is None:
            state = self.initial_state(outcome.card_id, reviewed_at)
        elif current_state.card_id != outcome.card_id:
            raise ValueError(
                f"ReviewOutcome card_id {outcome.card_id} does not match ReviewState card_id {current_state.card_id}"
            )
        else:
            state = copy(current_state)

        match grade:
            case Grade.Fail:
                state.repetitions = 0
                state.lapses += 1
                state.ease_factor = self._clamp_ease(
                    ease_factor=state.ease_factor - self.config.ease_penalty
                )
                interval_days = self.config.min_interval_days

            case Grade.Hard | Grade.Good | Grade.Easy:
                state.repetitions += 1
                state.ease_factor = self._clamp_ease(
                    ease_factor=state.ease_factor + self._ease_delta(grade=grade)
                )

                if state.repetitions == 1:
                    interval_days = self.config.first_interval_days
                elif state.repetitions == 2:
                    interval_days = self.config.second_interval_days
                else:
                    interval_days = (
                        state.interval_days
                        * state.ease_factor
                        * self._interval_multiplier(grade=grade)
                    )

        state.interval_days = self._clamp_interval(interval_days=interval_days)
        state.due_at = reviewed_at + timedelta(days=state.interval_days)
        state.last_review = reviewed_at
        state.last_grade = grade

        return state

    def review_card(
        self,
        current_state: ReviewState | None,
        outcome: ReviewOutcome,
        review_duration: int | None = None,
    ) -> tuple[ReviewState, ReviewLog]:
        """
        Schedules a review and also returns the matching ReviewLog entry.

        Args:
            current_state: The card's current state, or None if the card has never been reviewed.
            outcome: The outcome of the review.
            review_duration: The number of milliseconds it took to review the card or None if unspecified.

        Returns:
            tuple[ReviewState, ReviewLog]: The updated state and its corresponding review log.
        """

        state = self.schedule(current_state, outcome)

        review_log = ReviewLog(
            card_id=state.card_id,
            grade=Grade.parse(outcome.grade),
            reviewed_at=outcome.reviewed_at,
            review_duration=review_duration,
        )

        return state, review_log

    def reschedule(
        self, card_id: str, review_logs: Iterable[ReviewLog]
    ) -> ReviewState | None:
        """
        Rebuilds a card's state by replaying its review logs with this scheduler.

        Useful after changing the scheduler configuration, so that a card is scheduled as
        if it had always been reviewed with the current settings.

        Args:
            card_id: The card to be rescheduled.
            review_logs: That card's review logs (order doesn't matter).

        Returns:
            ReviewState | None: The rebuilt state, or None if there are no review logs.

        Raises:
            ValueError: If any of the review logs are for a card other than the one specified.
        """

        review_logs = list(review_logs)

        for review_log in review_logs:
            if review_log.card_id != card_id:
                raise ValueError(
                    f"ReviewLog card_id {review_log.card_id} does not match card_id {card_id}"
                )

        review_logs.sort(key=lambda log: log.reviewed_at)

        state = None
        for review_log in review_logs:
            state = self.schedule(state, review_log.to_outcome())

        return state

    def preview(
        self,
        card_id: str,
        current_state: ReviewState | None = None,
        reviewed_at: datetime | None = None,
    ) -> dict[Grade, ReviewState]:
        """
        Returns the state each grade would produce, e.g. for labelling answer buttons.
        """

        if reviewed_at is None:
            reviewed_at = datetime.now(timezone.utc)

        return {
            grade: self.schedule(
                current_state,
                ReviewOutcome(card_id=card_id, grade=grade, reviewed_at=reviewed_at),
            )
            for grade in Grade
        }

    def is_mastered(self, state: ReviewState) -> bool:
        return state.interval_days >= self.config.mastery_interval_days

    def _ease_delta(self, *, grade: Grade) -> float:
        if grade == Grade.Hard:
            return self.config.hard_ease_delta
        if grade == Grade.Easy:
            return self.config.easy_ease_delta
        return 0.0

    def _interval_multiplier(self, *, grade: Grade) -> float:
        if grade == Grade.Hard:
            return self.config.hard_multiplier
        if grade == Grade.Easy:
            return self.config.easy_multiplier
        return 1.0

    def _clamp_ease(self, *, ease_factor: float) -> float:
        return min(max(ease_factor, self.config.min_ease), self.config.max_ease)

    def _clamp_interval(self, *, interval_days: float) -> float:
        interval_days = max(interval_days, self.config.min_interval_days)

        if self.config.whole_days:
            # due dates fall on whole days to avoid intra-day reshuffling
            interval_days = float(math.ceil(round(interval_days, _ROUNDING_DECIMALS)))

        # can not be longer than the maximum interval
        interval_days = min(interval_days, self.config.maximum_interval_days)

        return float(interval_days)


def schedule(
    current_state: ReviewState | None,
    outcome: ReviewOutcome,
    config: SchedulerConfig | None = None,
) -> ReviewState:
    """
    Applies a review outcome to a card's state using the given (or default) configuration.

    See Scheduler.schedule.
    """

    return Scheduler(config).schedule(current_state, outcome)


__all__ = ["Scheduler", "schedule"]
