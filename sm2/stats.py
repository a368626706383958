"""
sm2.stats
---------

This module defines the optional ReviewStats class.

Computes study statistics (streaks, daily goal progress, weekly activity) from a user's
review logs. Requires pandas, install with `pip install py-sm2[stats]`.
"""

from __future__ import annotations
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

import pandas as pd

from sm2.grade import Grade
from sm2.review_log import ReviewLog

DEFAULT_XP_PER_CARD = 10
DEFAULT_DAILY_GOAL = 20


@dataclass(frozen=True)
class DayActivity:
    """
    The number of reviews done on one calendar day (UTC).
    """

    date: date
    day_label: str
    review_count: int
    is_today: bool


def _today() -> date:
    return datetime.now(timezone.utc).date()


class ReviewStats:
    """
    Study statistics of one user, computed from their review logs.

    Attributes:
        xp_per_card: Experience points earned per reviewed card.
    """

    def __init__(
        self, review_logs: Iterable[ReviewLog], xp_per_card: int = DEFAULT_XP_PER_CARD
    ) -> None:
        self.xp_per_card = xp_per_card

        df = pd.DataFrame.from_records(
            [
                {
                    "card_id": review_log.card_id,
                    "grade": int(review_log.grade),
                    "reviewed_at": review_log.reviewed_at,
                    "review_duration": review_log.review_duration,
                }
                for review_log in review_logs
            ],
            columns=["card_id", "grade", "reviewed_at", "review_duration"],
        )
        df["reviewed_at"] = pd.to_datetime(df["reviewed_at"], utc=True)
        df["date"] = df["reviewed_at"].dt.date
        self._df = df.sort_values("reviewed_at", kind="stable").reset_index(drop=True)

    def __repr__(self) -> str:
        return f"ReviewStats({len(self._df)} reviews)"

    def to_dataframe(self) -> pd.DataFrame:
        """
        Returns a copy of the review logs as a DataFrame, one row per review.
        """

        return self._df.copy()

    @property
    def cards_reviewed_total(self) -> int:
        return len(self._df)

    @property
    def unique_cards(self) -> int:
        return int(self._df["card_id"].nunique())

    @property
    def xp(self) -> int:
        return self.cards_reviewed_total * self.xp_per_card

    @property
    def retention_rate(self) -> float | None:
        """
        The share of reviews that were not graded Fail, or None without reviews.
        """

        if self._df.empty:
            return None
        return float((self._df["grade"] != int(Grade.Fail)).mean())

    @property
    def study_days(self) -> list[date]:
        return sorted(self._df["date"].unique())

    @property
    def total_study_days(self) -> int:
        return len(self.study_days)

    def reviews_per_day(self) -> pd.Series:
        """
        Returns the number of reviews per calendar day, indexed by date.
        """

        return self._df.groupby("date").size()

    def daily_cards_completed(self, today: date | None = None) -> int:
        if today is None:
            today = _today()
        return int((self._df["date"] == today).sum())

    def goal_progress(
        self, daily_goal: int = DEFAULT_DAILY_GOAL, today: date | None = None
    ) -> float:
        """
        Returns today's progress towards the daily goal, between 0.0 and 1.0.

        Raises:
            ValueError: If the daily goal is not positive.
        """

        if daily_goal <= 0:
            raise ValueError(f"daily_goal must be positive, got {daily_goal}")
        return min(1.0, self.daily_cards_completed(today=today) / daily_goal)

    def current_streak(self, today: date | None = None) -> int:
        """
        Returns the number of consecutive study days up to today.

        A streak stays alive until the end of the day after the last study day, so a
        user who studied yesterday but not yet today keeps yesterday's streak.
        """

        if today is None:
            today = _today()

        days = set(self.study_days)

        if today in days:
            day = today
        elif today - timedelta(days=1) in days:
            day = today - timedelta(days=1)
        else:
            return 0

        streak = 0
        while day in days:
            streak += 1
            day -= timedelta(days=1)

        return streak

    @property
    def longest_streak(self) -> int:
        days = pd.Series(pd.to_datetime(self.study_days))
        if days.empty:
            return 0

        # a new run starts wherever the gap to the previous study day is not one day
        runs = days.diff().dt.days.ne(1).cumsum()
        return int(runs.value_counts().max())

    def weekly_activity(self, today: date | None = None) -> list[DayActivity]:
        """
        Returns the activity of the seven days ending today, oldest first.
        """

        if today is None:
            today = _today()

        counts = self.reviews_per_day()

        activity = []
        for offset in range(6, -1, -1):
            day = today - timedelta(days=offset)
            activity.append(
                DayActivity(
                    date=day,
                    day_label=day.strftime("%a"),
                    review_count=int(counts.get(day, 0)),
                    is_today=offset == 0,
                )
            )

        return activity


__all__ = ["ReviewStats", "DayActivity"]
