"""
sm2.selector
---------

This module picks the cards to study in a session.

Functions:
    select_due: Returns the ids of due cards, most overdue first.
    count_due: Counts the due cards.

Classes:
    SessionSelector: Holds a session policy (size, fill, mastery cut-off).
"""

from __future__ import annotations
from collections.abc import Iterable
from datetime import datetime, timezone
from sm2.review_state import ReviewState

DEFAULT_SESSION_LIMIT = 20


def _resolve_now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)

    if (now.tzinfo is None) or (now.tzinfo != timezone.utc):
        raise ValueError("datetime must be timezone-aware and set to UTC")

    return now


def _urgency(state: ReviewState) -> tuple[datetime, int, str]:
    # most overdue first, then the most lapsed, then by id for a stable order
    return (state.due_at, -state.lapses, state.card_id)


def select_due(
    states: Iterable[ReviewState],
    now: datetime | None = None,
    limit: int = DEFAULT_SESSION_LIMIT,
    *,
    fill: bool = False,
) -> list[str]:
    """
    Selects the cards due for review, ordered by urgency.

    Args:
        states: The review states to pick from.
        now: The current date and time. Defaults to now (UTC).
        limit: The maximum number of card ids returned.
        fill: Whether to pad the result with the soonest not-yet-due cards when fewer than
            `limit` cards are due.

    Returns:
        list[str]: Card ids ordered by ascending due date, then by descending lapses.

    Raises:
        ValueError: If `limit` is negative or `now` is not a UTC datetime.
    """

    if limit < 0:
        raise ValueError(f"limit must not be negative, got {limit}")

    now = _resolve_now(now)

    ordered = sorted(states, key=_urgency)

    due = [state.card_id for state in ordered if state.due_at <= now]
    if fill and len(due) < limit:
        due.extend(state.card_id for state in ordered if state.due_at > now)

    return due[:limit]


def count_due(states: Iterable[ReviewState], now: datetime | None = None) -> int:
    now = _resolve_now(now)

    return sum(1 for state in states if state.due_at <= now)


class SessionSelector:
    """
    Picks the due cards of a study session according to a fixed policy.

    Attributes:
        limit: The default number of cards per session.
        fill: Whether short sessions are padded with cards that are not due yet.
        skip_mastered_after: If set, cards whose interval reached this many days are left out.
    """

    def __init__(
        self,
        limit: int = DEFAULT_SESSION_LIMIT,
        fill: bool = False,
        skip_mastered_after: float | None = None,
    ) -> None:
        if limit < 0:
            raise ValueError(f"limit must not be negative, got {limit}")

        self.limit = limit
        self.fill = fill
        self.skip_mastered_after = skip_mastered_after

    def __repr__(self) -> str:
        return (
            f"SessionSelector(limit={self.limit}, fill={self.fill}, "
            f"skip_mastered_after={self.skip_mastered_after})"
        )

    def _candidates(self, states: Iterable[ReviewState]) -> list[ReviewState]:
        if self.skip_mastered_after is None:
            return list(states)
        return [
            state
            for state in states
            if state.interval_days < self.skip_mastered_after
        ]

    def select(
        self,
        states: Iterable[ReviewState],
        now: datetime | None = None,
        limit: int | None = None,
    ) -> list[str]:
        return select_due(
            self._candidates(states),
            now=now,
            limit=self.limit if limit is None else limit,
            fill=self.fill,
        )

    def count(self, states: Iterable[ReviewState], now: datetime | None = None) -> int:
        return count_due(self._candidates(states), now=now)


__all__ = ["select_due", "count_due", "SessionSelector", "DEFAULT_SESSION_LIMIT"]
