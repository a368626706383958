"""
sm2.session
---------

This module defines the ReviewService class, the entry point of a study session.

Classes:
    ReviewService: Serves due cards and records reviews for explicitly given users.
"""

from __future__ import annotations
from datetime import datetime, timezone
import logging
from typing import TYPE_CHECKING
from sm2.errors import ConcurrentUpdateError, PersistenceError, UnknownCardError
from sm2.flashcard import CardCatalog
from sm2.grade import Grade
from sm2.review_log import ReviewOutcome
from sm2.review_state import ReviewState
from sm2.scheduler import Scheduler
from sm2.selector import SessionSelector
from sm2.store import ReviewStore

if TYPE_CHECKING:
    from sm2.stats import ReviewStats

logger = logging.getLogger(__name__)


class ReviewService:
    """
    Connects a review store with the scheduler and the session selector.

    Every operation takes the user id explicitly; the service keeps no per-user state
    and can be shared between concurrent request handlers.

    Attributes:
        store: Where review states and logs are persisted.
        scheduler: Computes the next state of a reviewed card.
        selector: Picks the cards of a study session.
        catalog: If set, reviews of cards missing from it are rejected.
        detect_conflicts: Whether writes fail when another review of the same card was
            stored since the state was read, instead of overwriting it.
    """

    def __init__(
        self,
        store: ReviewStore,
        scheduler: Scheduler | None = None,
        selector: SessionSelector | None = None,
        catalog: CardCatalog | None = None,
        detect_conflicts: bool = False,
    ) -> None:
        self.store = store
        self.scheduler = scheduler if scheduler is not None else Scheduler()
        self.selector = selector if selector is not None else SessionSelector()
        self.catalog = catalog
        self.detect_conflicts = detect_conflicts

    async def due_cards(
        self, user_id: str, limit: int | None = None, now: datetime | None = None
    ) -> list[str]:
        """
        Returns the ids of the user's cards to study now, most urgent first.

        Raises:
            PersistenceError: If the states can not be read.
        """

        states = await self.store.list_for_user(user_id)
        return self.selector.select(states, now=now, limit=limit)

    async def count_due(self, user_id: str, now: datetime | None = None) -> int:
        states = await self.store.list_for_user(user_id)
        return self.selector.count(states, now=now)

    async def submit_review(
        self,
        user_id: str,
        card_id: str,
        grade: Grade | int | str,
        reviewed_at: datetime | None = None,
        review_duration: int | None = None,
    ) -> ReviewState:
        """
        Records a review of a card and returns the card's new state.

        A failed submission leaves no partial state behind and can be retried as a whole.

        Args:
            user_id: The user who reviewed the card.
            card_id: The reviewed card.
            grade: The grade given to the card.
            reviewed_at: The date and time of the review. Defaults to now (UTC).
            review_duration: The number of milliseconds the review took, if known.

        Returns:
            ReviewState: The stored state, carrying its new version.

        Raises:
            InvalidGrade: If the grade is invalid. The store is not touched.
            UnknownCardError: If a catalog is set and does not contain the card.
            ConcurrentUpdateError: If conflicts are detected and another review was stored first.
            PersistenceError: If the store fails to read or write.
        """

        grade = Grade.parse(grade)

        if self.catalog is not None and card_id not in self.catalog:
            raise UnknownCardError(f"card {card_id!r} is not in the catalog")

        if reviewed_at is None:
            reviewed_at = datetime.now(timezone.utc)

        current_state = await self.store.get(user_id, card_id)

        new_state, review_log = self.scheduler.review_card(
            current_state,
            ReviewOutcome(card_id=card_id, grade=grade, reviewed_at=reviewed_at),
            review_duration=review_duration,
        )

        expected_version = None
        if self.detect_conflicts:
            expected_version = current_state.version if current_state else 0

        try:
            stored = await self.store.put(
                user_id,
                card_id,
                new_state,
                expected_version=expected_version,
                review_log=review_log,
            )
        except ConcurrentUpdateError:
            logger.warning(
                "Concurrent review of card %s by user %s was rejected", card_id, user_id
            )
            raise
        except PersistenceError:
            logger.warning(
                "Could not store review of card %s by user %s", card_id, user_id
            )
            raise

        logger.debug(
            "User %s rated card %s %s, next due %s",
            user_id,
            card_id,
            grade.name,
            stored.due_at.isoformat(),
        )

        return stored

    async def reschedule_user(self, user_id: str) -> list[ReviewState]:
        """
        Rebuilds every state of a user from the review logs with the current scheduler.

        Returns:
            list[ReviewState]: The stored, rescheduled states.
        """

        review_logs = await self.store.list_review_logs(user_id)

        logs_by_card: dict[str, list] = {}
        for review_log in review_logs:
            logs_by_card.setdefault(review_log.card_id, []).append(review_log)

        rescheduled = []
        for card_id, card_logs in logs_by_card.items():
            state = self.scheduler.reschedule(card_id, card_logs)
            if state is not None:
                rescheduled.append(await self.store.put(user_id, card_id, state))

        logger.info("Rescheduled %d cards for user %s", len(rescheduled), user_id)

        return rescheduled

    async def reset_user(self, user_id: str) -> int:
        return await self.store.reset_user(user_id)

    async def stats(self, user_id: str, **kwargs) -> ReviewStats:
        """
        Returns the study statistics of a user. Requires pandas.

        Keyword arguments are passed on to ReviewStats.
        """

        from sm2.stats import ReviewStats

        review_logs = await self.store.list_review_logs(user_id)
        return ReviewStats(review_logs, **kwargs)


__all__ = ["ReviewService"]
