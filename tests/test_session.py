from sm2.session import ReviewService
from sm2.store import InMemoryReviewStore, SQLiteReviewStore
from sm2.scheduler import Scheduler
from sm2.config import SchedulerConfig
from sm2.selector import SessionSelector
from sm2.flashcard import CardCatalog, Flashcard
from sm2.grade import Grade
from sm2.errors import (
    ConcurrentUpdateError,
    InvalidGrade,
    PersistenceError,
    UnknownCardError,
)

from datetime import datetime, timedelta, timezone
import aiosqlite
import asyncio
import pytest

NOW = datetime(2024, 3, 1, 9, 0, 0, 0, timezone.utc)


class FailingStore(InMemoryReviewStore):
    """
    An in-memory store whose reads, writes or log appends can be made to fail.
    """

    def __init__(self, fail_reads=False, fail_writes=False, fail_logs=False):
        super().__init__()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.fail_logs = fail_logs
        self.calls = []

    async def get(self, user_id, card_id):
        self.calls.append("get")
        if self.fail_reads:
            raise PersistenceError("read failed")
        return await super().get(user_id, card_id)

    async def put(
        self, user_id, card_id, state, *, expected_version=None, review_log=None
    ):
        self.calls.append("put")
        if self.fail_writes:
            raise PersistenceError("write failed")
        return await super().put(
            user_id,
            card_id,
            state,
            expected_version=expected_version,
            review_log=review_log,
        )

    def _append_log(self, user_id, review_log):
        if self.fail_logs:
            raise PersistenceError("log write failed")
        super()._append_log(user_id, review_log)


class RacingStore(InMemoryReviewStore):
    """
    Simulates another request storing a review between our read and our write.
    """

    async def get(self, user_id, card_id):
        state = await super().get(user_id, card_id)
        if state is not None:
            await super().put(user_id, card_id, state)
        return state


class TestReviewService:
    def test_first_review(self):
        async def scenario():
            service = ReviewService(InMemoryReviewStore())
            state = await service.submit_review("user-1", "card-1", Grade.Good, NOW)
            return state, await service.store.get("user-1", "card-1")

        state, stored = asyncio.run(scenario())

        assert state.repetitions == 1
        assert state.interval_days == 1
        assert state.due_at == NOW + timedelta(days=1)
        assert state.version == 1
        assert stored == state

    def test_reviews_accumulate(self):
        async def scenario():
            service = ReviewService(InMemoryReviewStore())
            reviewed_at = NOW
            for grade in (Grade.Good, Grade.Good, Grade.Good):
                state = await service.submit_review(
                    "user-1", "card-1", grade, reviewed_at
                )
                reviewed_at = state.due_at
            return state

        state = asyncio.run(scenario())

        assert state.repetitions == 3
        assert state.interval_days == 15
        assert state.version == 3

    def test_grade_formats(self):
        async def scenario():
            service = ReviewService(InMemoryReviewStore())
            by_int = await service.submit_review("user-1", "card-1", 3, NOW)
            by_name = await service.submit_review("user-1", "card-2", "easy", NOW)
            return by_int, by_name

        by_int, by_name = asyncio.run(scenario())

        assert by_int.last_grade == Grade.Easy
        assert by_name.last_grade == Grade.Easy

    def test_invalid_grade_touches_nothing(self):
        store = FailingStore()

        async def scenario():
            service = ReviewService(store)
            await service.submit_review("user-1", "card-1", 9, NOW)

        with pytest.raises(InvalidGrade):
            asyncio.run(scenario())

        assert store.calls == []

    def test_read_failure(self):
        store = FailingStore(fail_reads=True)

        async def scenario():
            await ReviewService(store).submit_review("user-1", "card-1", Grade.Good, NOW)

        with pytest.raises(PersistenceError):
            asyncio.run(scenario())

        # scheduling is not attempted and nothing is written
        assert store.calls == ["get"]

    def test_write_failure_can_be_retried(self):
        store = FailingStore(fail_writes=True)

        async def scenario():
            service = ReviewService(store)
            try:
                await service.submit_review("user-1", "card-1", Grade.Good, NOW)
            except PersistenceError:
                pass
            else:
                raise AssertionError("expected a PersistenceError")

            failed_logs = await store.list_review_logs("user-1")

            store.fail_writes = False
            state = await service.submit_review("user-1", "card-1", Grade.Good, NOW)
            return failed_logs, state, await store.list_review_logs("user-1")

        failed_logs, state, logs = asyncio.run(scenario())

        assert failed_logs == []
        assert state.repetitions == 1
        assert len(logs) == 1

    def test_log_failure_leaves_no_state(self):
        store = FailingStore(fail_logs=True)

        async def scenario():
            service = ReviewService(store, detect_conflicts=True)
            try:
                await service.submit_review("user-1", "card-1", Grade.Good, NOW)
            except PersistenceError:
                pass
            else:
                raise AssertionError("expected a PersistenceError")

            failed_state = await store.get("user-1", "card-1")
            failed_logs = await store.list_review_logs("user-1")

            store.fail_logs = False
            state = await service.submit_review("user-1", "card-1", Grade.Good, NOW)
            logs = await store.list_review_logs("user-1")
            return failed_state, failed_logs, state, logs

        failed_state, failed_logs, state, logs = asyncio.run(scenario())

        assert failed_state is None
        assert failed_logs == []
        # the retry applies the review once
        assert state.repetitions == 1
        assert state.version == 1
        assert len(logs) == 1

    def test_log_failure_rolls_back_sqlite_state(self, tmp_path):
        store = SQLiteReviewStore(tmp_path / "reviews.db")

        async def scenario():
            service = ReviewService(store, detect_conflicts=True)
            await service.submit_review("user-1", "card-1", Grade.Good, NOW)

            async with aiosqlite.connect(store.path) as db:
                await db.execute("DROP TABLE review_logs")
                await db.commit()

            try:
                await service.submit_review(
                    "user-1", "card-1", Grade.Good, NOW + timedelta(days=1)
                )
            except PersistenceError:
                pass
            else:
                raise AssertionError("expected a PersistenceError")

            failed_state = await store.get("user-1", "card-1")

            await store.init()
            state = await service.submit_review(
                "user-1", "card-1", Grade.Good, NOW + timedelta(days=1)
            )
            return failed_state, state, await store.list_review_logs("user-1")

        failed_state, state, logs = asyncio.run(scenario())

        assert failed_state.repetitions == 1
        assert failed_state.version == 1
        assert state.repetitions == 2
        assert state.version == 2
        assert [log.reviewed_at for log in logs] == [NOW + timedelta(days=1)]

    def test_unknown_card(self):
        catalog = CardCatalog([Flashcard("card-1", "What is 2 + 2?", "4")])

        async def scenario():
            service = ReviewService(InMemoryReviewStore(), catalog=catalog)
            await service.submit_review("user-1", "card-1", Grade.Good, NOW)
            await service.submit_review("user-1", "card-404", Grade.Good, NOW)

        with pytest.raises(UnknownCardError):
            asyncio.run(scenario())

    def test_last_writer_wins_by_default(self):
        async def scenario():
            service = ReviewService(RacingStore())
            await service.submit_review("user-1", "card-1", Grade.Good, NOW)
            return await service.submit_review("user-1", "card-1", Grade.Good, NOW)

        state = asyncio.run(scenario())

        assert state.repetitions == 2

    def test_detect_conflicts(self):
        async def scenario():
            service = ReviewService(RacingStore(), detect_conflicts=True)
            await service.submit_review("user-1", "card-1", Grade.Good, NOW)
            await service.submit_review("user-1", "card-1", Grade.Good, NOW)

        with pytest.raises(ConcurrentUpdateError):
            asyncio.run(scenario())

    def test_detect_conflicts_without_race(self):
        async def scenario():
            service = ReviewService(InMemoryReviewStore(), detect_conflicts=True)
            await service.submit_review("user-1", "card-1", Grade.Good, NOW)
            return await service.submit_review(
                "user-1", "card-1", Grade.Good, NOW + timedelta(days=1)
            )

        assert asyncio.run(scenario()).version == 2

    def test_due_cards(self):
        async def scenario():
            service = ReviewService(InMemoryReviewStore())
            # card-a fails (due in 1 day), card-b passes twice (due in 6 days)
            await service.submit_review("user-1", "card-a", Grade.Fail, NOW)
            await service.submit_review("user-1", "card-b", Grade.Good, NOW)
            await service.submit_review(
                "user-1", "card-b", Grade.Good, NOW + timedelta(days=1)
            )
            await service.submit_review("user-1", "card-c", Grade.Good, NOW)
            return (
                await service.due_cards("user-1", now=NOW + timedelta(days=2)),
                await service.due_cards("user-1", now=NOW + timedelta(days=8)),
                await service.due_cards("user-1", limit=1, now=NOW + timedelta(days=8)),
                await service.count_due("user-1", now=NOW + timedelta(days=2)),
                await service.due_cards("user-2", now=NOW + timedelta(days=8)),
            )

        early, late, limited, count, other_user = asyncio.run(scenario())

        # equally due, card-a has lapsed so it comes first
        assert early == ["card-a", "card-c"]
        assert late == ["card-a", "card-c", "card-b"]
        assert limited == ["card-a"]
        assert count == 2
        assert other_user == []

    def test_due_cards_fill(self):
        async def scenario():
            service = ReviewService(
                InMemoryReviewStore(), selector=SessionSelector(limit=5, fill=True)
            )
            await service.submit_review("user-1", "card-a", Grade.Good, NOW)
            return await service.due_cards("user-1", now=NOW)

        assert asyncio.run(scenario()) == ["card-a"]

    def test_review_logs_recorded(self):
        async def scenario():
            service = ReviewService(InMemoryReviewStore())
            await service.submit_review(
                "user-1", "card-1", Grade.Hard, NOW, review_duration=5200
            )
            return await service.store.list_review_logs("user-1")

        (review_log,) = asyncio.run(scenario())

        assert review_log.card_id == "card-1"
        assert review_log.grade == Grade.Hard
        assert review_log.reviewed_at == NOW
        assert review_log.review_duration == 5200

    def test_reschedule_user(self):
        async def scenario():
            store = InMemoryReviewStore()
            service = ReviewService(store)
            reviewed_at = NOW
            for grade in (Grade.Good, Grade.Good, Grade.Good):
                state = await service.submit_review(
                    "user-1", "card-1", grade, reviewed_at
                )
                reviewed_at = state.due_at
            await service.submit_review("user-1", "card-2", Grade.Fail, NOW)

            new_service = ReviewService(
                store, scheduler=Scheduler(SchedulerConfig(second_interval_days=4.0))
            )
            rescheduled = await new_service.reschedule_user("user-1")
            return rescheduled, await store.get("user-1", "card-1")

        rescheduled, stored = asyncio.run(scenario())

        assert len(rescheduled) == 2
        assert stored.interval_days == 10
        assert stored.version == 4

    def test_reset_user(self):
        async def scenario():
            service = ReviewService(InMemoryReviewStore())
            await service.submit_review("user-1", "card-1", Grade.Good, NOW)
            await service.submit_review("user-1", "card-2", Grade.Good, NOW)
            removed = await service.reset_user("user-1")
            return removed, await service.due_cards("user-1", now=NOW + timedelta(days=30))

        removed, due = asyncio.run(scenario())

        assert removed == 2
        assert due == []

    def test_with_sqlite_store(self, tmp_path):
        async def scenario():
            service = ReviewService(
                SQLiteReviewStore(tmp_path / "reviews.db"), detect_conflicts=True
            )
            await service.submit_review("user-1", "card-1", Grade.Good, NOW)
            await service.submit_review(
                "user-1", "card-1", Grade.Easy, NOW + timedelta(days=1)
            )
            return (
                await service.store.get("user-1", "card-1"),
                await service.due_cards("user-1", now=NOW + timedelta(days=30)),
            )

        stored, due = asyncio.run(scenario())

        assert stored.repetitions == 2
        assert stored.interval_days == 6
        assert stored.ease_factor == pytest.approx(2.65)
        assert stored.version == 2
        assert due == ["card-1"]
