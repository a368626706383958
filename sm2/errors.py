"""
sm2.errors
---------

This module defines the exceptions raised by the scheduler, the stores and the review service.
"""


class SchedulerError(Exception):
    """
    Base class for all errors raised by sm2.
    """


class InvalidGrade(SchedulerError, ValueError):
    """
    Raised when a review grade is not one of Fail, Hard, Good or Easy.
    """


class PersistenceError(SchedulerError):
    """
    Raised when a review store fails to read or write.

    The underlying backend exception, if any, is available as __cause__.
    """


class ConcurrentUpdateError(PersistenceError):
    """
    Raised when a conditional write finds a different version than expected.
    """

    def __init__(self, user_id: str, card_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"ReviewState for user {user_id!r} card {card_id!r} is at version {actual}, expected {expected}"
        )
        self.user_id = user_id
        self.card_id = card_id
        self.expected = expected
        self.actual = actual


class UnknownCardError(SchedulerError, KeyError):
    """
    Raised when a card id is not present in the card catalog.
    """

    def __str__(self) -> str:
        return Exception.__str__(self)


__all__ = [
    "SchedulerError",
    "InvalidGrade",
    "PersistenceError",
    "ConcurrentUpdateError",
    "UnknownCardError",
]
