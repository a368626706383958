"""
sm2.flashcard
---------

This module defines the Flashcard content unit and the CardCatalog that holds them.

Classes:
    Difficulty: Enum representing the authored difficulty of a Flashcard.
    Flashcard: An immutable question/answer card.
    CardCatalog: An immutable collection of Flashcards keyed by card id.
"""

from __future__ import annotations
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
import json
from typing import TypedDict
from typing_extensions import Self


class Difficulty(str, Enum):
    """
    Enum representing the authored difficulty of a Flashcard.

    This is an initial hint only, reviews never change it.
    """

    Beginner = "beginner"
    Intermediate = "intermediate"
    Advanced = "advanced"


class FlashcardDict(TypedDict):
    """
    JSON-serializable dictionary representation of a Flashcard object.
    """

    card_id: str
    question: str
    answer: str
    difficulty: str
    tags: list[str]


@dataclass(frozen=True)
class Flashcard:
    """
    Represents an authored flashcard.

    Attributes:
        card_id: The unique id of the card.
        question: The text shown on the front of the card.
        answer: The text shown on the back of the card.
        difficulty: The authored difficulty of the card.
        tags: Labels used for grouping and filtering.
    """

    card_id: str
    question: str
    answer: str
    difficulty: Difficulty = Difficulty.Beginner
    tags: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        # accept plain strings and lists from authored content
        object.__setattr__(self, "difficulty", Difficulty(self.difficulty))
        object.__setattr__(self, "tags", frozenset(self.tags))

    def to_dict(self) -> FlashcardDict:
        """
        Returns a JSON-serializable dictionary representation of the Flashcard object.
        """

        return {
            "card_id": self.card_id,
            "question": self.question,
            "answer": self.answer,
            "difficulty": self.difficulty.value,
            "tags": sorted(self.tags),
        }

    @classmethod
    def from_dict(cls, source_dict: FlashcardDict) -> Self:
        """
        Creates a Flashcard object from an existing dictionary.
        """

        return cls(
            card_id=str(source_dict["card_id"]),
            question=source_dict["question"],
            answer=source_dict["answer"],
            difficulty=Difficulty(source_dict.get("difficulty", "beginner")),
            tags=frozenset(source_dict.get("tags", ())),
        )


class CardCatalog(Mapping[str, Flashcard]):
    """
    An immutable, read-only collection of Flashcards keyed by card id.

    The catalog is loaded once and referenced by id; review states never copy card content.
    """

    def __init__(self, cards: Iterable[Flashcard] = ()) -> None:
        by_id: dict[str, Flashcard] = {}
        for card in cards:
            if card.card_id in by_id:
                raise ValueError(f"Duplicate card_id {card.card_id!r} in catalog")
            by_id[card.card_id] = card
        self._cards = by_id

    def __getitem__(self, card_id: str) -> Flashcard:
        return self._cards[card_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._cards)

    def __len__(self) -> int:
        return len(self._cards)

    def __repr__(self) -> str:
        return f"CardCatalog({len(self._cards)} cards)"

    def with_tag(self, tag: str) -> list[Flashcard]:
        return [card for card in self._cards.values() if tag in card.tags]

    def with_difficulty(self, difficulty: Difficulty | str) -> list[Flashcard]:
        difficulty = Difficulty(difficulty)
        return [card for card in self._cards.values() if card.difficulty == difficulty]

    @classmethod
    def from_records(cls, records: Iterable[FlashcardDict]) -> Self:
        """
        Creates a CardCatalog from an iterable of flashcard dictionaries.

        Raises:
            ValueError: If two records share a card id.
        """

        return cls(Flashcard.from_dict(record) for record in records)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a CardCatalog from a JSON array of flashcard objects.
        """

        records: list[FlashcardDict] = json.loads(source_json)
        return cls.from_records(records)


__all__ = ["Difficulty", "Flashcard", "CardCatalog"]
