"""
Memory match block handler.

Each authored pair becomes two face-down cards sharing a pair key. The
learner flips two cards at a time; equal keys stay matched. The block
passes once every pair is matched.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Any

from exercise_engine.errors import ResponseShapeError

from . import BlockKind, register
from .base import CheckableUnit
from .matching import playable_pairs
from .models import MemoryMatchPayload, Pair


@dataclass(frozen=True)
class MemoryCard:
    card_id: int
    content: str
    pair_key: str
    unit_index: int


@dataclass(frozen=True)
class MemoryPresentation:
    cards: tuple[MemoryCard, ...]


class FlipOutcome(str, Enum):
    IGNORED = "ignored"  # matched, already face up, or unknown card
    FIRST = "first"
    MATCH = "match"
    MISMATCH = "mismatch"


def _pair_keys(pairs: list[Pair]) -> list[str]:
    keys = [p.id or str(i) for i, p in enumerate(pairs)]
    if len(set(keys)) != len(keys):
        return [str(i) for i in range(len(pairs))]
    return keys


class MemoryBoard:
    """Flip-two-cards game state for one attempt."""

    def __init__(self, cards: tuple[MemoryCard, ...]):
        self.cards = {card.card_id: card for card in cards}
        self.face_up: list[int] = []
        self.matched: set[str] = set()
        self.moves = 0

    @property
    def complete(self) -> bool:
        return len(self.matched) * 2 == len(self.cards)

    def is_visible(self, card_id: int) -> bool:
        card = self.cards[card_id]
        return card_id in self.face_up or card.pair_key in self.matched

    def flip(self, card_id: int) -> tuple[FlipOutcome, MemoryCard | None]:
        """
        Turn a card face up.

        The second flip of a turn counts a move and either keeps both cards
        matched or turns them face down again.
        """
        card = self.cards.get(card_id)
        if card is None or card_id in self.face_up or card.pair_key in self.matched:
            return FlipOutcome.IGNORED, None

        if not self.face_up:
            self.face_up.append(card_id)
            return FlipOutcome.FIRST, card

        first = self.cards[self.face_up[0]]
        self.face_up = []
        self.moves += 1
        if first.pair_key == card.pair_key:
            self.matched.add(card.pair_key)
            return FlipOutcome.MATCH, card
        return FlipOutcome.MISMATCH, card


@register(BlockKind.MEMORY_MATCH)
class MemoryMatchHandler:
    """Handler for memory match blocks."""

    single_outcome = True

    def issues(self, payload: MemoryMatchPayload) -> list[str]:
        problems = []
        pairs = playable_pairs(payload.pairs)
        if len(pairs) < 2:
            problems.append("Memory game needs at least 2 complete pairs")
        if len(pairs) != len(payload.pairs):
            problems.append("Some pairs are missing a left or right value")
        return problems

    def parse(self, payload: MemoryMatchPayload) -> list[CheckableUnit]:
        pairs = playable_pairs(payload.pairs)
        return [
            CheckableUnit(
                index=i,
                kind=BlockKind.MEMORY_MATCH.value,
                expected=key,
                label=f"{pair.left} / {pair.right}",
            )
            for i, (pair, key) in enumerate(zip(pairs, _pair_keys(pairs)))
        ]

    def present(self, payload: MemoryMatchPayload, rng: random.Random) -> MemoryPresentation:
        pairs = playable_pairs(payload.pairs)
        cards = []
        for i, (pair, key) in enumerate(zip(pairs, _pair_keys(pairs))):
            cards.append(MemoryCard(card_id=i * 2, content=pair.left, pair_key=key, unit_index=i))
            cards.append(MemoryCard(card_id=i * 2 + 1, content=pair.right, pair_key=key, unit_index=i))
        rng.shuffle(cards)
        return MemoryPresentation(cards=tuple(cards))

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        """value is the pair key recorded when the learner matched the pair."""
        if not isinstance(value, str):
            raise ResponseShapeError(
                f"Memory pair {unit.index} expects a pair key, got {type(value).__name__}"
            )
        return value == unit.expected
