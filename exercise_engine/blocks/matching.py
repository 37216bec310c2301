"""
Matching block handler.

Left items are shown in authored order; the right items are shuffled for
each presentation. The learner answers each left item with one right value.
"""

import random
from dataclasses import dataclass
from typing import Any

from loguru import logger

from exercise_engine.errors import ResponseShapeError

from . import BlockKind, register
from .base import CheckableUnit
from .models import MatchingPayload, Pair


@dataclass(frozen=True)
class RightOption:
    text: str
    source_index: int  # unit the value was authored for


@dataclass(frozen=True)
class MatchingPresentation:
    left: tuple[str, ...]
    right: tuple[RightOption, ...]


def playable_pairs(pairs: tuple[Pair, ...]) -> list[Pair]:
    """Pairs with both sides filled in."""
    playable = [p for p in pairs if p.left.strip() and p.right.strip()]
    if len(playable) != len(pairs):
        logger.debug(f"Dropped {len(pairs) - len(playable)} incomplete pair(s)")
    return playable


@register(BlockKind.MATCHING)
class MatchingHandler:
    """Handler for matching blocks."""

    single_outcome = False

    def issues(self, payload: MatchingPayload) -> list[str]:
        problems = []
        pairs = playable_pairs(payload.pairs)
        if len(pairs) < 2:
            problems.append("Matching needs at least 2 complete pairs")
        if len(pairs) != len(payload.pairs):
            problems.append("Some pairs are missing a left or right value")
        rights = [p.right.strip() for p in pairs]
        if len(set(rights)) != len(rights):
            problems.append("Right-hand values are not unique")
        return problems

    def parse(self, payload: MatchingPayload) -> list[CheckableUnit]:
        return [
            CheckableUnit(
                index=i,
                kind=BlockKind.MATCHING.value,
                expected=pair.right,
                label=pair.left,
            )
            for i, pair in enumerate(playable_pairs(payload.pairs))
        ]

    def present(self, payload: MatchingPayload, rng: random.Random) -> MatchingPresentation:
        pairs = playable_pairs(payload.pairs)
        right = [RightOption(text=p.right, source_index=i) for i, p in enumerate(pairs)]
        rng.shuffle(right)
        return MatchingPresentation(
            left=tuple(p.left for p in pairs),
            right=tuple(right),
        )

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        if not isinstance(value, str):
            raise ResponseShapeError(
                f"Match for {unit.label!r} expects a right-hand value, got {type(value).__name__}"
            )
        return value == unit.expected
