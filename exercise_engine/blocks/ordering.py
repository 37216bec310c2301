"""
Ordering block handler.

The authored item list is the one correct sequence. The learner sees the
same items shuffled and places an item at each position.
"""

import random
from dataclasses import dataclass
from typing import Any

from exercise_engine.errors import ResponseShapeError

from . import BlockKind, register
from .base import CheckableUnit
from .models import OrderingPayload


@dataclass(frozen=True)
class OrderItem:
    text: str
    source_index: int


@dataclass(frozen=True)
class OrderingPresentation:
    items: tuple[OrderItem, ...]


def _items(payload: OrderingPayload) -> list[str]:
    return [item for item in payload.items if item.strip()]


@register(BlockKind.ORDERING)
class OrderingHandler:
    """Handler for sequence ordering blocks."""

    single_outcome = False

    def issues(self, payload: OrderingPayload) -> list[str]:
        problems = []
        items = _items(payload)
        if len(items) < 2:
            problems.append("Ordering needs at least 2 items")
        if len(items) != len(payload.items):
            problems.append("Some items are empty")
        if len(set(items)) != len(items):
            problems.append("Items are not unique, so positions are ambiguous")
        return problems

    def parse(self, payload: OrderingPayload) -> list[CheckableUnit]:
        items = _items(payload)
        if len(items) < 2:
            return []
        return [
            CheckableUnit(index=i, kind=BlockKind.ORDERING.value, expected=item)
            for i, item in enumerate(items)
        ]

    def present(self, payload: OrderingPayload, rng: random.Random) -> OrderingPresentation:
        items = [OrderItem(text=text, source_index=i) for i, text in enumerate(_items(payload))]
        rng.shuffle(items)
        return OrderingPresentation(items=tuple(items))

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        if not isinstance(value, str):
            raise ResponseShapeError(
                f"Position {unit.index} expects an item, got {type(value).__name__}"
            )
        return value == unit.expected
