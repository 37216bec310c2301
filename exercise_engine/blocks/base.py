"""
Base protocol and types for block handlers.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class CheckableUnit:
    """One independently checkable item within a block (a blank, a pair, a question)."""
    index: int
    kind: str
    expected: Any
    label: str | None = None


@dataclass(frozen=True)
class UnitResult:
    """Correctness of a single unit."""
    index: int
    correct: bool


@dataclass(frozen=True)
class GradeResult:
    """Result of scoring a response against a block's units."""
    score: float  # 0.0-1.0
    per_unit: tuple[UnitResult, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return len(self.per_unit)

    @property
    def correct_count(self) -> int:
        return sum(1 for unit in self.per_unit if unit.correct)

    @property
    def passed(self) -> bool:
        """True when every unit is correct."""
        return bool(self.per_unit) and self.score == 1.0

    def is_correct(self, index: int) -> bool:
        for unit in self.per_unit:
            if unit.index == index:
                return unit.correct
        raise KeyError(index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "per_unit": [{"index": u.index, "correct": u.correct} for u in self.per_unit],
        }


def normalize_answer(text: str) -> str:
    """Trim and case-fold free-text input for comparison."""
    return text.strip().casefold()


class BlockHandler(Protocol):
    """Protocol for block kind handlers."""

    # Binary (all-or-nothing) scoring instead of correct/total
    single_outcome: bool

    def issues(self, payload: Any) -> list[str]:
        """Authoring problems in the payload. Empty list means playable."""
        ...

    def parse(self, payload: Any) -> list[CheckableUnit]:
        """Derive the ordered checkable units. Never raises on bad authoring."""
        ...

    def present(self, payload: Any, rng: random.Random) -> Any:
        """Build the display model. Must not mutate the payload."""
        ...

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        """Whether value satisfies the unit. Raises ResponseShapeError on a wrong value type."""
        ...
