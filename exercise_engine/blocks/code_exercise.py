"""
Code exercise block handler.

NOTE: grading here is a heuristic placeholder, not an authoritative check.
The learner's code is never executed. It passes when:

1. it contains one of the expected tokens (authored, or the print-style
   defaults for "hello world" exercises), or
2. with no tokens to look for, it differs from the starting stub.
"""

import random
from dataclasses import dataclass
from typing import Any

from exercise_engine.errors import ResponseShapeError

from . import BlockKind, register
from .base import CheckableUnit
from .models import CodeExercisePayload

HELLO_WORLD_TOKENS = ("print", "console.log", "println")


@dataclass(frozen=True)
class CodeCheck:
    stub: str
    tokens: tuple[str, ...] = ()

    def passes(self, code: str) -> bool:
        if self.tokens:
            return any(token in code for token in self.tokens)
        return code.strip() != self.stub.strip()


@dataclass(frozen=True)
class CodeExercisePresentation:
    instructions: str
    initial_code: str
    language: str


def _tokens(payload: CodeExercisePayload) -> tuple[str, ...]:
    tokens = tuple(t for t in payload.expected_tokens if t.strip())
    if tokens:
        return tokens
    if "hello world" in f"{payload.title} {payload.instructions}".lower():
        return HELLO_WORLD_TOKENS
    return ()


@register(BlockKind.CODE_EXERCISE)
class CodeExerciseHandler:
    """Handler for code exercise blocks (heuristic grading)."""

    single_outcome = True

    def issues(self, payload: CodeExercisePayload) -> list[str]:
        if not payload.instructions.strip():
            return ["Instructions are empty"]
        return []

    def parse(self, payload: CodeExercisePayload) -> list[CheckableUnit]:
        return [
            CheckableUnit(
                index=0,
                kind=BlockKind.CODE_EXERCISE.value,
                expected=CodeCheck(stub=payload.initial_code, tokens=_tokens(payload)),
                label=payload.title or None,
            )
        ]

    def present(self, payload: CodeExercisePayload, rng: random.Random) -> CodeExercisePresentation:
        return CodeExercisePresentation(
            instructions=payload.instructions,
            initial_code=payload.initial_code,
            language=payload.language,
        )

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        if not isinstance(value, str):
            raise ResponseShapeError(f"Code exercise expects source text, got {type(value).__name__}")
        return unit.expected.passes(value)
