"""
Fill-in-the-blanks block handler.

The authored text marks each blank as ``[[answer]]``. Parsing keeps the
surrounding text as display segments, so the authored text can always be
rebuilt from the parse result.
"""

import random
from dataclasses import dataclass
from typing import Any

from exercise_engine.errors import ResponseShapeError

from . import BlockKind, register
from .base import CheckableUnit, normalize_answer
from .models import FillInTheBlanksPayload

OPEN_MARKER = "[["
CLOSE_MARKER = "]]"


@dataclass(frozen=True)
class Segment:
    """A run of plain text, or a blank when blank_index is set."""
    text: str
    blank_index: int | None = None

    @property
    def is_blank(self) -> bool:
        return self.blank_index is not None


@dataclass(frozen=True)
class FillInBlanksPresentation:
    segments: tuple[Segment, ...]

    @property
    def blank_count(self) -> int:
        return sum(1 for s in self.segments if s.is_blank)


def split_blanks(content: str) -> list[Segment]:
    """
    Scan left to right for ``[[...]]`` spans.

    An unterminated open marker or a span crossing a line break stays plain
    text. An empty span is still a blank; lint reports it.
    """
    segments: list[Segment] = []
    blanks = 0
    text_start = 0
    pos = 0

    while True:
        start = content.find(OPEN_MARKER, pos)
        if start == -1:
            break
        end = content.find(CLOSE_MARKER, start + len(OPEN_MARKER))
        if end == -1:
            break

        answer = content[start + len(OPEN_MARKER) : end]
        if "\n" in answer:
            pos = start + len(OPEN_MARKER)
            continue

        if start > text_start:
            segments.append(Segment(content[text_start:start]))
        segments.append(Segment(answer, blank_index=blanks))
        blanks += 1
        pos = text_start = end + len(CLOSE_MARKER)

    if text_start < len(content):
        segments.append(Segment(content[text_start:]))
    return segments


def rebuild_text(segments: list[Segment] | tuple[Segment, ...]) -> str:
    """Inverse of split_blanks."""
    parts = []
    for segment in segments:
        if segment.is_blank:
            parts.append(f"{OPEN_MARKER}{segment.text}{CLOSE_MARKER}")
        else:
            parts.append(segment.text)
    return "".join(parts)


@register(BlockKind.FILL_IN_THE_BLANKS)
class FillInTheBlanksHandler:
    """Handler for fill-in-the-blanks blocks."""

    single_outcome = False

    def issues(self, payload: FillInTheBlanksPayload) -> list[str]:
        if not payload.content.strip():
            return ["Text is empty"]
        if not any(s.is_blank for s in split_blanks(payload.content)):
            return ["Text has no [[blank]] markers"]
        return [
            f"Blank {segment.blank_index + 1} has no answer"
            for segment in split_blanks(payload.content)
            if segment.is_blank and not segment.text.strip()
        ]

    def parse(self, payload: FillInTheBlanksPayload) -> list[CheckableUnit]:
        return [
            CheckableUnit(
                index=segment.blank_index,
                kind=BlockKind.FILL_IN_THE_BLANKS.value,
                expected=(segment.text,),
            )
            for segment in split_blanks(payload.content)
            if segment.is_blank
        ]

    def present(self, payload: FillInTheBlanksPayload, rng: random.Random) -> FillInBlanksPresentation:
        return FillInBlanksPresentation(segments=tuple(split_blanks(payload.content)))

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        if not isinstance(value, str):
            raise ResponseShapeError(
                f"Blank {unit.index} expects text, got {type(value).__name__}"
            )
        answer = normalize_answer(value)
        return any(answer == normalize_answer(expected) for expected in unit.expected)
