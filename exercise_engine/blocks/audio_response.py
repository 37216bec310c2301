"""
Audio response block handler.

The learner records a spoken answer. Recording and transcription happen
outside the engine, so the block has no checkable units and never
contributes a grade. evaluate_transcript() gives keyword coverage as
informational feedback only.
"""

import random
from dataclasses import dataclass
from typing import Any

from exercise_engine.errors import ResponseShapeError

from . import BlockKind, register
from .base import CheckableUnit
from .models import AudioResponsePayload


@dataclass(frozen=True)
class AudioResponsePresentation:
    prompt: str
    keywords: tuple[str, ...]
    time_limit: int | None


@dataclass(frozen=True)
class TranscriptEvaluation:
    found_keywords: tuple[str, ...]
    coverage: int  # percent, 0-100


def evaluate_transcript(payload: AudioResponsePayload, transcript: str) -> TranscriptEvaluation:
    """
    Keyword coverage of a transcript.

    With no keywords authored any non-empty transcript gets full coverage.
    """
    if not transcript.strip():
        return TranscriptEvaluation(found_keywords=(), coverage=0)
    if not payload.keywords:
        return TranscriptEvaluation(found_keywords=(), coverage=100)

    lowered = transcript.lower()
    found = tuple(kw for kw in payload.keywords if kw.lower() in lowered)
    return TranscriptEvaluation(
        found_keywords=found,
        coverage=round(len(found) / len(payload.keywords) * 100),
    )


@register(BlockKind.AUDIO_RESPONSE)
class AudioResponseHandler:
    """Handler for audio response blocks."""

    single_outcome = False

    def issues(self, payload: AudioResponsePayload) -> list[str]:
        problems = []
        if not payload.prompt.strip():
            problems.append("Prompt is empty")
        if payload.time_limit is not None and payload.time_limit <= 0:
            problems.append("Time limit must be positive")
        return problems

    def parse(self, payload: AudioResponsePayload) -> list[CheckableUnit]:
        return []

    def present(self, payload: AudioResponsePayload, rng: random.Random) -> AudioResponsePresentation:
        return AudioResponsePresentation(
            prompt=payload.prompt,
            keywords=payload.keywords,
            time_limit=payload.time_limit,
        )

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        raise ResponseShapeError("Audio response blocks have no checkable units")
