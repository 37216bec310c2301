"""
Local (offline) collaborators.

Used by the terminal player when no LMS is configured, and by tests. The
in-memory grading service enforces the attempt limit the same way the LMS
does: it refuses an attempt once the stored count reaches the maximum.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from pathlib import Path

from loguru import logger

from exercise_engine.errors import AttemptsExhaustedError, LessonLoadError, TutorServiceError
from exercise_engine.lesson import Lesson, load_lesson_file

from .services import AttemptRecord, InteractionEvent


class JsonLessonLoader:
    """Loads ``<lesson_id>.json`` files from a directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    async def load(self, lesson_id: str) -> Lesson:
        path = self.directory / f"{lesson_id}.json"
        lesson = await asyncio.to_thread(load_lesson_file, path)
        if lesson.id != lesson_id:
            raise LessonLoadError(f"{path} holds lesson {lesson.id!r}, expected {lesson_id!r}")
        return lesson


class InMemoryGradingService:
    """Attempt counter keyed by (lesson, block)."""

    def __init__(
        self,
        max_attempts: int | None = None,
        attempts: dict[tuple[str, str], int] | None = None,
        failures: list[Exception] | None = None,
    ):
        """
        Args:
            max_attempts: Limit enforced on record_attempt (None = unlimited)
            attempts: Prior counts, e.g. {("lesson-1", "quiz-1"): 2}
            failures: Exceptions raised by the next calls, in order
        """
        self.max_attempts = max_attempts
        self.attempts: dict[tuple[str, str], int] = defaultdict(int, attempts or {})
        self.failures = list(failures or [])
        self.scores: list[tuple[str, str, float]] = []

    def attempts_used(self, lesson_id: str, block_id: str) -> int:
        return self.attempts[(lesson_id, block_id)]

    def reset(self, lesson_id: str, block_id: str, attempts_used: int = 0) -> None:
        """Instructor override."""
        self.attempts[(lesson_id, block_id)] = attempts_used

    async def record_attempt(self, lesson_id: str, block_id: str, score: float) -> AttemptRecord:
        if self.failures:
            raise self.failures.pop(0)

        key = (lesson_id, block_id)
        if self.max_attempts and self.attempts[key] >= self.max_attempts:
            raise AttemptsExhaustedError(
                f"Maximum of {self.max_attempts} attempts reached for {block_id}"
            )
        self.attempts[key] += 1
        self.scores.append((lesson_id, block_id, score))
        logger.debug(f"Recorded attempt {self.attempts[key]} for {lesson_id}/{block_id}: {score:.2f}")
        return AttemptRecord(attempts_used=self.attempts[key], score=score)


class StaticTutorService:
    """Returns canned feedback per lesson."""

    def __init__(self, feedback: dict[str, str] | None = None, default: str | None = None):
        self.feedback = dict(feedback or {})
        self.default = default

    async def get_feedback(self, lesson_id: str) -> str:
        if lesson_id in self.feedback:
            return self.feedback[lesson_id]
        if self.default is not None:
            return self.default
        raise TutorServiceError(f"No feedback available for lesson {lesson_id}")


class RecordingInteractionReporter:
    """Keeps reported interactions in memory."""

    def __init__(self) -> None:
        self.events: list[tuple[str, InteractionEvent]] = []

    async def record_interaction(self, lesson_id: str, event: InteractionEvent) -> None:
        self.events.append((lesson_id, event))
