"""
Boundary contracts for the collaborators the engine talks to.

The engine never persists anything itself. Lessons come from a loader,
attempt counts from the grading service, feedback text from the tutor
service, and media events go to the interaction reporter.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from exercise_engine.lesson import Lesson


@dataclass(frozen=True)
class AttemptRecord:
    """Authoritative attempt count returned by the grading service."""

    attempts_used: int
    score: float | None = None


@dataclass
class InteractionEvent:
    """A view/play event on a content block."""

    event_type: str  # view, play, pause, seek, complete
    block_id: str | None = None
    video_timestamp: float | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the LMS interaction payload."""
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        data["metadata"] = {**self.metadata, "block_id": self.block_id} if self.block_id else self.metadata
        data.pop("block_id")
        return data


class LessonLoader(Protocol):
    async def load(self, lesson_id: str) -> Lesson:
        ...


class GradingService(Protocol):
    async def record_attempt(self, lesson_id: str, block_id: str, score: float) -> AttemptRecord:
        """
        Record one graded attempt.

        Raises:
            ServiceTimeoutError: No answer in time (attempt may or may not exist)
            AttemptsExhaustedError: The attempt limit was already reached
            GradingServiceError: Any other failure to record
        """
        ...


class TutorService(Protocol):
    async def get_feedback(self, lesson_id: str) -> str:
        """
        Raises:
            TutorServiceError: Feedback could not be produced
        """
        ...


class MediaInteractionReporter(Protocol):
    async def record_interaction(self, lesson_id: str, event: InteractionEvent) -> None:
        ...
