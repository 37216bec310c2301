"""
Lesson session: the block sessions of one mounted lesson.

Blocks are independent. Each one records its own attempts, so a slow or
failing grading call on one block never holds up another. The lesson is
complete when every scored block has been submitted (or was locked on
arrival) and every content block has a reported view.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Mapping

from loguru import logger

from config import Settings, get_settings
from exercise_engine.blocks.base import GradeResult
from exercise_engine.errors import TutorServiceError
from exercise_engine.integrations.services import (
    GradingService,
    InteractionEvent,
    MediaInteractionReporter,
    TutorService,
)
from exercise_engine.lesson import Lesson

from .block_session import BlockReport, BlockSession
from .policy import AttemptPolicy, AttemptState


class LessonSession:
    """Aggregates the block sessions of a lesson."""

    def __init__(
        self,
        lesson: Lesson,
        grading: GradingService,
        tutor: TutorService | None = None,
        reporter: MediaInteractionReporter | None = None,
        attempts: Mapping[str, int] | None = None,
        last_results: Mapping[str, GradeResult] | None = None,
        rng: random.Random | None = None,
        settings: Settings | None = None,
    ):
        """
        Mount a lesson.

        Args:
            lesson: The lesson to play
            grading: Authoritative attempt counter
            tutor: Feedback source (None = always the default message)
            reporter: Receives view/play events of content blocks
            attempts: Attempts already used per block id
            last_results: Grades from earlier sessions per block id
            rng: Random source for display shuffles
            settings: Overrides the cached application settings
        """
        self.lesson = lesson
        self.tutor = tutor
        self.reporter = reporter
        self.settings = settings or get_settings()
        if rng is None:
            rng = random.Random(self.settings.shuffle_seed)

        attempts = attempts or {}
        last_results = last_results or {}
        policy = AttemptPolicy(allow_retry=lesson.allow_retry)

        self.blocks: dict[str, BlockSession] = {}
        for definition in lesson.blocks:
            self.blocks[definition.id] = BlockSession(
                lesson_id=lesson.id,
                definition=definition,
                grading=grading,
                attempts=AttemptState(
                    attempts_used=attempts.get(definition.id, 0),
                    max_attempts=lesson.max_attempts,
                ),
                policy=policy,
                rng=rng,
                record_timeout=self.settings.record_attempt_timeout_seconds,
                last_result=last_results.get(definition.id),
            )

        self.viewed: set[str] = set()
        self._feedback: str | None = None

        logger.info(f"Lesson {lesson.id} mounted with {len(self.blocks)} block(s)")

    def block(self, block_id: str) -> BlockSession:
        return self.blocks[block_id]

    @property
    def scored_blocks(self) -> list[BlockSession]:
        return [b for b in self.blocks.values() if b.scored]

    @property
    def content_blocks(self) -> list[BlockSession]:
        return [b for b in self.blocks.values() if not b.scored]

    @property
    def is_complete(self) -> bool:
        return all(b.ever_submitted for b in self.scored_blocks) and all(
            b.block_id in self.viewed for b in self.content_blocks
        )

    @property
    def average_score(self) -> float | None:
        """Mean of the latest grades, None before any block is graded."""
        results = [b.last_result.score for b in self.scored_blocks if b.last_result is not None]
        if not results:
            return None
        return sum(results) / len(results)

    async def report_interaction(
        self,
        block_id: str,
        event_type: str = "view",
        video_timestamp: float | None = None,
    ) -> None:
        """
        Mark a block as viewed and tell the reporter.

        Reporter failures are logged and otherwise ignored.
        """
        if block_id not in self.blocks:
            raise KeyError(block_id)
        self.viewed.add(block_id)
        if self.reporter is None:
            return

        event = InteractionEvent(event_type=event_type, block_id=block_id, video_timestamp=video_timestamp)
        try:
            await self.reporter.record_interaction(self.lesson.id, event)
        except Exception as e:
            logger.warning(f"Interaction {event_type} on {block_id} not reported: {e}")

    async def feedback(self, refresh: bool = False) -> str:
        """Tutor feedback for the lesson, or the default message when unavailable."""
        if self._feedback is not None and not refresh:
            return self._feedback
        if self.tutor is None:
            return self.settings.default_feedback_message

        try:
            text = await asyncio.wait_for(
                self.tutor.get_feedback(self.lesson.id),
                timeout=self.settings.feedback_timeout_seconds,
            )
        except (TutorServiceError, asyncio.TimeoutError) as e:
            logger.warning(f"Feedback for lesson {self.lesson.id} unavailable: {e}")
            return self.settings.default_feedback_message

        self._feedback = text
        return text

    def cancel(self) -> None:
        """Leave the lesson: unsent responses are discarded."""
        for block in self.blocks.values():
            block.cancel()

    def report(self) -> list[BlockReport]:
        return [block.report() for block in self.blocks.values()]
