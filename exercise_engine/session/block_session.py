"""
Per-block session: learner input, local grading and attempt recording.

A BlockSession owns the response and attempt state for one block of a
mounted lesson. The display model is built once at mount, so shuffled
distractors keep their order across retries.

Submitting grades locally first, then asks the grading service to count
the attempt. The local grade is kept whatever the service answers:

    recorded          -> adopt the service count, RETRYABLE / SUBMITTED / LOCKED
    timeout           -> SUBMITTED, RecordingStatus.PENDING
    service failure   -> SUBMITTED, RecordingStatus.FAILED (retry_recording())
    attempts refused  -> LOCKED, RecordingStatus.REJECTED
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any

from loguru import logger

from exercise_engine.blocks import BlockKind
from exercise_engine.blocks.base import CheckableUnit, GradeResult
from exercise_engine.blocks.hotspot import locate
from exercise_engine.blocks.memory_match import FlipOutcome, MemoryBoard, MemoryCard
from exercise_engine.blocks.models import BlockDefinition
from exercise_engine.blocks.quiz import select_option
from exercise_engine.errors import (
    AttemptsExhaustedError,
    GradingServiceError,
    InvalidTransitionError,
    ResponseShapeError,
    ServiceTimeoutError,
)
from exercise_engine.integrations.services import GradingService
from exercise_engine.parser import is_scored_kind, parse_block, present
from exercise_engine.scorer import score

from .policy import AttemptPolicy, AttemptState, BlockState, RecordingStatus
from .response import ResponseState

INPUT_STATES = (BlockState.UNLOCKED, BlockState.ANSWERING)


@dataclass(frozen=True)
class BlockReport:
    """Snapshot of one block for the lesson summary."""

    block_id: str
    kind: str
    title: str
    scored: bool
    state: BlockState
    attempts_used: int
    max_attempts: int | None
    recording: RecordingStatus
    result: GradeResult | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "block_id": self.block_id,
            "kind": self.kind,
            "title": self.title,
            "scored": self.scored,
            "state": self.state.value,
            "attempts_used": self.attempts_used,
            "max_attempts": self.max_attempts,
            "recording": self.recording.value,
            "result": self.result.to_dict() if self.result else None,
        }


class BlockSession:
    """State machine for one mounted block."""

    def __init__(
        self,
        lesson_id: str,
        definition: BlockDefinition,
        grading: GradingService,
        attempts: AttemptState | None = None,
        policy: AttemptPolicy | None = None,
        rng: random.Random | None = None,
        record_timeout: float | None = 15.0,
        last_result: GradeResult | None = None,
    ):
        """
        Args:
            lesson_id: Lesson the block belongs to
            definition: The authored block
            grading: Authoritative attempt counter
            attempts: Attempts already used (from the grading service)
            policy: Retry rules of the lesson
            rng: Random source for the display shuffle
            record_timeout: Seconds to wait for the grading service (None = no limit)
            last_result: Grade of a previous session, shown on a locked block
        """
        self.lesson_id = lesson_id
        self.definition = definition
        self.grading = grading
        self.attempts = attempts or AttemptState()
        self.policy = policy or AttemptPolicy()
        self.record_timeout = record_timeout

        self.units: list[CheckableUnit] = parse_block(definition)
        self.presentation = present(definition, rng)
        self.response = ResponseState()
        self.state = self.policy.initial_state(self.attempts)
        self.recording = RecordingStatus.IDLE
        self.last_result = last_result
        self.history: list[GradeResult] = []
        self.misses = 0

        self._busy = False
        self._board = self._new_board()
        self._ever_submitted = self.state == BlockState.LOCKED

        logger.debug(
            f"Mounted {definition.kind.value} block {definition.id} "
            f"({len(self.units)} unit(s), {self.state.value})"
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def block_id(self) -> str:
        return self.definition.id

    @property
    def kind(self) -> BlockKind:
        return self.definition.kind

    @property
    def scored(self) -> bool:
        """True when the block produces a grade."""
        return is_scored_kind(self.kind) and bool(self.units)

    @property
    def busy(self) -> bool:
        """An attempt is being recorded."""
        return self._busy

    @property
    def ever_submitted(self) -> bool:
        return self._ever_submitted

    @property
    def displayed_attempts(self) -> int:
        """Last authoritative count. Never advanced locally."""
        return self.attempts.attempts_used

    @property
    def can_submit(self) -> bool:
        return self.scored and not self._busy and self.state in INPUT_STATES

    @property
    def board(self) -> MemoryBoard | None:
        return self._board

    # =========================================================================
    # Input
    # =========================================================================

    def answer(self, key: int, value: Any) -> None:
        """Set the learner value for one unit."""
        self._require_input("answer")
        if key not in {unit.index for unit in self.units}:
            logger.error(f"Block {self.block_id} has no unit {key!r}")
            raise ResponseShapeError(f"Block {self.block_id} has no unit {key!r}")
        self.response.set(key, value)
        self._begin_answering()

    def clear(self, key: int) -> None:
        self._require_input("clear an answer")
        self.response.clear(key)

    def toggle_option(self, question: int, option: int) -> frozenset[int]:
        """Quiz click: toggles for multi-select, replaces for single choice."""
        if self.kind != BlockKind.QUIZ:
            raise InvalidTransitionError("select an option", self.state.value, f"{self.kind.value} is not a quiz")
        self._require_input("select an option")
        views = {view.unit_index: view for view in self.presentation.questions}
        view = views.get(question)
        if view is None or not 0 <= option < len(view.options):
            raise ResponseShapeError(f"Question {question} has no option {option}")
        selected = select_option(self.response.get(question, ()), option, view.multi_select)
        self.answer(question, selected)
        return selected

    def click(self, x: float, y: float) -> int | None:
        """Hotspot click. Returns the region found, None for a miss."""
        if self.kind != BlockKind.HOTSPOT:
            raise InvalidTransitionError("click", self.state.value, f"{self.kind.value} is not a hotspot")
        self._require_input("click")
        region = locate(self.units, x, y)
        if region is None:
            self.misses += 1
            self._begin_answering()
            return None
        if region not in self.response:
            self.answer(region, (x, y))
        return region

    def flip(self, card_id: int) -> tuple[FlipOutcome, MemoryCard | None]:
        """Memory match: turn a card face up."""
        if self._board is None:
            raise InvalidTransitionError("flip a card", self.state.value, f"{self.kind.value} is not a memory game")
        self._require_input("flip a card")
        outcome, card = self._board.flip(card_id)
        if outcome == FlipOutcome.MATCH:
            self.answer(card.unit_index, card.pair_key)
        elif outcome != FlipOutcome.IGNORED:
            self._begin_answering()
        return outcome, card

    # =========================================================================
    # Submit & recording
    # =========================================================================

    async def submit(self) -> GradeResult:
        """
        Grade the response and record the attempt.

        Returns:
            The local GradeResult, whatever the grading service answered

        Raises:
            InvalidTransitionError: Busy, locked, already submitted, or nothing to grade
            ResponseShapeError: The response does not fit the block
        """
        if self._busy:
            logger.error(f"Second submit on block {self.block_id} while recording")
            raise InvalidTransitionError("submit", self.state.value, "an attempt is already being recorded")
        if self.state not in INPUT_STATES:
            logger.error(f"Submit on block {self.block_id} in state {self.state.value}")
            raise InvalidTransitionError("submit", self.state.value)
        if not self.scored:
            raise InvalidTransitionError("submit", self.state.value, "block has nothing to grade")

        result = score(self.units, self.response)
        self.response.freeze()
        self.last_result = result
        self.history.append(result)
        self.state = BlockState.SUBMITTED
        self._ever_submitted = True
        logger.debug(f"Block {self.block_id} graded {result.score:.2f} ({result.correct_count}/{result.total})")

        await self._record(result)
        return result

    async def retry_recording(self) -> RecordingStatus:
        """Send the last grade again after a failed or timed-out recording."""
        if self._busy:
            raise InvalidTransitionError("retry recording", self.state.value, "an attempt is already being recorded")
        if (
            self.state != BlockState.SUBMITTED
            or self.recording not in (RecordingStatus.PENDING, RecordingStatus.FAILED)
            or self.last_result is None
        ):
            raise InvalidTransitionError("retry recording", self.state.value, "nothing left to record")
        await self._record(self.last_result)
        return self.recording

    async def _record(self, result: GradeResult) -> None:
        self._busy = True
        self.recording = RecordingStatus.PENDING
        try:
            record = await asyncio.wait_for(
                self.grading.record_attempt(self.lesson_id, self.block_id, result.score),
                timeout=self.record_timeout,
            )
        except (asyncio.TimeoutError, ServiceTimeoutError):
            logger.warning(f"Recording block {self.block_id} timed out after {self.record_timeout}s")
        except AttemptsExhaustedError as e:
            self.recording = RecordingStatus.REJECTED
            self.state = BlockState.LOCKED
            logger.warning(f"Attempt on block {self.block_id} refused: {e}")
        except GradingServiceError as e:
            self.recording = RecordingStatus.FAILED
            logger.warning(f"Could not record attempt on block {self.block_id}: {e}")
        else:
            self.attempts.adopt(record.attempts_used)
            self.recording = RecordingStatus.RECORDED
            self.state = self.policy.after_recorded(self.attempts)
            logger.debug(
                f"Block {self.block_id} attempt recorded "
                f"({self.attempts.attempts_used}/{self.attempts.max_attempts or 'unlimited'}), "
                f"now {self.state.value}"
            )
        finally:
            self._busy = False

    # =========================================================================
    # Retry, cancel, reset
    # =========================================================================

    def try_again(self) -> None:
        """Start a new attempt with an empty response."""
        if self.state != BlockState.RETRYABLE or self._busy:
            raise InvalidTransitionError("try again", self.state.value)
        self._restart()
        logger.debug(f"Block {self.block_id} reopened for attempt {self.attempts.attempts_used + 1}")

    def cancel(self) -> None:
        """
        Discard an unsent response (learner navigated away).

        Has no effect on submitted or locked blocks, or while recording.
        """
        if self._busy or self.state not in INPUT_STATES:
            return
        self._restart()

    def apply_external_reset(self, attempts_used: int) -> BlockState:
        """
        Apply an attempt count changed outside the session (instructor override).

        A locked block with attempts left again becomes UNLOCKED.
        """
        if attempts_used < 0:
            raise ValueError(f"attempts_used must be >= 0, got {attempts_used}")
        if self._busy:
            raise InvalidTransitionError("reset attempts", self.state.value, "an attempt is being recorded")

        self.attempts.attempts_used = attempts_used
        if self.attempts.exhausted:
            self.state = BlockState.LOCKED
        elif self.state in (BlockState.LOCKED, BlockState.SUBMITTED):
            self.recording = RecordingStatus.IDLE
            self._restart()
        logger.info(f"Block {self.block_id} attempts reset to {attempts_used}, now {self.state.value}")
        return self.state

    def report(self) -> BlockReport:
        return BlockReport(
            block_id=self.block_id,
            kind=self.kind.value,
            title=self.definition.title or "",
            scored=self.scored,
            state=self.state,
            attempts_used=self.attempts.attempts_used,
            max_attempts=None if self.attempts.unlimited else self.attempts.max_attempts,
            recording=self.recording,
            result=self.last_result,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_input(self, action: str) -> None:
        if self._busy:
            raise InvalidTransitionError(action, self.state.value, "an attempt is being recorded")
        if self.state not in INPUT_STATES:
            raise InvalidTransitionError(action, self.state.value)
        if not self.scored:
            raise InvalidTransitionError(action, self.state.value, "block has nothing to answer")

    def _begin_answering(self) -> None:
        if self.state == BlockState.UNLOCKED:
            self.state = BlockState.ANSWERING

    def _restart(self) -> None:
        self.response = ResponseState()
        self.misses = 0
        self._board = self._new_board()
        self.state = BlockState.UNLOCKED

    def _new_board(self) -> MemoryBoard | None:
        if self.kind != BlockKind.MEMORY_MATCH:
            return None
        return MemoryBoard(self.presentation.cards)
