"""
Unit tests for BlockSession: input, submit, recording outcomes and retries.
"""

import asyncio
import random

import pytest

from exercise_engine.blocks.memory_match import FlipOutcome
from exercise_engine.blocks.models import BlockDefinition
from exercise_engine.errors import (
    AttemptsExhaustedError,
    GradingServiceError,
    InvalidTransitionError,
    ResponseFrozenError,
    ResponseShapeError,
    ServiceTimeoutError,
)
from exercise_engine.integrations import AttemptRecord, InMemoryGradingService
from exercise_engine.session import AttemptPolicy, AttemptState, BlockSession, BlockState, RecordingStatus


@pytest.fixture
def short_answer():
    return BlockDefinition.build(
        "short-1", "short-answer", {"prompt": "Capital of France?", "correctAnswers": ["Paris"]}
    )


@pytest.fixture
def quiz():
    return BlockDefinition.build(
        "quiz-1",
        "quiz",
        {
            "questions": [
                {"question": "Pick two", "options": ["a", "b", "c"], "correct": [0, 2], "type": "multiple-select"},
            ]
        },
    )


@pytest.fixture
def grading():
    return InMemoryGradingService(max_attempts=2)


def make_session(definition, grading, used=0, max_attempts=2, allow_retry=True, **kwargs):
    return BlockSession(
        lesson_id="lesson-1",
        definition=definition,
        grading=grading,
        attempts=AttemptState(attempts_used=used, max_attempts=max_attempts),
        policy=AttemptPolicy(allow_retry=allow_retry),
        rng=random.Random(0),
        **kwargs,
    )


class SlowGradingService:
    """Grading service that answers only when released."""

    def __init__(self, attempts_used=1):
        self.release = asyncio.Event()
        self.attempts_used = attempts_used
        self.calls = 0

    async def record_attempt(self, lesson_id, block_id, score):
        self.calls += 1
        await self.release.wait()
        return AttemptRecord(attempts_used=self.attempts_used, score=score)


class TestMount:
    """Initial state."""

    def test_unlocked_with_attempts_left(self, short_answer, grading):
        session = make_session(short_answer, grading, used=1)

        assert session.state == BlockState.UNLOCKED
        assert session.scored
        assert session.displayed_attempts == 1

    def test_locked_when_exhausted(self, short_answer, grading):
        session = make_session(short_answer, grading, used=2)

        assert session.state == BlockState.LOCKED
        assert not session.can_submit
        assert session.ever_submitted

    @pytest.mark.asyncio
    async def test_locked_block_refuses_submit(self, short_answer, grading):
        session = make_session(short_answer, grading, used=2)

        with pytest.raises(InvalidTransitionError):
            await session.submit()
        assert grading.scores == []

    def test_locked_block_refuses_input(self, short_answer, grading):
        session = make_session(short_answer, grading, used=2)

        with pytest.raises(InvalidTransitionError):
            session.answer(0, "Paris")

    def test_content_block_is_not_scored(self, grading):
        definition = BlockDefinition.build("d", "description", {"content": "Read me"})
        session = make_session(definition, grading)

        assert not session.scored
        with pytest.raises(InvalidTransitionError):
            session.answer(0, "x")


class TestInput:
    """Learner input before submit."""

    def test_first_input_moves_to_answering(self, short_answer, grading):
        session = make_session(short_answer, grading)
        session.answer(0, "Paris")

        assert session.state == BlockState.ANSWERING
        assert session.response.get(0) == "Paris"

    def test_unknown_unit(self, short_answer, grading):
        session = make_session(short_answer, grading)

        with pytest.raises(ResponseShapeError):
            session.answer(3, "Paris")

    def test_toggle_option(self, quiz, grading):
        session = make_session(quiz, grading)
        session.toggle_option(0, 0)
        session.toggle_option(0, 1)
        selected = session.toggle_option(0, 1)

        assert selected == frozenset({0})

    def test_toggle_option_out_of_range(self, quiz, grading):
        session = make_session(quiz, grading)

        with pytest.raises(ResponseShapeError):
            session.toggle_option(0, 9)

    def test_hotspot_click(self, grading):
        definition = BlockDefinition.build(
            "map", "hotspot", {"hotspots": [{"x": 50, "y": 50, "radius": 10, "label": "Paris"}]}
        )
        session = make_session(definition, grading)

        assert session.click(90, 90) is None
        assert session.misses == 1
        assert session.state == BlockState.ANSWERING
        assert session.click(52, 48) == 0
        assert session.response.get(0) == (52, 48)

    def test_memory_flips(self, grading):
        definition = BlockDefinition.build(
            "mem",
            "memory-match",
            {"pairs": [{"id": "fr", "left": "France", "right": "Paris"}, {"id": "de", "left": "Germany", "right": "Berlin"}]},
        )
        session = make_session(definition, grading)

        assert session.flip(0)[0] == FlipOutcome.FIRST
        assert session.flip(1)[0] == FlipOutcome.MATCH
        assert session.response.get(0) == "fr"

    def test_click_on_non_hotspot(self, short_answer, grading):
        session = make_session(short_answer, grading)

        with pytest.raises(InvalidTransitionError):
            session.click(1, 1)

    def test_cancel_discards_response(self, short_answer, grading):
        session = make_session(short_answer, grading)
        session.answer(0, "Lyon")
        session.cancel()

        assert session.state == BlockState.UNLOCKED
        assert session.response.is_empty
        assert grading.scores == []


class TestSubmit:
    """Submit grades locally and records the attempt."""

    @pytest.mark.asyncio
    async def test_recorded_then_retryable(self, short_answer, grading):
        session = make_session(short_answer, grading)
        session.answer(0, "  paris ")
        result = await session.submit()

        assert result.score == 1.0
        assert session.state == BlockState.RETRYABLE
        assert session.recording == RecordingStatus.RECORDED
        assert session.displayed_attempts == 1
        assert grading.scores == [("lesson-1", "short-1", 1.0)]

    @pytest.mark.asyncio
    async def test_submit_from_unlocked(self, short_answer, grading):
        session = make_session(short_answer, grading)
        result = await session.submit()

        assert result.score == 0.0
        assert session.state == BlockState.RETRYABLE

    @pytest.mark.asyncio
    async def test_last_attempt_locks(self, short_answer, grading):
        grading.attempts[("lesson-1", "short-1")] = 1
        session = make_session(short_answer, grading, used=1)
        session.answer(0, "Lyon")
        await session.submit()

        assert session.state == BlockState.LOCKED
        assert session.last_result.score == 0.0

    @pytest.mark.asyncio
    async def test_no_retry_stays_submitted(self, short_answer, grading):
        session = make_session(short_answer, grading, allow_retry=False)
        session.answer(0, "Paris")
        await session.submit()

        assert session.state == BlockState.SUBMITTED
        with pytest.raises(InvalidTransitionError):
            session.try_again()

    @pytest.mark.asyncio
    async def test_response_frozen_after_submit(self, short_answer, grading):
        session = make_session(short_answer, grading)
        session.answer(0, "Paris")
        await session.submit()

        with pytest.raises(ResponseFrozenError):
            session.response.set(0, "Lyon")

    @pytest.mark.asyncio
    async def test_server_count_wins(self, short_answer):
        """The LMS already counted attempts elsewhere; its count is adopted."""
        grading = InMemoryGradingService(max_attempts=3, attempts={("lesson-1", "short-1"): 1})
        session = make_session(short_answer, grading, used=0, max_attempts=3)
        await session.submit()

        assert session.displayed_attempts == 2

    @pytest.mark.asyncio
    async def test_shape_error_leaves_block_open(self, quiz, grading):
        session = make_session(quiz, grading)
        session.answer(0, "a")

        with pytest.raises(ResponseShapeError):
            await session.submit()
        assert session.state == BlockState.ANSWERING
        assert grading.scores == []


class TestRecordingFailures:
    """The local grade survives any grading service outcome."""

    @pytest.mark.asyncio
    async def test_service_error_marks_failed(self, short_answer):
        grading = InMemoryGradingService(max_attempts=2, failures=[GradingServiceError("down")])
        session = make_session(short_answer, grading)
        session.answer(0, "Paris")
        result = await session.submit()

        assert result.score == 1.0
        assert session.last_result == result
        assert session.state == BlockState.SUBMITTED
        assert session.recording == RecordingStatus.FAILED
        assert session.displayed_attempts == 0

    @pytest.mark.asyncio
    async def test_retry_recording_after_failure(self, short_answer):
        grading = InMemoryGradingService(max_attempts=2, failures=[GradingServiceError("down")])
        session = make_session(short_answer, grading)
        session.answer(0, "Paris")
        await session.submit()

        status = await session.retry_recording()

        assert status == RecordingStatus.RECORDED
        assert session.state == BlockState.RETRYABLE
        assert session.displayed_attempts == 1

    @pytest.mark.asyncio
    async def test_service_timeout_is_pending(self, short_answer):
        grading = InMemoryGradingService(failures=[ServiceTimeoutError("slow")])
        session = make_session(short_answer, grading)
        await session.submit()

        assert session.state == BlockState.SUBMITTED
        assert session.recording == RecordingStatus.PENDING

    @pytest.mark.asyncio
    async def test_wait_for_timeout_is_pending(self, short_answer):
        grading = SlowGradingService()
        session = make_session(short_answer, grading, record_timeout=0.01)
        session.answer(0, "Paris")
        result = await session.submit()

        assert result.score == 1.0
        assert session.state == BlockState.SUBMITTED
        assert session.recording == RecordingStatus.PENDING
        assert not session.busy

    @pytest.mark.asyncio
    async def test_exhausted_by_service_locks(self, short_answer):
        grading = InMemoryGradingService(failures=[AttemptsExhaustedError("limit reached")])
        session = make_session(short_answer, grading)
        session.answer(0, "Paris")
        result = await session.submit()

        assert session.state == BlockState.LOCKED
        assert session.recording == RecordingStatus.REJECTED
        assert session.last_result == result

    @pytest.mark.asyncio
    async def test_retry_recording_needs_failure(self, short_answer, grading):
        session = make_session(short_answer, grading)
        await session.submit()

        with pytest.raises(InvalidTransitionError):
            await session.retry_recording()


class TestConcurrency:
    """One submission in flight per block."""

    @pytest.mark.asyncio
    async def test_second_submit_rejected_while_busy(self, short_answer):
        grading = SlowGradingService()
        session = make_session(short_answer, grading, record_timeout=None)
        session.answer(0, "Paris")

        task = asyncio.create_task(session.submit())
        await asyncio.sleep(0)
        assert session.busy

        with pytest.raises(InvalidTransitionError):
            await session.submit()
        with pytest.raises(InvalidTransitionError):
            session.answer(0, "Lyon")

        grading.release.set()
        await task

        assert grading.calls == 1
        assert session.state == BlockState.RETRYABLE
        assert not session.busy

    @pytest.mark.asyncio
    async def test_cancel_while_busy_is_ignored(self, short_answer):
        grading = SlowGradingService()
        session = make_session(short_answer, grading, record_timeout=None)
        session.answer(0, "Paris")

        task = asyncio.create_task(session.submit())
        await asyncio.sleep(0)
        session.cancel()
        grading.release.set()
        await task

        assert session.response.get(0) == "Paris"
        assert session.recording == RecordingStatus.RECORDED

    @pytest.mark.asyncio
    async def test_blocks_record_independently(self, short_answer, quiz, grading):
        first = make_session(short_answer, grading)
        second = make_session(quiz, grading)
        first.answer(0, "Paris")
        second.toggle_option(0, 0)

        await asyncio.gather(first.submit(), second.submit())

        assert grading.attempts_used("lesson-1", "short-1") == 1
        assert grading.attempts_used("lesson-1", "quiz-1") == 1


class TestRetryAndReset:
    """try_again() and external resets."""

    @pytest.mark.asyncio
    async def test_try_again_clears_response(self, short_answer, grading):
        session = make_session(short_answer, grading)
        session.answer(0, "Lyon")
        await session.submit()
        session.try_again()

        assert session.state == BlockState.UNLOCKED
        assert session.response.is_empty
        assert session.displayed_attempts == 1

    @pytest.mark.asyncio
    async def test_presentation_stable_across_retries(self, grading):
        definition = BlockDefinition.build("o", "ordering", {"items": ["a", "b", "c", "d", "e", "f"]})
        session = make_session(definition, grading)
        before = session.presentation
        await session.submit()
        session.try_again()

        assert session.presentation is before

    @pytest.mark.asyncio
    async def test_memory_board_reset_on_retry(self, grading):
        definition = BlockDefinition.build(
            "mem",
            "memory-match",
            {"pairs": [{"id": "fr", "left": "France", "right": "Paris"}, {"id": "de", "left": "Germany", "right": "Berlin"}]},
        )
        session = make_session(definition, grading)
        session.flip(0)
        session.flip(1)
        await session.submit()
        session.try_again()

        assert session.board.matched == set()
        assert session.board.moves == 0

    def test_external_reset_unlocks(self, short_answer, grading):
        session = make_session(short_answer, grading, used=2)
        state = session.apply_external_reset(0)

        assert state == BlockState.UNLOCKED
        assert session.displayed_attempts == 0
        assert session.can_submit

    def test_external_reset_to_exhausted_locks(self, short_answer, grading):
        session = make_session(short_answer, grading)

        assert session.apply_external_reset(2) == BlockState.LOCKED

    def test_report(self, short_answer, grading):
        report = make_session(short_answer, grading, used=1).report()

        assert report.block_id == "short-1"
        assert report.attempts_used == 1
        assert report.max_attempts == 2
        assert report.to_dict()["state"] == "unlocked"
