"""
Unit tests for attempt state, lock policy and response state.
"""

import pytest

from exercise_engine.errors import ResponseFrozenError
from exercise_engine.session.policy import AttemptPolicy, AttemptState, BlockState
from exercise_engine.session.response import ResponseState


class TestAttemptState:
    """Attempts used versus the limit."""

    def test_unlimited_when_none(self):
        attempts = AttemptState(attempts_used=10)

        assert attempts.unlimited
        assert not attempts.exhausted
        assert attempts.remaining is None

    def test_unlimited_when_zero(self):
        assert AttemptState(attempts_used=3, max_attempts=0).unlimited

    def test_exhausted(self):
        attempts = AttemptState(attempts_used=2, max_attempts=2)

        assert attempts.exhausted
        assert attempts.remaining == 0

    def test_remaining(self):
        assert AttemptState(attempts_used=1, max_attempts=3).remaining == 2

    def test_negative_count_rejected(self):
        with pytest.raises(ValueError):
            AttemptState(attempts_used=-1)

    def test_adopt_takes_service_count(self):
        attempts = AttemptState(attempts_used=1, max_attempts=3)
        attempts.adopt(3)

        assert attempts.attempts_used == 3
        assert attempts.exhausted

    def test_adopt_lower_count_still_wins(self):
        attempts = AttemptState(attempts_used=2)
        attempts.adopt(1)
        assert attempts.attempts_used == 1


class TestAttemptPolicy:
    """State after mount and after a recorded attempt."""

    def test_mount_with_attempts_left(self):
        assert AttemptPolicy().initial_state(AttemptState(1, 2)) == BlockState.UNLOCKED

    def test_mount_exhausted_is_locked(self):
        assert AttemptPolicy().initial_state(AttemptState(2, 2)) == BlockState.LOCKED

    def test_mount_unlimited(self):
        assert AttemptPolicy().initial_state(AttemptState(50, None)) == BlockState.UNLOCKED

    def test_recorded_with_retry(self):
        assert AttemptPolicy(allow_retry=True).after_recorded(AttemptState(1, 2)) == BlockState.RETRYABLE

    def test_recorded_without_retry(self):
        assert AttemptPolicy(allow_retry=False).after_recorded(AttemptState(1, 2)) == BlockState.SUBMITTED

    def test_recorded_last_attempt_locks(self):
        assert AttemptPolicy(allow_retry=True).after_recorded(AttemptState(2, 2)) == BlockState.LOCKED


class TestResponseState:
    """Response values and freezing."""

    def test_set_and_snapshot(self):
        response = ResponseState()
        response.set(0, "Paris")

        assert response.snapshot() == {0: "Paris"}
        assert 0 in response
        assert len(response) == 1

    def test_snapshot_is_a_copy(self):
        response = ResponseState({0: "a"})
        snapshot = response.snapshot()
        snapshot[1] = "b"

        assert 1 not in response

    def test_values_are_read_only(self):
        response = ResponseState({0: "a"})
        with pytest.raises(TypeError):
            response.values[0] = "b"

    def test_clear(self):
        response = ResponseState({0: "a"})
        response.clear(0)
        assert response.is_empty

    def test_frozen_rejects_set(self):
        response = ResponseState()
        response.freeze()

        with pytest.raises(ResponseFrozenError):
            response.set(0, "x")

    def test_frozen_rejects_clear(self):
        response = ResponseState({0: "a"})
        response.freeze()

        with pytest.raises(ResponseFrozenError):
            response.clear(0)
