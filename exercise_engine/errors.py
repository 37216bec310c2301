"""
Error taxonomy for the exercise engine.

Malformed authoring data never raises (it degrades to fewer units).
The errors below cover programming mistakes and service failures.
"""

from __future__ import annotations


class ExerciseEngineError(Exception):
    """Base class for all engine errors."""
    pass


# =============================================================================
# Invariant violations
# =============================================================================


class ResponseShapeError(ExerciseEngineError):
    """Raised when a learner response does not fit the derived units."""
    pass


class InvalidTransitionError(ExerciseEngineError):
    """Raised when an action is not allowed in the current block state."""

    def __init__(self, action: str, state: str, reason: str = ""):
        self.action = action
        self.state = state
        message = f"Cannot {action} while block is {state}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ResponseFrozenError(ExerciseEngineError):
    """Raised when a submitted response is mutated."""
    pass


class LessonLoadError(ExerciseEngineError):
    """Raised when a lesson document cannot be read at all."""
    pass


# =============================================================================
# Service failures
# =============================================================================


class GradingServiceError(ExerciseEngineError):
    """The grading service did not record the attempt."""
    pass


class ServiceTimeoutError(GradingServiceError):
    """The grading service did not answer in time. The attempt may or may not exist."""
    pass


class AttemptsExhaustedError(GradingServiceError):
    """The grading service refused the attempt because the limit is reached."""
    pass


class TutorServiceError(ExerciseEngineError):
    """Feedback text could not be fetched."""
    pass
