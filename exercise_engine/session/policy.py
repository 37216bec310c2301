"""
Attempt & lock policy.

    UNLOCKED -> ANSWERING -> SUBMITTED -> RETRYABLE -> UNLOCKED ...
                                      +-> LOCKED

The grading service owns the attempt count. The local AttemptState only
mirrors the last authoritative value it was given.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger


class BlockState(str, Enum):
    UNLOCKED = "unlocked"
    ANSWERING = "answering"
    SUBMITTED = "submitted"
    RETRYABLE = "retryable"
    LOCKED = "locked"


class RecordingStatus(str, Enum):
    """Whether the grading service has durably stored the latest attempt."""

    IDLE = "idle"  # nothing submitted yet
    PENDING = "pending"  # in flight, or timed out with unknown outcome
    RECORDED = "recorded"
    FAILED = "failed"
    REJECTED = "rejected"  # refused because attempts are exhausted


@dataclass
class AttemptState:
    """Attempts used on a block versus the lesson's limit."""

    attempts_used: int = 0
    max_attempts: int | None = None

    def __post_init__(self):
        if self.attempts_used < 0:
            raise ValueError(f"attempts_used must be >= 0, got {self.attempts_used}")

    @property
    def unlimited(self) -> bool:
        return self.max_attempts is None or self.max_attempts <= 0

    @property
    def exhausted(self) -> bool:
        return not self.unlimited and self.attempts_used >= self.max_attempts

    @property
    def remaining(self) -> int | None:
        """Attempts left, None when unlimited."""
        if self.unlimited:
            return None
        return max(0, self.max_attempts - self.attempts_used)

    def adopt(self, attempts_used: int) -> None:
        """Take the count reported by the grading service."""
        if attempts_used < self.attempts_used:
            logger.warning(
                f"Grading service reports {attempts_used} attempt(s), "
                f"lower than the {self.attempts_used} shown; using the service count"
            )
        self.attempts_used = attempts_used


@dataclass(frozen=True)
class AttemptPolicy:
    """Lesson-level retry rules."""

    allow_retry: bool = True

    def initial_state(self, attempts: AttemptState) -> BlockState:
        return BlockState.LOCKED if attempts.exhausted else BlockState.UNLOCKED

    def after_recorded(self, attempts: AttemptState) -> BlockState:
        """State once the grading service confirmed an attempt."""
        if attempts.exhausted:
            return BlockState.LOCKED
        if self.allow_retry:
            return BlockState.RETRYABLE
        return BlockState.SUBMITTED
