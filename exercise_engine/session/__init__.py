"""Block and lesson sessions: response state, attempt policy and recording."""

from .block_session import BlockReport, BlockSession
from .lesson_session import LessonSession
from .policy import AttemptPolicy, AttemptState, BlockState, RecordingStatus
from .response import ResponseState

__all__ = [
    "AttemptPolicy",
    "AttemptState",
    "BlockReport",
    "BlockSession",
    "BlockState",
    "LessonSession",
    "RecordingStatus",
    "ResponseState",
]
