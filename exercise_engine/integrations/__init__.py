"""
External collaborators: grading, tutor feedback, interaction reporting and
lesson loading, with an LMS HTTP adapter and local in-memory versions.
"""

from .lms_client import LmsClient
from .local import (
    InMemoryGradingService,
    JsonLessonLoader,
    RecordingInteractionReporter,
    StaticTutorService,
)
from .services import (
    AttemptRecord,
    GradingService,
    InteractionEvent,
    LessonLoader,
    MediaInteractionReporter,
    TutorService,
)

__all__ = [
    "AttemptRecord",
    "GradingService",
    "InMemoryGradingService",
    "InteractionEvent",
    "JsonLessonLoader",
    "LessonLoader",
    "LmsClient",
    "MediaInteractionReporter",
    "RecordingInteractionReporter",
    "StaticTutorService",
    "TutorService",
]
