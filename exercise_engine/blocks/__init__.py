"""
Block kind handlers for interactive lessons.

Each block kind (quiz, matching, hotspot, etc.) has its own module with:
- issues(): Authoring problems that would make the block unplayable
- parse(): Derive the ordered checkable units from the payload
- present(): Build the display model (shuffled where the kind calls for it)
- check(): Decide whether one unit is satisfied by the learner's value
"""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .base import BlockHandler


class BlockKind(str, Enum):
    """The closed set of block kinds a lesson may contain."""
    DESCRIPTION = "description"
    MEDIA = "media"
    QUIZ = "quiz"
    FILL_IN_THE_BLANKS = "fill-in-the-blanks"
    MATCHING = "matching"
    ORDERING = "ordering"
    SHORT_ANSWER = "short-answer"
    HOTSPOT = "hotspot"
    MEMORY_MATCH = "memory-match"
    CODE_EXERCISE = "code-exercise"
    AUDIO_RESPONSE = "audio-response"


# LMS spellings that differ from ours
KIND_ALIASES = {
    "code": BlockKind.CODE_EXERCISE,
    "fill_in_the_blanks": BlockKind.FILL_IN_THE_BLANKS,
    "short_answer": BlockKind.SHORT_ANSWER,
    "memory_match": BlockKind.MEMORY_MATCH,
    "audio_response": BlockKind.AUDIO_RESPONSE,
}


# Handler registry - populated by @register decorator
HANDLERS: dict[BlockKind, "BlockHandler"] = {}


def register(kind: BlockKind):
    """Decorator to register a block handler."""
    def decorator(cls):
        HANDLERS[kind] = cls()
        return cls
    return decorator


def parse_kind(kind: "str | BlockKind") -> BlockKind | None:
    """Resolve a kind name (including LMS aliases). Returns None if unknown."""
    if isinstance(kind, BlockKind):
        return kind
    name = str(kind).strip().lower()
    if name in KIND_ALIASES:
        return KIND_ALIASES[name]
    try:
        return BlockKind(name)
    except ValueError:
        return None


def get_handler(kind: "str | BlockKind") -> "BlockHandler | None":
    """Get the handler for a block kind."""
    resolved = parse_kind(kind)
    if resolved is None:
        return None
    return HANDLERS.get(resolved)


# Import handlers to trigger registration
from . import content
from . import quiz
from . import fill_in_blanks
from . import matching
from . import ordering
from . import short_answer
from . import hotspot
from . import memory_match
from . import code_exercise
from . import audio_response

__all__ = [
    "BlockKind",
    "HANDLERS",
    "KIND_ALIASES",
    "get_handler",
    "parse_kind",
    "register",
]
