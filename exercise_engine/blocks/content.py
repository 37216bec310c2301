"""
Description and media block handlers.

Plain content: nothing to answer, zero checkable units. They take part in
lesson completion through view/play events only.
"""

import random
from dataclasses import dataclass
from typing import Any

from exercise_engine.errors import ResponseShapeError

from . import BlockKind, register
from .base import CheckableUnit
from .models import DescriptionPayload, MediaPayload


@dataclass(frozen=True)
class ContentPresentation:
    text: str = ""
    url: str = ""
    media_type: str | None = None


@register(BlockKind.DESCRIPTION)
class DescriptionHandler:
    """Handler for rich-text description blocks."""

    single_outcome = False

    def issues(self, payload: DescriptionPayload) -> list[str]:
        if not payload.content.strip():
            return ["Description has no content"]
        return []

    def parse(self, payload: DescriptionPayload) -> list[CheckableUnit]:
        return []

    def present(self, payload: DescriptionPayload, rng: random.Random) -> ContentPresentation:
        return ContentPresentation(text=payload.content)

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        raise ResponseShapeError("Description blocks have no checkable units")


@register(BlockKind.MEDIA)
class MediaHandler:
    """Handler for video/audio media blocks."""

    single_outcome = False

    def issues(self, payload: MediaPayload) -> list[str]:
        problems = []
        if not payload.url.strip():
            problems.append("Media block has no URL")
        if payload.media_type not in (None, "video", "audio"):
            problems.append(f"Unsupported media type: {payload.media_type}")
        return problems

    def parse(self, payload: MediaPayload) -> list[CheckableUnit]:
        return []

    def present(self, payload: MediaPayload, rng: random.Random) -> ContentPresentation:
        return ContentPresentation(url=payload.url, media_type=payload.media_type)

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        raise ResponseShapeError("Media blocks have no checkable units")
