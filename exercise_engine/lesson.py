"""
Lesson documents.

A lesson is an ordered list of block definitions plus the attempt rules the
LMS applies to it. Lessons arrive in the LMS JSON shape:

    {
        "id": "...",
        "title": "...",
        "is_graded": true,
        "max_attempts": 2,
        "allow_retry": true,
        "metadata": {"blocks": [{"id": "...", "type": "quiz", ...}, ...]}
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict

from exercise_engine.blocks import parse_kind
from exercise_engine.blocks.models import BlockDefinition
from exercise_engine.errors import LessonLoadError


class Lesson(BaseModel):
    """An immutable lesson with its attempt rules."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    is_graded: bool = False
    max_attempts: int | None = None
    allow_retry: bool = True
    blocks: tuple[BlockDefinition, ...] = ()

    def block(self, block_id: str) -> BlockDefinition:
        for definition in self.blocks:
            if definition.id == block_id:
                return definition
        raise KeyError(block_id)

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> Lesson:
        """
        Build a lesson from LMS JSON.

        Blocks of a type the engine does not know (e.g. "document") are
        skipped with a warning rather than failing the whole lesson.
        """
        if not isinstance(raw, dict) or not raw.get("id"):
            raise LessonLoadError("Lesson document must be an object with an 'id'")

        metadata = raw.get("metadata") or {}
        raw_blocks = metadata.get("blocks") if isinstance(metadata, dict) else None
        if raw_blocks is None:
            raw_blocks = raw.get("blocks") or []

        blocks: list[BlockDefinition] = []
        seen: set[str] = set()
        for position, raw_block in enumerate(raw_blocks):
            if not isinstance(raw_block, dict):
                logger.warning(f"Lesson {raw['id']}: block {position} is not an object, skipped")
                continue
            block_type = raw_block.get("type") or raw_block.get("kind")
            if parse_kind(block_type or "") is None:
                logger.warning(f"Lesson {raw['id']}: unsupported block type {block_type!r}, skipped")
                continue

            definition = BlockDefinition.from_raw(raw_block, fallback_id=f"block-{position}")
            if definition.id in seen:
                logger.warning(f"Lesson {raw['id']}: duplicate block id {definition.id!r}, skipped")
                continue
            seen.add(definition.id)
            blocks.append(definition)

        max_attempts = raw.get("max_attempts")
        return cls(
            id=str(raw["id"]),
            title=raw.get("title") or "",
            is_graded=bool(raw.get("is_graded", False)),
            max_attempts=max_attempts if max_attempts else None,
            allow_retry=raw.get("allow_retry", True) is not False,
            blocks=tuple(blocks),
        )


def load_lesson_file(path: str | Path) -> Lesson:
    """
    Read a lesson from a JSON file.

    Raises:
        LessonLoadError: If the file is missing or not valid JSON
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise LessonLoadError(f"Lesson file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise LessonLoadError(f"Lesson file {path} is not valid JSON: {e}") from e

    lesson = Lesson.from_raw(raw)
    logger.debug(f"Loaded lesson {lesson.id} with {len(lesson.blocks)} block(s) from {path}")
    return lesson
