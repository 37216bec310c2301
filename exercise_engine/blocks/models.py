"""
Authoring payload models.

A block's payload is a discriminated union keyed by ``kind``: one frozen
pydantic model per block kind. Every field has an empty default so that a
half-edited block still loads and simply yields fewer checkable units.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from loguru import logger
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    WrapValidator,
)

from . import BlockKind, parse_kind


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


def _drop_invalid_items(value: Any, handler: ValidatorFunctionWrapHandler) -> Any:
    """Validate a list of entries, dropping the ones that fail on their own."""
    try:
        return handler(value)
    except ValidationError:
        if not isinstance(value, (list, tuple)):
            raise

    kept: list[Any] = []
    for position, item in enumerate(value):
        try:
            kept.extend(handler([item]))
        except ValidationError as e:
            logger.warning(f"Dropped malformed entry {position}: {e.error_count()} error(s)")
    return tuple(kept)


DropInvalid = WrapValidator(_drop_invalid_items)


# =============================================================================
# Non-scored content
# =============================================================================


class DescriptionPayload(_Payload):
    kind: Literal["description"] = "description"
    content: str = ""


class MediaPayload(_Payload):
    kind: Literal["media"] = "media"
    url: str = ""
    media_type: str | None = None


class AudioResponsePayload(_Payload):
    kind: Literal["audio-response"] = "audio-response"
    prompt: str = ""
    keywords: tuple[str, ...] = ()
    time_limit: int | None = Field(default=None, alias="timeLimit")


# =============================================================================
# Scored kinds
# =============================================================================


class QuizQuestion(_Payload):
    id: str = ""
    question: str = ""
    options: tuple[str, ...] = ()
    correct: tuple[int, ...] = ()
    type: str = "multiple-choice"  # multiple-choice, true-false, multiple-select

    @property
    def is_multi_select(self) -> bool:
        return self.type == "multiple-select"


class QuizPayload(_Payload):
    kind: Literal["quiz"] = "quiz"
    questions: Annotated[tuple[QuizQuestion, ...], DropInvalid] = ()


class FillInTheBlanksPayload(_Payload):
    kind: Literal["fill-in-the-blanks"] = "fill-in-the-blanks"
    content: str = ""


class Pair(_Payload):
    left: str = ""
    right: str = ""
    id: str | None = None


class MatchingPayload(_Payload):
    kind: Literal["matching"] = "matching"
    pairs: Annotated[tuple[Pair, ...], DropInvalid] = ()


class OrderingPayload(_Payload):
    kind: Literal["ordering"] = "ordering"
    items: tuple[str, ...] = ()


class ShortAnswerPayload(_Payload):
    kind: Literal["short-answer"] = "short-answer"
    prompt: str = ""
    correct_answers: tuple[str, ...] = Field(default=(), alias="correctAnswers")


class HotspotRegion(_Payload):
    id: str = ""
    x: float = 0.0  # percent of image width
    y: float = 0.0  # percent of image height
    radius: float = 0.0
    label: str = ""


class HotspotPayload(_Payload):
    kind: Literal["hotspot"] = "hotspot"
    description: str = ""
    image_url: str = Field(default="", alias="imageUrl")
    hotspots: Annotated[tuple[HotspotRegion, ...], DropInvalid] = ()


class MemoryMatchPayload(_Payload):
    kind: Literal["memory-match"] = "memory-match"
    pairs: Annotated[tuple[Pair, ...], DropInvalid] = ()


class CodeExercisePayload(_Payload):
    kind: Literal["code-exercise"] = "code-exercise"
    title: str = ""
    instructions: str = ""
    initial_code: str = Field(default="", alias="initialCode")
    expected_tokens: tuple[str, ...] = Field(default=(), alias="expectedTokens")
    expected_output: str | None = Field(default=None, alias="expectedOutput")
    language: str = "python"


BlockPayload = Annotated[
    Union[
        DescriptionPayload,
        MediaPayload,
        QuizPayload,
        FillInTheBlanksPayload,
        MatchingPayload,
        OrderingPayload,
        ShortAnswerPayload,
        HotspotPayload,
        MemoryMatchPayload,
        CodeExercisePayload,
        AudioResponsePayload,
    ],
    Field(discriminator="kind"),
]

PAYLOAD_MODELS: dict[BlockKind, type[_Payload]] = {
    BlockKind.DESCRIPTION: DescriptionPayload,
    BlockKind.MEDIA: MediaPayload,
    BlockKind.QUIZ: QuizPayload,
    BlockKind.FILL_IN_THE_BLANKS: FillInTheBlanksPayload,
    BlockKind.MATCHING: MatchingPayload,
    BlockKind.ORDERING: OrderingPayload,
    BlockKind.SHORT_ANSWER: ShortAnswerPayload,
    BlockKind.HOTSPOT: HotspotPayload,
    BlockKind.MEMORY_MATCH: MemoryMatchPayload,
    BlockKind.CODE_EXERCISE: CodeExercisePayload,
    BlockKind.AUDIO_RESPONSE: AudioResponsePayload,
}


def coerce_payload(kind: str | BlockKind, payload: Any) -> _Payload:
    """
    Turn a raw dict (or an already typed payload) into the model for ``kind``.

    Malformed list entries are dropped one by one; any other data the
    model rejects degrades to the kind's empty payload.
    """
    resolved = parse_kind(kind)
    if resolved is None:
        raise ValueError(f"Unknown block kind: {kind!r}")

    model = PAYLOAD_MODELS[resolved]
    if isinstance(payload, model):
        return payload
    if isinstance(payload, _Payload):
        raise ValueError(
            f"Payload of kind {payload.kind!r} does not match block kind {resolved.value!r}"
        )

    data = dict(payload or {})
    data["kind"] = resolved.value
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(
            f"Malformed {resolved.value} payload, treating as empty: {e.error_count()} error(s)"
        )
        return model()


class BlockDefinition(BaseModel):
    """An authored block. Immutable once published."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str | None = None
    payload: BlockPayload

    @property
    def kind(self) -> BlockKind:
        return BlockKind(self.payload.kind)

    @classmethod
    def build(
        cls,
        block_id: str,
        kind: str | BlockKind,
        payload: Any = None,
        title: str | None = None,
    ) -> BlockDefinition:
        """Build a definition from a kind name and a raw or typed payload."""
        return cls(id=block_id, title=title, payload=coerce_payload(kind, payload))

    @classmethod
    def from_raw(cls, raw: dict[str, Any], fallback_id: str = "") -> BlockDefinition:
        """
        Build a definition from the LMS block format.

        The LMS stores blocks flat: ``{"id", "type", "title", "content",
        "quiz_data": {"questions": [...]}, "pairs", "items", ...}`` with an
        optional ``config`` dict of extra settings.

        Raises:
            ValueError: If the block type is not one of the known kinds
        """
        kind = parse_kind(raw.get("type") or raw.get("kind") or "")
        if kind is None:
            raise ValueError(f"Unknown block type: {raw.get('type')!r}")

        config = raw.get("config")
        data: dict[str, Any] = dict(config) if isinstance(config, dict) else {}
        data.update({k: v for k, v in raw.items() if v is not None})
        if kind == BlockKind.QUIZ and "questions" not in data:
            quiz_data = raw.get("quiz_data") or {}
            data["questions"] = quiz_data.get("questions", []) if isinstance(quiz_data, dict) else []

        return cls(
            id=str(raw.get("id") or fallback_id),
            title=raw.get("title") or None,
            payload=coerce_payload(kind, data),
        )
