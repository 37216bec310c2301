"""
Response parser: authoring payload -> checkable units and display model.

Unit derivation is a pure function of the payload, so calling parse()
again on the same payload always gives equal units in the same order.
Only the display model may differ between calls (shuffled distractors).
"""

from __future__ import annotations

import random
from typing import Any

from exercise_engine.blocks import BlockKind, get_handler, parse_kind
from exercise_engine.blocks.base import BlockHandler, CheckableUnit
from exercise_engine.blocks.models import BlockDefinition, coerce_payload

# Kinds that never produce a grade
NON_SCORED_KINDS = frozenset({
    BlockKind.DESCRIPTION,
    BlockKind.MEDIA,
    BlockKind.AUDIO_RESPONSE,
})


def _handler_for(kind: str | BlockKind) -> BlockHandler:
    handler = get_handler(kind)
    if handler is None:
        raise ValueError(f"Unknown block kind: {kind!r}")
    return handler


def parse(kind: str | BlockKind, payload: Any) -> list[CheckableUnit]:
    """
    Derive the ordered checkable units for a block payload.

    Args:
        kind: Block kind (enum or name)
        payload: Typed payload model or raw authoring dict

    Returns:
        Units in stable order. Malformed authoring yields fewer (or zero) units.

    Raises:
        ValueError: If kind is not a known block kind
    """
    handler = _handler_for(kind)
    return handler.parse(coerce_payload(kind, payload))


def parse_block(definition: BlockDefinition) -> list[CheckableUnit]:
    return parse(definition.kind, definition.payload)


def present(definition: BlockDefinition, rng: random.Random | None = None) -> Any:
    """
    Build the display model for a block.

    Pass a seeded ``random.Random`` for a reproducible shuffle.
    """
    handler = _handler_for(definition.kind)
    return handler.present(definition.payload, rng or random.Random())


def lint(definition: BlockDefinition) -> list[str]:
    """Authoring problems for a block, empty when it is fully playable."""
    return _handler_for(definition.kind).issues(definition.payload)


def is_scored_kind(kind: str | BlockKind) -> bool:
    resolved = parse_kind(kind)
    if resolved is None:
        raise ValueError(f"Unknown block kind: {kind!r}")
    return resolved not in NON_SCORED_KINDS
