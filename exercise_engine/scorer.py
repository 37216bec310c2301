"""
Validator/scorer: (units, response) -> GradeResult.

Pure and deterministic. Multi-unit kinds score correct/total; single-outcome
kinds (hotspot, memory match, code exercise) score 1.0 only when every unit
is satisfied. An unanswered unit is simply incorrect.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger

from exercise_engine.blocks import get_handler
from exercise_engine.blocks.base import CheckableUnit, GradeResult, UnitResult
from exercise_engine.errors import ResponseShapeError


def _values_of(response: Any) -> Mapping[Any, Any]:
    if isinstance(response, Mapping):
        return response
    snapshot = getattr(response, "snapshot", None)
    if snapshot is None:
        raise ResponseShapeError(f"Cannot score a response of type {type(response).__name__}")
    return snapshot()


def score(units: Sequence[CheckableUnit], response: Any) -> GradeResult:
    """
    Score a learner response.

    Args:
        units: Units from parse(), all of the same block
        response: Mapping of unit index -> learner value, or a ResponseState

    Returns:
        GradeResult with score in [0.0, 1.0] and per-unit correctness

    Raises:
        ResponseShapeError: If the response references units that do not
            exist, or a value has the wrong type for the block kind
    """
    values = _values_of(response)

    if not units:
        if values:
            logger.error(f"Response has {len(values)} value(s) but the block has no units")
            raise ResponseShapeError("Response given for a block without checkable units")
        return GradeResult(score=0.0)

    kinds = {unit.kind for unit in units}
    if len(kinds) != 1:
        raise ResponseShapeError(f"Units from several block kinds: {sorted(kinds)}")
    kind = kinds.pop()
    handler = get_handler(kind)
    if handler is None:
        raise ResponseShapeError(f"No handler for block kind {kind!r}")

    known = {unit.index for unit in units}
    unknown = [key for key in values if key not in known]
    if unknown:
        logger.error(f"{kind} response references unknown unit(s) {unknown!r}")
        raise ResponseShapeError(f"Unknown unit index(es) in response: {unknown!r}")

    per_unit = []
    for unit in units:
        value = values.get(unit.index)
        try:
            correct = value is not None and handler.check(unit, value)
        except ResponseShapeError as e:
            logger.error(f"{kind} response shape mismatch: {e}")
            raise
        per_unit.append(UnitResult(index=unit.index, correct=correct))

    correct_count = sum(1 for r in per_unit if r.correct)
    if handler.single_outcome:
        result_score = 1.0 if correct_count == len(per_unit) else 0.0
    else:
        result_score = correct_count / len(per_unit)

    return GradeResult(score=result_score, per_unit=tuple(per_unit))
