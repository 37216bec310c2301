"""
Learner response state for one block.

Values are keyed by unit index. Once a response is frozen by a submit it
can no longer change; a retry starts over with a fresh ResponseState.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

from loguru import logger

from exercise_engine.errors import ResponseFrozenError


class ResponseState:
    """Mutable answer map, frozen at submit."""

    def __init__(self, values: Mapping[int, Any] | None = None):
        self._values: dict[int, Any] = dict(values or {})
        self.submitted = False

    @property
    def values(self) -> Mapping[int, Any]:
        return MappingProxyType(self._values)

    @property
    def is_empty(self) -> bool:
        return not self._values

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def get(self, key: int, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: int, value: Any) -> None:
        self._check_open("set")
        self._values[key] = value

    def clear(self, key: int) -> None:
        self._check_open("clear")
        self._values.pop(key, None)

    def freeze(self) -> None:
        self.submitted = True

    def snapshot(self) -> dict[int, Any]:
        """Copy of the current values, safe to hand to the scorer."""
        return dict(self._values)

    def _check_open(self, action: str) -> None:
        if self.submitted:
            logger.error(f"Attempted to {action} a value on a submitted response")
            raise ResponseFrozenError(f"Cannot {action} values on a submitted response")
