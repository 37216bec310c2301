"""
Hotspot block handler.

Learners click on an image to find circular regions. Coordinates are
percentages of the image width/height, so distances are measured in
percent-of-image space. The block passes only when every region is found.
"""

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from loguru import logger

from exercise_engine.errors import ResponseShapeError

from . import BlockKind, register
from .base import CheckableUnit
from .models import HotspotPayload, HotspotRegion


@dataclass(frozen=True)
class Region:
    x: float
    y: float
    radius: float
    label: str = ""
    region_id: str = ""

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(x - self.x, y - self.y)

    def contains(self, x: float, y: float) -> bool:
        return self.distance_to(x, y) <= self.radius


@dataclass(frozen=True)
class HotspotPresentation:
    image_url: str
    description: str
    labels: tuple[str, ...]


def _is_playable(region: HotspotRegion) -> bool:
    return region.radius > 0 and 0 <= region.x <= 100 and 0 <= region.y <= 100


def _regions(payload: HotspotPayload) -> list[HotspotRegion]:
    regions = [r for r in payload.hotspots if _is_playable(r)]
    if len(regions) != len(payload.hotspots):
        logger.debug(f"Dropped {len(payload.hotspots) - len(regions)} out-of-bounds hotspot region(s)")
    return regions


def locate(units: Sequence[CheckableUnit], x: float, y: float) -> int | None:
    """Index of the first region containing the click, or None for a miss."""
    for unit in units:
        if unit.expected.contains(x, y):
            return unit.index
    return None


@register(BlockKind.HOTSPOT)
class HotspotHandler:
    """Handler for image hotspot blocks."""

    single_outcome = True

    def issues(self, payload: HotspotPayload) -> list[str]:
        problems = []
        if not payload.image_url.strip():
            problems.append("No image")
        if not payload.hotspots:
            problems.append("No regions defined")
        for n, region in enumerate(payload.hotspots, 1):
            if region.radius <= 0:
                problems.append(f"Region {n} has no radius")
            if not (0 <= region.x <= 100 and 0 <= region.y <= 100):
                problems.append(f"Region {n} lies outside the image")
            if not region.label.strip():
                problems.append(f"Region {n} has no label")
        return problems

    def parse(self, payload: HotspotPayload) -> list[CheckableUnit]:
        return [
            CheckableUnit(
                index=i,
                kind=BlockKind.HOTSPOT.value,
                expected=Region(
                    x=region.x,
                    y=region.y,
                    radius=region.radius,
                    label=region.label,
                    region_id=region.id,
                ),
                label=region.label,
            )
            for i, region in enumerate(_regions(payload))
        ]

    def present(self, payload: HotspotPayload, rng: random.Random) -> HotspotPresentation:
        return HotspotPresentation(
            image_url=payload.image_url,
            description=payload.description,
            labels=tuple(r.label for r in _regions(payload)),
        )

    def check(self, unit: CheckableUnit, value: Any) -> bool:
        """value is the click point (x%, y%) recorded for this region."""
        if (
            not isinstance(value, (tuple, list))
            or len(value) != 2
            or not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value)
        ):
            raise ResponseShapeError(
                f"Hotspot region {unit.index} expects an (x, y) point, got {value!r}"
            )
        return unit.expected.contains(float(value[0]), float(value[1]))
