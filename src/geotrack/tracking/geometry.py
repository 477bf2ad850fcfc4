from __future__ import annotations

from typing import Optional

from geotrack.domain.types import Box


def intersect(a: Box, b: Box) -> Optional[Box]:
    x1 = max(a.x1, b.x1)
    y1 = max(a.y1, b.y1)
    x2 = min(a.x2, b.x2)
    y2 = min(a.y2, b.y2)
    if x2 <= x1 or y2 <= y1:
        return None
    return Box(x1, y1, x2, y2)


def iou(a: Box, b: Box) -> float:
    inter = intersect(a, b)
    if inter is None:
        return 0.0
    inter_area = inter.area
    union = a.area + b.area - inter_area
    if union <= 0:
        return 0.0
    return inter_area / union
