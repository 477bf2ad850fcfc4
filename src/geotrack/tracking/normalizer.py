from __future__ import annotations

from typing import Any, Container, Iterable, List, Mapping, Optional, Union

from geotrack.core.pipeline.log import LogFn, noop_log
from geotrack.domain.types import Box, Detection, RawDetection

RawInput = Union[RawDetection, Mapping[str, Any]]


def is_trackable(class_label: str, allowed_classes: Container[str], heights: Container[str]) -> bool:
    """A class is tracked only if it is allowed AND can be localized."""
    return class_label in allowed_classes and class_label in heights


def to_raw(item: RawInput) -> RawDetection:
    if isinstance(item, RawDetection):
        return item
    if not isinstance(item, Mapping):
        raise TypeError(f"Detection must be a mapping, got {type(item).__name__}")
    return RawDetection.from_mapping(item)


def normalize_detections(
    raw: Iterable[RawInput],
    frame_w: float,
    frame_h: float,
    allowed_classes: Container[str],
    heights: Container[str],
    log: Optional[LogFn] = None,
) -> List[Detection]:
    """Scale normalized detector boxes to frame pixels and drop untrackable classes.

    Input order is preserved; the tracker relies on it for tie-breaking.
    Items that cannot be parsed are dropped one by one (``detection_dropped``)
    so the rest of the frame still reaches the tracker.
    """
    log = log or noop_log
    out: List[Detection] = []
    for idx, item in enumerate(raw):
        try:
            det = to_raw(item)
        except (KeyError, TypeError, ValueError) as e:
            log("detection_dropped", {"index": idx, "error": repr(e)})
            continue
        if not is_trackable(det.class_label, allowed_classes, heights):
            continue
        out.append(
            Detection(
                class_label=det.class_label,
                confidence=det.confidence,
                box=Box.from_ltwh(det.x * frame_w, det.y * frame_h, det.w * frame_w, det.h * frame_h),
            )
        )
    return out
