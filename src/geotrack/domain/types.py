from __future__ import annotations

"""Shared data containers for detections, tracks and positions."""

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Mapping, Optional, Tuple

# Bounding box in (x1, y1, x2, y2) pixel coordinates.
BBoxXYXY = Tuple[float, float, float, float]

# Display color as (B, G, R), the order OpenCV draws with.
ColorBGR = Tuple[int, int, int]


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle; (x1, y1) top-left, (x2, y2) bottom-right."""
    x1: float
    y1: float
    x2: float
    y2: float

    @staticmethod
    def from_ltwh(left: float, top: float, width: float, height: float) -> "Box":
        """Build a box from left/top/width/height."""
        left, top = float(left), float(top)
        return Box(left, top, left + float(width), top + float(height))

    @staticmethod
    def from_xyxy(coords: BBoxXYXY) -> "Box":
        return Box(float(coords[0]), float(coords[1]), float(coords[2]), float(coords[3]))

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def area(self) -> float:
        if self.width <= 0 or self.height <= 0:
            return 0.0
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2.0, (self.y1 + self.y2) / 2.0)

    def as_xyxy(self) -> BBoxXYXY:
        return (self.x1, self.y1, self.x2, self.y2)


@dataclass(frozen=True)
class RawDetection:
    """Detector output item with a box in normalized [0, 1] frame fractions."""
    class_label: str
    confidence: float
    x: float
    y: float
    w: float
    h: float

    @staticmethod
    def from_mapping(m: Mapping[str, Any]) -> "RawDetection":
        """Parse ``{classLabel, confidence, box: {x, y, w, h}}``.

        The detector's native keys ``detectedClass``, ``confidenceInClass``
        and ``rect`` are accepted as well.
        """
        label = m.get("classLabel", m.get("detectedClass"))
        if label is None:
            raise ValueError(f"Detection without class label: {dict(m)!r}")
        conf = m.get("confidence", m.get("confidenceInClass", 0.0))
        box = m.get("box", m.get("rect"))
        if not isinstance(box, Mapping):
            raise ValueError(f"Detection without box: {dict(m)!r}")
        x, y, w, h = (float(box[k]) for k in ("x", "y", "w", "h"))
        if not all(math.isfinite(v) for v in (x, y, w, h)):
            raise ValueError(f"Detection box is not finite: {dict(box)!r}")
        return RawDetection(
            class_label=str(label).strip().lower(),
            confidence=float(conf),
            x=x,
            y=y,
            w=w,
            h=h,
        )


@dataclass(frozen=True)
class Detection:
    """Detection scaled to frame pixels, ready for association."""
    class_label: str
    confidence: float
    box: Box


@dataclass(frozen=True)
class Position3D:
    """Camera-relative estimate.

    Angles are in degrees; x is lateral (right positive), y forward,
    z vertical (up positive), all in meters.
    """
    distance: float
    horizontal_angle: float
    vertical_angle: float
    x: float
    y: float
    z: float


@dataclass
class Track:
    """Persistent identity for one physical object across frames."""
    track_id: int
    class_label: str
    box: Box
    confidence: float
    color: ColorBGR
    frames_since_update: int = 0
    history: Deque[Box] = field(default_factory=lambda: deque(maxlen=5))
    # None until the first valid geometric estimate.
    position: Optional[Position3D] = None

    def __setattr__(self, name: str, value: Any) -> None:
        # identity is fixed once __init__ has set it
        if name in ("track_id", "class_label") and name in self.__dict__:
            raise AttributeError(f"Track.{name} cannot change after creation")
        super().__setattr__(name, value)

    @property
    def is_estimated(self) -> bool:
        return self.position is not None

    def summary(self) -> dict:
        """Flat dict for overlays and logs."""
        out = {
            "id": self.track_id,
            "class": self.class_label,
            "confidence": round(self.confidence, 3),
            "bbox": [round(v, 1) for v in self.box.as_xyxy()],
            "frames_since_update": self.frames_since_update,
        }
        if self.position is not None:
            p = self.position
            out["position"] = {
                "distance": round(p.distance, 3),
                "x": round(p.x, 3),
                "y": round(p.y, 3),
                "z": round(p.z, 3),
            }
        return out


@dataclass(frozen=True)
class GeoPosition:
    """Geographic position; altitude in meters."""
    lat: float
    lon: float
    altitude: float = 0.0
    heading: Optional[float] = None
