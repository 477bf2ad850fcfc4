from __future__ import annotations

"""Camera intrinsics and the reference-height table used for distance estimation."""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from geotrack.core.schema import CameraCfg


@dataclass(frozen=True)
class CameraIntrinsics:
    """Pinhole approximation of a phone camera. Override per device."""
    hfov_deg: float = 42.08
    focal_length_mm: float = 4.0
    sensor_width_mm: float = 5.5385
    sensor_height_mm: float = 3.077
    image_width_px: float = 2296.0
    image_height_px: float = 4080.0

    @staticmethod
    def from_cfg(cfg: CameraCfg) -> "CameraIntrinsics":
        return CameraIntrinsics(
            hfov_deg=float(cfg.hfov_deg),
            focal_length_mm=float(cfg.focal_length_mm),
            sensor_width_mm=float(cfg.sensor_width_mm),
            sensor_height_mm=float(cfg.sensor_height_mm),
            image_width_px=float(cfg.image_width_px),
            image_height_px=float(cfg.image_height_px),
        )


DEFAULT_INTRINSICS = CameraIntrinsics()

# Assumed real-world object heights in meters.
REFERENCE_HEIGHTS_M: Dict[str, float] = {
    # fruit
    "banana": 0.19,
    "apple": 0.09,
    "orange": 0.075,
    # household
    "bottle": 0.25,
    "cup": 0.1,
    "bowl": 0.08,
    "book": 0.02,
    "cell phone": 0.15,
    "laptop": 0.02,
    # furniture
    "chair": 0.8,
    "couch": 0.85,
    "bed": 0.6,
    "toilet": 0.7,
    "tv": 0.6,
    # people and animals
    "person": 1.7,
    "cat": 0.25,
    "dog": 0.6,
    "bird": 0.15,
    # vehicles
    "car": 1.5,
    "bicycle": 1.1,
    "motorcycle": 1.2,
    "bus": 3.0,
    "truck": 3.5,
    "airplane": 15.0,
    "boat": 5.0,
    # large animals
    "horse": 1.6,
    "cow": 1.5,
    "elephant": 3.0,
    "bear": 0.9,
    "zebra": 1.4,
    "giraffe": 5.0,
    # accessories
    "backpack": 0.5,
    "umbrella": 0.8,
    "handbag": 0.3,
    "suitcase": 0.7,
    "teddy bear": 0.3,
    # decor
    "clock": 0.3,
    "vase": 0.25,
}


def _key(class_label: str) -> str:
    return class_label.strip().lower()


def get_assumed_height(class_label: str) -> Optional[float]:
    """Reference height in meters, or None for an unsupported class."""
    return REFERENCE_HEIGHTS_M.get(_key(class_label))


def is_distance_supported(class_label: str) -> bool:
    return _key(class_label) in REFERENCE_HEIGHTS_M


def supported_classes() -> List[str]:
    return list(REFERENCE_HEIGHTS_M.keys())


class HeightTable:
    """Reference heights with per-deployment additions layered on the defaults."""

    def __init__(self, custom: Optional[Mapping[str, float]] = None):
        self._heights: Dict[str, float] = dict(REFERENCE_HEIGHTS_M)
        for name, h in (custom or {}).items():
            self.add(name, h)

    def add(self, class_label: str, height_m: float) -> bool:
        """Register a height. Non-positive heights are ignored."""
        h = float(height_m)
        if h <= 0:
            return False
        self._heights[_key(class_label)] = h
        return True

    def get(self, class_label: str) -> Optional[float]:
        return self._heights.get(_key(class_label))

    def __contains__(self, class_label: object) -> bool:
        return isinstance(class_label, str) and _key(class_label) in self._heights

    def classes(self) -> List[str]:
        return list(self._heights.keys())

    def as_dict(self) -> Dict[str, float]:
        return dict(self._heights)
