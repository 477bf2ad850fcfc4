from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from geotrack.domain.types import Box, Position3D
from geotrack.localization.camera import DEFAULT_INTRINSICS, CameraIntrinsics, HeightTable
from geotrack.localization.geometry import (
    calculate_angles,
    coordinates_3d,
    estimate_accuracy,
    estimate_distance_from_bbox,
    format_coordinates,
    format_distance,
    validate_coordinates,
)


@dataclass(frozen=True)
class Localizer:
    """Turns a class label and a pixel box into a camera-relative Position3D.

    The box and the frame size must be in the same pixel space; the frame size
    stands in for the image size of the intrinsics.
    """

    intrinsics: CameraIntrinsics = DEFAULT_INTRINSICS
    heights: HeightTable = field(default_factory=HeightTable)

    def supports(self, class_label: str) -> bool:
        return class_label in self.heights

    def estimate(self, class_label: str, box: Box, frame_w: float, frame_h: float) -> Optional[Position3D]:
        """Return a validated estimate or None."""
        cam = self.intrinsics
        distance = estimate_distance_from_bbox(
            self.heights.get(class_label),
            box.height,
            frame_w,
            focal_length_mm=cam.focal_length_mm,
            sensor_width_mm=cam.sensor_width_mm,
        )
        if distance is None or frame_h <= 0:
            return None

        cx, cy = box.center
        angles = calculate_angles(
            cx,
            cy,
            focal_length_mm=cam.focal_length_mm,
            sensor_width_mm=cam.sensor_width_mm,
            sensor_height_mm=cam.sensor_height_mm,
            image_width_px=frame_w,
            image_height_px=frame_h,
        )
        x, y, z = coordinates_3d(distance, angles.horizontal, angles.vertical)
        if not validate_coordinates(x, y, z):
            return None

        return Position3D(
            distance=distance,
            horizontal_angle=angles.horizontal,
            vertical_angle=angles.vertical,
            x=x,
            y=y,
            z=z,
        )

    def explain(self, class_label: str, box: Box, frame_w: float, frame_h: float) -> Dict[str, Any]:
        """Step-by-step breakdown of one estimate, for debugging from the CLI."""
        real_h = self.heights.get(class_label)
        out: Dict[str, Any] = {
            "class": class_label,
            "bbox_height_px": box.height,
            "center": list(box.center),
            "image": [frame_w, frame_h],
            "assumed_height_m": real_h,
        }
        if real_h is None:
            return out

        distance = estimate_distance_from_bbox(
            real_h,
            box.height,
            frame_w,
            focal_length_mm=self.intrinsics.focal_length_mm,
            sensor_width_mm=self.intrinsics.sensor_width_mm,
        )
        out["distance_m"] = distance
        if distance is None:
            return out

        out["distance"] = format_distance(distance)
        pos = self.estimate(class_label, box, frame_w, frame_h)
        out["valid"] = pos is not None
        if pos is not None:
            out["angles_deg"] = {"horizontal": pos.horizontal_angle, "vertical": pos.vertical_angle}
            out["xyz"] = format_coordinates(pos.x, pos.y, pos.z)
        out["accuracy_pct"] = estimate_accuracy(distance, box.height)
        return out
