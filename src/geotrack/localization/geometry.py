from __future__ import annotations

"""Pinhole-camera geometry: bbox height -> distance -> angles -> camera-relative 3D.

Every function is pure. Failures are reported as ``None`` (or a zero fallback
where a number is always expected) instead of raising, so one bad box never
stops the rest of a frame.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from geotrack.localization.camera import DEFAULT_INTRINSICS

MIN_DISTANCE_M = 0.1
MAX_DISTANCE_M = 2000.0

MIN_VALID_RANGE_M = 0.05
MAX_VALID_RANGE_M = 1000.0


@dataclass(frozen=True)
class Angles:
    """Angular offset from the optical axis in degrees."""
    horizontal: float
    vertical: float
    total: float


ZERO_ANGLES = Angles(0.0, 0.0, 0.0)


def focal_length_px(
    image_width_px: float,
    focal_length_mm: float = DEFAULT_INTRINSICS.focal_length_mm,
    sensor_width_mm: float = DEFAULT_INTRINSICS.sensor_width_mm,
) -> float:
    return focal_length_mm * (image_width_px / sensor_width_mm)


def estimate_distance_from_bbox(
    real_height_m: Optional[float],
    bbox_height_px: float,
    image_width_px: float,
    *,
    focal_length_mm: float = DEFAULT_INTRINSICS.focal_length_mm,
    sensor_width_mm: float = DEFAULT_INTRINSICS.sensor_width_mm,
) -> Optional[float]:
    """Distance in meters from the pinhole relation ``H * f_px / h_px``.

    Clamped to [0.1, 2000] m. None when the class height is unknown or the
    inputs cannot produce a finite estimate.
    """
    if real_height_m is None or bbox_height_px <= 0 or image_width_px <= 0:
        return None
    if sensor_width_mm <= 0 or focal_length_mm <= 0:
        return None

    dist = (real_height_m * focal_length_px(image_width_px, focal_length_mm, sensor_width_mm)) / bbox_height_px
    if not math.isfinite(dist):
        return None
    return max(MIN_DISTANCE_M, min(MAX_DISTANCE_M, dist))


def angle_from_center(
    center_x: float,
    image_width_px: float,
    *,
    hfov_deg: float = DEFAULT_INTRINSICS.hfov_deg,
) -> float:
    """Linear horizontal angle in [-fov/2, +fov/2]; coarser than calculate_angles."""
    if image_width_px <= 0:
        return 0.0
    half = image_width_px / 2.0
    return (center_x - half) / half * (hfov_deg / 2.0)


def calculate_angles(
    pixel_x: float,
    pixel_y: float,
    *,
    focal_length_mm: float = DEFAULT_INTRINSICS.focal_length_mm,
    sensor_width_mm: float = DEFAULT_INTRINSICS.sensor_width_mm,
    sensor_height_mm: float = DEFAULT_INTRINSICS.sensor_height_mm,
    image_width_px: float = DEFAULT_INTRINSICS.image_width_px,
    image_height_px: float = DEFAULT_INTRINSICS.image_height_px,
) -> Angles:
    """Horizontal, vertical and total angle of a pixel from the optical axis.

    Image y grows downward, so a positive vertical angle points below the axis.
    """
    if (
        image_width_px <= 0
        or image_height_px <= 0
        or sensor_width_mm <= 0
        or sensor_height_mm <= 0
        or focal_length_mm <= 0
    ):
        return ZERO_ANGLES

    px_per_mm_x = image_width_px / sensor_width_mm
    px_per_mm_y = image_height_px / sensor_height_mm

    dx_mm = (pixel_x - image_width_px / 2.0) / px_per_mm_x
    dy_mm = (pixel_y - image_height_px / 2.0) / px_per_mm_y

    horizontal = math.degrees(math.atan(dx_mm / focal_length_mm))
    vertical = math.degrees(math.atan(dy_mm / focal_length_mm))
    total = math.degrees(math.atan(math.hypot(dx_mm, dy_mm) / focal_length_mm))

    if not (math.isfinite(horizontal) and math.isfinite(vertical) and math.isfinite(total)):
        return ZERO_ANGLES
    return Angles(horizontal, vertical, total)


def coordinates_2d(distance_m: float, angle_deg: float) -> Tuple[float, float]:
    """(x lateral, y forward) on the ground plane."""
    if distance_m <= 0:
        return (0.0, 0.0)
    theta = math.radians(angle_deg)
    return (distance_m * math.sin(theta), distance_m * math.cos(theta))


def coordinates_3d(distance_m: float, horizontal_deg: float, vertical_deg: float) -> Tuple[float, float, float]:
    """Spherical to Cartesian; returns (x lateral, y forward, z up)."""
    if distance_m <= 0:
        return (0.0, 0.0, 0.0)

    h = math.radians(horizontal_deg)
    v = math.radians(vertical_deg)

    y = distance_m * math.cos(h) * math.cos(v)
    x = distance_m * math.sin(h) * math.cos(v)
    # positive vertical angle looks down in the image
    z = -distance_m * math.sin(v)
    return (x, y, z)


def cartesian_to_polar(x: float, y: float, z: float) -> Tuple[float, float, float]:
    """(distance, azimuth_deg, elevation_deg) for a camera-relative point."""
    distance = math.sqrt(x * x + y * y + z * z)
    if distance == 0 or not math.isfinite(distance):
        return (0.0, 0.0, 0.0)
    azimuth = math.degrees(math.atan2(x, y))
    elevation = math.degrees(math.asin(max(-1.0, min(1.0, z / distance))))
    return (distance, azimuth, elevation)


def validate_coordinates(x: float, y: float, z: float, *, max_distance: float = MAX_VALID_RANGE_M) -> bool:
    """Accept finite points in front of the camera within a plausible range."""
    if not (math.isfinite(x) and math.isfinite(y) and math.isfinite(z)):
        return False
    distance = math.sqrt(x * x + y * y + z * z)
    if not math.isfinite(distance):
        return False
    if distance < MIN_VALID_RANGE_M or distance > max_distance:
        return False
    return y >= 0


def validate_bbox(
    bbox_width_px: float,
    bbox_height_px: float,
    *,
    min_size: float = 10.0,
    max_aspect: float = 5.0,
    min_aspect: float = 0.2,
) -> bool:
    """Whether a box is large and square enough for a usable distance estimate."""
    if bbox_width_px < min_size or bbox_height_px < min_size:
        return False
    aspect = bbox_width_px / bbox_height_px
    return min_aspect <= aspect <= max_aspect


def estimate_accuracy(distance_m: float, bbox_height_px: float) -> float:
    """Rough confidence in percent: drops with distance and with small boxes."""
    if distance_m <= 0 or bbox_height_px <= 0:
        return 0.0
    accuracy = 95.0 * math.exp(-distance_m / 10.0) * min(1.0, bbox_height_px / 100.0)
    return max(10.0, min(95.0, accuracy))


def velocity_3d(
    prev: Tuple[float, float, float],
    curr: Tuple[float, float, float],
    dt_s: float,
) -> Tuple[float, float, float]:
    """Per-axis velocity in m/s between two positions."""
    if dt_s <= 0:
        return (0.0, 0.0, 0.0)
    return tuple((c - p) / dt_s for p, c in zip(prev, curr))  # type: ignore[return-value]


def format_coordinates(x: float, y: float, z: float, precision: int = 2) -> str:
    return f"({x:.{precision}f}, {y:.{precision}f}, {z:.{precision}f})"


def format_distance(distance_m: float) -> str:
    if distance_m < 1.0:
        return f"{distance_m * 100:.0f}cm"
    if distance_m < 1000.0:
        return f"{distance_m:.2f}m"
    return f"{distance_m / 1000.0:.2f}km"
