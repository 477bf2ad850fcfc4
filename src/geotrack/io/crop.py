from __future__ import annotations

"""Crop a tracked object's box out of a frame and encode it as JPEG."""

import math

import numpy as np

try:  # pragma: no cover
    import cv2  # type: ignore
except Exception:  # pragma: no cover
    cv2 = None

from geotrack.domain.types import Box


def screen_box_to_image_box(box: Box, screen_w: float, screen_h: float, image_w: int, image_h: int) -> Box:
    """Rescale a box from display coordinates to frame pixel coordinates."""
    if screen_w <= 0 or screen_h <= 0:
        raise ValueError(f"Invalid screen size: {screen_w}x{screen_h}")
    sx = image_w / float(screen_w)
    sy = image_h / float(screen_h)
    return Box(box.x1 * sx, box.y1 * sy, box.x2 * sx, box.y2 * sy)


def crop_frame(frame: np.ndarray, box: Box) -> np.ndarray:
    """Return the part of ``frame`` under ``box``, clamped to the frame bounds."""
    h, w = frame.shape[:2]
    x1 = max(0, min(w, int(math.floor(box.x1))))
    y1 = max(0, min(h, int(math.floor(box.y1))))
    x2 = max(0, min(w, int(math.ceil(box.x2))))
    y2 = max(0, min(h, int(math.ceil(box.y2))))
    if x2 <= x1 or y2 <= y1:
        raise ValueError("Crop rect is empty after clamping.")
    return frame[y1:y2, x1:x2]


def encode_jpeg(image: np.ndarray, quality: int = 90) -> bytes:
    if cv2 is None:
        raise ImportError("OpenCV (cv2) is required to encode crops")
    ok, buf = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise RuntimeError("JPEG encoding failed")
    return buf.tobytes()


def crop_jpeg(frame: np.ndarray, box: Box, quality: int = 90) -> bytes:
    return encode_jpeg(crop_frame(frame, box), quality=quality)
