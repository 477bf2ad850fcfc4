from __future__ import annotations

from typing import Dict

from geotrack.domain.types import ColorBGR

GREY: ColorBGR = (158, 158, 158)

CLASS_COLORS: Dict[str, ColorBGR] = {
    "banana": (59, 235, 255),
    "apple": (54, 67, 244),
    "orange": (0, 152, 255),
}


def color_for_class(class_label: str) -> ColorBGR:
    """Fixed BGR color per class; unknown classes are grey."""
    return CLASS_COLORS.get(class_label.strip().lower(), GREY)
