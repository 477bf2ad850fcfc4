from __future__ import annotations

"""Pydantic schema definitions for the tracking, localization and persistence config."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CameraCfg(BaseModel):
    """Pinhole camera intrinsics used by the localizer."""

    hfov_deg: float = 42.08
    focal_length_mm: float = 4.0
    sensor_width_mm: float = 5.5385
    sensor_height_mm: float = 3.077
    image_width_px: float = 2296.0
    image_height_px: float = 4080.0


class TrackingCfg(BaseModel):
    """Greedy IoU tracker settings."""

    iou_threshold: float = 0.3
    max_frames_without_update: int = 10
    history_size: int = 5
    allowed_classes: List[str] = Field(default_factory=lambda: ["apple", "orange", "banana"])

    @field_validator("allowed_classes", mode="before")
    @classmethod
    def _lower_classes(cls, v):
        if v is None:
            return []
        return [str(c).strip().lower() for c in v]


class ThrottleCfg(BaseModel):
    """Minimum interval between persistence batches."""

    interval_ms: int = 500

    @property
    def interval_s(self) -> float:
        return self.interval_ms / 1000.0


class StoreCfg(BaseModel):
    """Durable document store for GeoPoint records."""

    type: Literal["memory", "json_dir"] = "json_dir"
    path: str = "runs/store/points"
    max_attempts: int = 5
    backoff_s: float = 0.01


class UploadsCfg(BaseModel):
    """Where cropped images are uploaded."""

    enabled: bool = False
    path: str = "runs/store/images"
    jpeg_quality: int = 85


class GeoCfg(BaseModel):
    """Projection of camera-relative offsets onto geographic coordinates."""

    offset_scale: float = 1.0
    default_heading_deg: float = 0.0


class ExportCfg(BaseModel):
    out_dir: str = "runs/replay"


class GeotrackConfig(BaseModel):
    """Top-level configuration loaded from YAML.

    Legacy flat keys ``iou_threshold`` and ``interval_ms`` are folded into
    ``tracking`` and ``throttle``.
    """

    model_config = ConfigDict(extra="ignore")

    session_id: Optional[str] = None
    detections_path: Optional[str] = None

    camera: CameraCfg = Field(default_factory=CameraCfg)
    tracking: TrackingCfg = Field(default_factory=TrackingCfg)
    throttle: ThrottleCfg = Field(default_factory=ThrottleCfg)
    store: StoreCfg = Field(default_factory=StoreCfg)
    uploads: UploadsCfg = Field(default_factory=UploadsCfg)
    geo: GeoCfg = Field(default_factory=GeoCfg)
    export: ExportCfg = Field(default_factory=ExportCfg)

    # Extra or overriding reference heights in meters, keyed by class label.
    heights: Dict[str, float] = Field(default_factory=dict)

    @field_validator("heights", mode="before")
    @classmethod
    def _coerce_heights(cls, v):
        # YAML sometimes contains heights: null
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k).strip().lower(): float(val) for k, val in v.items()}
        return v

    @field_validator("heights")
    @classmethod
    def _positive_heights(cls, v: Dict[str, float]) -> Dict[str, float]:
        bad = [k for k, h in v.items() if h <= 0]
        if bad:
            raise ValueError(f"Reference heights must be positive: {bad}")
        return v

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy_shape(cls, data: Any):
        if not isinstance(data, dict):
            return data

        if "tracking" not in data and "iou_threshold" in data:
            data["tracking"] = {"iou_threshold": data.pop("iou_threshold")}

        if "throttle" not in data and "interval_ms" in data:
            data["throttle"] = {"interval_ms": data.pop("interval_ms")}

        return data
