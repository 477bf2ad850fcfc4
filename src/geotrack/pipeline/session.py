from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from geotrack.core.pipeline.log import LogFn, noop_log
from geotrack.domain.types import Track
from geotrack.persistence.record import GeoPointRecord
from geotrack.persistence.throttle import Throttler
from geotrack.pipeline.handler import ObjectHandler
from geotrack.tracking.normalizer import RawInput, normalize_detections
from geotrack.tracking.tracker import Tracker


@dataclass
class FrameResult:
    """What one frame produced: tracks for the overlay, records that were written."""
    tracks: List[Track]
    persisted: List[GeoPointRecord] = field(default_factory=list)
    throttled: bool = False


class TrackingSession:
    """Normalize -> track -> (throttled) persist, one frame at a time."""

    def __init__(
        self,
        tracker: Tracker,
        handler: ObjectHandler,
        throttler: Throttler,
        log: Optional[LogFn] = None,
    ):
        self.tracker = tracker
        self.handler = handler
        self.throttler = throttler
        self._log = log or noop_log
        self.frames = 0

    def process_frame(
        self,
        raw_detections: Iterable[RawInput],
        frame_w: float,
        frame_h: float,
        *,
        frame: Optional[np.ndarray] = None,
        screen_size: Optional[Tuple[float, float]] = None,
        detected_text: Optional[Mapping[int, str]] = None,
    ) -> FrameResult:
        self.frames += 1
        detections = normalize_detections(
            raw_detections,
            frame_w,
            frame_h,
            self.tracker.allowed_classes,
            self.tracker.localizer.heights,
            log=self._log,
        )
        tracks = self.tracker.update(detections, frame_w, frame_h)

        persisted: List[GeoPointRecord] = []

        def _persist() -> Any:
            persisted.extend(
                self.handler.handle_tracks(
                    tracks,
                    frame=frame,
                    screen_size=screen_size,
                    detected_text=detected_text,
                )
            )

        ran = self.throttler.run(_persist)
        return FrameResult(tracks=tracks, persisted=persisted, throttled=not ran)
