from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from geotrack.core.pipeline.log import LogFn, noop_log
from geotrack.core.schema import GeoCfg
from geotrack.domain.types import Track
from geotrack.io.crop import crop_jpeg, screen_box_to_image_box
from geotrack.localization.geo import offset_position
from geotrack.persistence.record import GeoPointRecord, LatLng
from geotrack.persistence.repository import PathRepository
from geotrack.pipeline.location import LocationProvider


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_session_id() -> str:
    return str(int(time.time() * 1000) % 10000)


class ObjectHandler:
    """Persists the current geographic position of freshly updated tracks.

    Failures are isolated per object: a failed crop loses only the image, a
    missing location fix skips the batch, and a failed merge skips that object.
    """

    def __init__(
        self,
        repository: PathRepository,
        location: LocationProvider,
        *,
        geo: Optional[GeoCfg] = None,
        session_id: Optional[str] = None,
        jpeg_quality: int = 85,
        log: Optional[LogFn] = None,
        now: Callable[[], datetime] = _utcnow,
        known_classes: Optional[Sequence[str]] = None,
    ):
        self.repository = repository
        self.location = location
        self.geo = geo or GeoCfg()
        self.session_id = session_id or default_session_id()
        self.jpeg_quality = int(jpeg_quality)
        self._log = log or noop_log
        self._now = now
        self._known_classes = list(known_classes or [])

    def record_id(self, track: Track) -> str:
        return f"{self.session_id} {track.track_id} {track.class_label}"

    def handle_tracks(
        self,
        tracks: Sequence[Track],
        *,
        frame: Optional[np.ndarray] = None,
        screen_size: Optional[Tuple[float, float]] = None,
        detected_text: Optional[Mapping[int, str]] = None,
    ) -> List[GeoPointRecord]:
        todo = [tr for tr in tracks if tr.position is not None and tr.frames_since_update == 0]
        if not todo:
            return []

        try:
            origin = self.location.current_position()
        except Exception as e:
            self._log("location_unavailable", {"tracks": [tr.track_id for tr in todo], "error": repr(e)})
            return []

        heading = origin.heading if origin.heading is not None else self.geo.default_heading_deg
        written: List[GeoPointRecord] = []

        for tr in todo:
            try:
                image = self._crop(tr, frame, screen_size)
                pos = tr.position
                geo = offset_position(origin, pos.x, pos.y, pos.z, heading_deg=heading, scale=self.geo.offset_scale)
                record = GeoPointRecord.model_validate(
                    {
                        "id": self.record_id(tr),
                        "name": tr.class_label,
                        "icon": tr.class_label,
                        "path": [LatLng(geo.lat, geo.lon)],
                        "altitude": geo.altitude,
                        "tracked": self._now(),
                        "detected_text": (detected_text or {}).get(tr.track_id),
                    },
                    context={"known_classes": self._known_classes},
                )
                written.append(
                    self.repository.upsert_and_append(
                        record,
                        image_bytes=image,
                        content_type="image/jpeg" if image is not None else None,
                        file_name=f"{int(time.time() * 1000)}_{tr.track_id}.jpg" if image is not None else None,
                    )
                )
            except Exception as e:
                self._log("persist_failed", {"track_id": tr.track_id, "error": repr(e)})

        return written

    def _crop(
        self,
        tr: Track,
        frame: Optional[np.ndarray],
        screen_size: Optional[Tuple[float, float]],
    ) -> Optional[bytes]:
        if frame is None:
            return None
        try:
            box = tr.box
            if screen_size is not None:
                h, w = frame.shape[:2]
                box = screen_box_to_image_box(box, screen_size[0], screen_size[1], w, h)
            return crop_jpeg(frame, box, quality=self.jpeg_quality)
        except Exception as e:
            self._log("crop_failed", {"track_id": tr.track_id, "error": repr(e)})
            return None
