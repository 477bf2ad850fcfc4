from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Set

from geotrack.core.io import iter_jsonl
from geotrack.core.pipeline.base import StageContext
from geotrack.domain.types import GeoPosition
from geotrack.pipeline.location import StaticLocationProvider
from geotrack.pipeline.session import TrackingSession
from geotrack.replay.clock import ReplayClock


def _parse_location(obj: Any) -> Optional[GeoPosition]:
    if not isinstance(obj, dict) or "lat" not in obj or "lon" not in obj:
        return None
    heading = obj.get("heading")
    return GeoPosition(
        lat=float(obj["lat"]),
        lon=float(obj["lon"]),
        altitude=float(obj.get("altitude", 0.0)),
        heading=float(heading) if heading is not None else None,
    )


@dataclass
class ReplayFrames:
    """Stage that feeds recorded frames through the tracking session.

    One JSONL line per frame::

        {"frame": 0, "t": 0.0, "width": 1080, "height": 1920,
         "detections": [{"classLabel": "apple", "confidence": 0.9,
                         "box": {"x": 0.4, "y": 0.5, "w": 0.05, "h": 0.03}}],
         "location": {"lat": 47.42, "lon": 9.37, "altitude": 78, "heading": 0}}
    """

    name: str = "replay_frames"
    sample_every: int = 50

    def run(self, ctx: StageContext) -> None:
        detections_path: Path = ctx.state["detections_path"]
        log = ctx.log

        session: TrackingSession = ctx.assets["session"]
        clock: ReplayClock = ctx.assets["clock"]
        location: StaticLocationProvider = ctx.assets["location"]

        frames = 0
        persisted = 0
        keys: Set[str] = set()
        max_tracks = 0

        for idx, obj in enumerate(iter_jsonl(detections_path)):
            frame_idx = int(obj.get("frame", idx))
            clock.set(float(obj.get("t", frame_idx / 30.0)))
            location.set(_parse_location(obj.get("location")))

            result = session.process_frame(
                obj.get("detections") or [],
                float(obj["width"]),
                float(obj["height"]),
                detected_text=_text_by_track(obj.get("text")),
            )
            frames += 1
            persisted += len(result.persisted)
            keys.update(r.id for r in result.persisted)
            max_tracks = max(max_tracks, len(result.tracks))

            if self.sample_every > 0 and frame_idx % self.sample_every == 0:
                log(
                    "frame_sample",
                    {
                        "frame": frame_idx,
                        "tracks": [tr.summary() for tr in result.tracks],
                        "persisted": len(result.persisted),
                    },
                )

        ctx.state.update(
            {
                "frames": frames,
                "persisted_points": persisted,
                "record_keys": sorted(keys),
                "max_tracks": max_tracks,
            }
        )
        log("replay_done", {"frames": frames, "persisted_points": persisted, "records": len(keys)})


def _text_by_track(obj: Any) -> Optional[Dict[int, str]]:
    if not isinstance(obj, dict):
        return None
    return {int(k): str(v) for k, v in obj.items()}
