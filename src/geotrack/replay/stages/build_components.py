from __future__ import annotations

from dataclasses import dataclass

from geotrack.core.pipeline.base import StageContext
from geotrack.core.schema import GeotrackConfig
from geotrack.localization.camera import CameraIntrinsics, HeightTable
from geotrack.localization.localizer import Localizer
from geotrack.persistence.factory import make_store, make_uploader
from geotrack.persistence.repository import PathRepository
from geotrack.persistence.throttle import Throttler
from geotrack.pipeline.handler import ObjectHandler
from geotrack.pipeline.location import StaticLocationProvider
from geotrack.pipeline.session import TrackingSession
from geotrack.replay.clock import ReplayClock
from geotrack.tracking.tracker import Tracker


@dataclass
class BuildComponents:
    """Stage that constructs localizer, tracker, throttler, store, repository and session."""

    name: str = "build_components"

    def run(self, ctx: StageContext) -> None:
        cfg: GeotrackConfig = ctx.cfg
        log = ctx.log

        heights = HeightTable(cfg.heights)
        localizer = Localizer(intrinsics=CameraIntrinsics.from_cfg(cfg.camera), heights=heights)
        tracker = Tracker(localizer, cfg.tracking, log=log)

        clock = ReplayClock()
        throttler = Throttler(cfg.throttle.interval_s, clock=clock)

        store = make_store(cfg.store)
        uploader = make_uploader(cfg.uploads)
        known = heights.classes()
        repository = PathRepository(store, uploader=uploader, log=log, known_classes=known)

        location = StaticLocationProvider()
        handler = ObjectHandler(
            repository,
            location,
            geo=cfg.geo,
            session_id=ctx.state["session_id"],
            jpeg_quality=cfg.uploads.jpeg_quality,
            log=log,
            known_classes=known,
        )

        log(
            "components",
            {
                "allowed_classes": sorted(tracker.allowed_classes),
                "unlocalizable": sorted(c for c in tracker.allowed_classes if c not in heights),
                "store": cfg.store.type,
                "uploads": cfg.uploads.enabled,
            },
        )

        ctx.assets.update(
            {
                "clock": clock,
                "location": location,
                "repository": repository,
                "session": TrackingSession(tracker, handler, throttler, log=log),
            }
        )
