from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from geotrack.core.io import dump_json
from geotrack.core.pipeline.base import StageContext
from geotrack.core.schema import GeotrackConfig


@dataclass
class FinalizeRun:
    """Stage that writes run metadata."""
    name: str = "finalize_run"

    def run(self, ctx: StageContext) -> None:
        cfg: GeotrackConfig = ctx.cfg
        run_root: Path = ctx.state["run_root"]
        log = ctx.log

        run_json: Dict[str, Any] = {
            "run_id": ctx.state["run_id"],
            "session_id": ctx.state["session_id"],
            "status": "completed",
            "detections": str(ctx.state["detections_path"]),
            "frames": ctx.state.get("frames", 0),
            "max_tracks": ctx.state.get("max_tracks", 0),
            "persisted_points": ctx.state.get("persisted_points", 0),
            "records": ctx.state.get("record_keys", []),
            "tracking": cfg.tracking.model_dump(),
            "throttle": cfg.throttle.model_dump(),
            "camera": cfg.camera.model_dump(),
            "store": cfg.store.model_dump(),
        }
        dump_json(run_root / "run.json", run_json)

        log("run_done", {"run_id": ctx.state["run_id"], "run_root": str(run_root)})
