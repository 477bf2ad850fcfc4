from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from geotrack.core.io import ensure_dir
from geotrack.core.pipeline.base import StageContext
from geotrack.core.pipeline.log import JsonlLogger
from geotrack.core.schema import GeotrackConfig
from geotrack.pipeline.handler import default_session_id


def _ts() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


@dataclass
class InitRun:
    """Prepare run dir + logger and resolve the detections file."""

    name: str = "init_run"
    echo: bool = True

    def run(self, ctx: StageContext) -> None:
        cfg: GeotrackConfig = ctx.cfg
        if not cfg.detections_path:
            raise ValueError("detections_path is not set (config or --detections)")

        detections_path = Path(cfg.detections_path)
        if not detections_path.exists():
            raise FileNotFoundError(f"Detections file not found: {detections_path}")

        session_id = cfg.session_id or default_session_id()
        run_id = _ts()
        run_root = ensure_dir(Path(cfg.export.out_dir) / session_id / run_id)

        log = JsonlLogger(run_root / "replay.log.jsonl", echo=self.echo, context={"session": session_id})
        ctx.assets["log"] = log

        ctx.state.update(
            {
                "session_id": session_id,
                "run_id": run_id,
                "run_root": run_root,
                "detections_path": detections_path,
            }
        )

        log("run_start", {"run_id": run_id, "session_id": session_id, "detections": str(detections_path)})
