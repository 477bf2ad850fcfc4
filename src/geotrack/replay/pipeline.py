from __future__ import annotations

from geotrack.core.pipeline.base import PipelineRunner, StageContext
from geotrack.core.pipeline.log import noop_log
from geotrack.core.schema import GeotrackConfig
from geotrack.replay.stages.build_components import BuildComponents
from geotrack.replay.stages.finalize_run import FinalizeRun
from geotrack.replay.stages.init_run import InitRun
from geotrack.replay.stages.replay_frames import ReplayFrames


class ReplayPipeline:

    def __init__(self, *, echo: bool = True):
        self.echo = bool(echo)

    def run(self, cfg: GeotrackConfig) -> StageContext:
        ctx = StageContext(cfg=cfg, state={}, assets={"log": noop_log})

        stages = [
            InitRun(echo=self.echo),
            BuildComponents(),
            ReplayFrames(),
            FinalizeRun(),
        ]
        return PipelineRunner(stages=stages).run(ctx)
