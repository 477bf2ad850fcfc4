from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Tuple

from geotrack.core.pipeline.log import LogFn, noop_log


class Stage(Protocol):
    """A named step of a replay run."""
    name: str
    def run(self, ctx: "StageContext") -> None: ...


@dataclass
class StageContext:
    """Config, per-run state and shared components handed from stage to stage.

    ``assets["log"]`` may be replaced by a stage (the run logger only exists
    once the run directory does), so always go through :attr:`log`.
    """
    cfg: Any
    state: Dict[str, Any] = field(default_factory=dict)
    assets: Dict[str, Any] = field(default_factory=dict)

    @property
    def log(self) -> LogFn:
        return self.assets.get("log") or noop_log


@dataclass
class PipelineRunner:
    """Runs stages in order and records per-stage timing."""
    stages: List[Stage]
    fail_fast: bool = True

    def run(self, ctx: StageContext) -> StageContext:
        timings: List[Tuple[str, float]] = ctx.state.setdefault("stage_timings", [])
        for st in self.stages:
            ctx.log("stage_start", {"stage": st.name})
            t0 = time.perf_counter()
            try:
                st.run(ctx)
            except Exception as e:
                ctx.log("stage_error", {"stage": st.name, "error": repr(e)})
                if self.fail_fast:
                    raise
                ctx.state.setdefault("errors", []).append((st.name, repr(e)))
                continue
            elapsed = round(time.perf_counter() - t0, 4)
            timings.append((st.name, elapsed))
            ctx.log("stage_done", {"stage": st.name, "elapsed_s": elapsed})
        return ctx
