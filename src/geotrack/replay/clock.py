from __future__ import annotations


class ReplayClock:
    """Clock driven by recorded frame timestamps, so throttling replays deterministically."""

    def __init__(self, start: float = 0.0):
        self.now = float(start)

    def set(self, t: float) -> None:
        self.now = float(t)

    def __call__(self) -> float:
        return self.now
