from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Optional

from geotrack.core.pipeline.log import LogFn
from geotrack.core.schema import TrackingCfg
from geotrack.domain.types import Detection, Track
from geotrack.localization.localizer import Localizer
from geotrack.tracking.colors import color_for_class
from geotrack.tracking.geometry import iou
from geotrack.tracking.normalizer import is_trackable


class Tracker:
    """Greedy single-pass IoU tracker.

    Each detection, in input order, takes the same-class track with the highest
    IoU above the threshold among tracks not yet matched in this frame. This is
    best-effort matching, not an optimal assignment: an early detection can take
    a track that a later detection overlaps better.

    Not safe for concurrent frames; feed it one frame at a time.
    """

    def __init__(
        self,
        localizer: Localizer,
        cfg: Optional[TrackingCfg] = None,
        log: Optional[LogFn] = None,
    ):
        cfg = cfg or TrackingCfg()
        self.localizer = localizer
        self.iou_threshold = float(cfg.iou_threshold)
        self.max_frames_without_update = int(cfg.max_frames_without_update)
        self.history_size = int(cfg.history_size)
        self.allowed_classes = frozenset(cfg.allowed_classes)
        self._log = log
        self._tracks: Dict[int, Track] = {}
        self._next_id = 1

    @property
    def tracks(self) -> List[Track]:
        """Live tracks in creation order."""
        return list(self._tracks.values())

    def get(self, track_id: int) -> Optional[Track]:
        return self._tracks.get(track_id)

    def reset(self) -> None:
        """Drop all tracks. Ids keep counting up."""
        self._tracks.clear()

    def update(self, detections: Iterable[Detection], frame_w: float, frame_h: float) -> List[Track]:
        detections = list(detections)

        for tr in self._tracks.values():
            tr.frames_since_update += 1

        matched_tracks = set()
        unmatched: List[Detection] = []

        for det in detections:
            best: Optional[Track] = None
            best_iou = 0.0
            for tr in self._tracks.values():
                if tr.track_id in matched_tracks or tr.class_label != det.class_label:
                    continue
                score = iou(tr.box, det.box)
                if score > best_iou and score > self.iou_threshold:
                    best_iou = score
                    best = tr

            if best is None:
                unmatched.append(det)
                continue

            matched_tracks.add(best.track_id)
            self._apply_match(best, det, frame_w, frame_h)

        for det in unmatched:
            if not is_trackable(det.class_label, self.allowed_classes, self.localizer.heights):
                continue
            self._create(det, frame_w, frame_h)

        expired = [tid for tid, tr in self._tracks.items() if tr.frames_since_update > self.max_frames_without_update]
        for tid in expired:
            del self._tracks[tid]
            if self._log:
                self._log("track_evicted", {"track_id": tid})

        return self.tracks

    def _apply_match(self, tr: Track, det: Detection, frame_w: float, frame_h: float) -> None:
        tr.box = det.box
        tr.confidence = det.confidence
        tr.frames_since_update = 0
        tr.history.append(det.box)
        self._estimate(tr, frame_w, frame_h)

    def _create(self, det: Detection, frame_w: float, frame_h: float) -> Track:
        tr = Track(
            track_id=self._next_id,
            class_label=det.class_label,
            box=det.box,
            confidence=det.confidence,
            color=color_for_class(det.class_label),
            history=deque(maxlen=self.history_size),
        )
        self._next_id += 1
        self._tracks[tr.track_id] = tr
        self._estimate(tr, frame_w, frame_h)
        if self._log:
            self._log("track_created", {"track_id": tr.track_id, "class": tr.class_label})
        return tr

    def _estimate(self, tr: Track, frame_w: float, frame_h: float) -> None:
        pos = self.localizer.estimate(tr.class_label, tr.box, frame_w, frame_h)
        # an invalid estimate leaves the previous one in place
        if pos is not None:
            tr.position = pos
