import pytest

from geotrack.core.schema import TrackingCfg
from geotrack.domain.types import Box, Detection, Position3D
from geotrack.localization.localizer import Localizer
from geotrack.tracking.colors import color_for_class
from geotrack.tracking.tracker import Tracker

W, H = 1000.0, 1000.0


def _det(cls="apple", box=(400, 400, 500, 500), conf=0.9):
    return Detection(class_label=cls, confidence=conf, box=Box(*box))


def _tracker(**cfg):
    return Tracker(Localizer(), TrackingCfg(**cfg))


def test_new_track_gets_id_color_and_position():
    t = _tracker()
    tracks = t.update([_det()], W, H)
    assert len(tracks) == 1
    tr = tracks[0]
    assert tr.track_id == 1
    assert tr.class_label == "apple"
    assert tr.color == color_for_class("apple")
    assert tr.frames_since_update == 0
    assert tr.position is not None
    assert tr.position.y > 0


def test_match_keeps_id_and_updates_box():
    t = _tracker()
    t.update([_det()], W, H)
    tracks = t.update([_det(box=(410, 405, 510, 505), conf=0.7)], W, H)
    assert [tr.track_id for tr in tracks] == [1]
    assert tracks[0].box == Box(410, 405, 510, 505)
    assert tracks[0].confidence == 0.7
    assert tracks[0].frames_since_update == 0


def test_low_overlap_or_other_class_creates_new_track():
    t = _tracker()
    t.update([_det()], W, H)
    # IoU of 100x100 boxes shifted by 60px = 40*100 / (20000 - 4000) = 0.25
    tracks = t.update([_det(box=(460, 400, 560, 500))], W, H)
    assert [tr.track_id for tr in tracks] == [1, 2]

    tracks = t.update([_det(cls="orange", box=(460, 400, 560, 500))], W, H)
    assert [tr.track_id for tr in tracks] == [1, 2, 3]


def test_track_matched_at_most_once_per_frame():
    t = _tracker()
    t.update([_det()], W, H)
    tracks = t.update([_det(conf=0.5), _det(conf=0.6)], W, H)
    assert [tr.track_id for tr in tracks] == [1, 2]
    # first detection in input order wins, not the most confident one
    assert t.get(1).confidence == 0.5


def test_greedy_match_is_first_come():
    t = _tracker()
    t.update([_det(box=(0, 0, 100, 100)), _det(box=(50, 0, 150, 100))], W, H)
    # d1 overlaps track 2 best; d2 would overlap track 2 perfectly but it is taken
    d1 = _det(box=(40, 0, 140, 100))
    d2 = _det(box=(50, 0, 150, 100))
    t.update([d1, d2], W, H)
    assert t.get(2).box == d1.box
    # d2 vs track 1 (0..100): 50 / 150 > 0.3, so it lands there
    assert t.get(1).box == d2.box


def test_eviction_after_ten_missed_frames_and_no_id_reuse():
    t = _tracker()
    t.update([_det()], W, H)
    for _ in range(10):
        tracks = t.update([], W, H)
    assert [tr.track_id for tr in tracks] == [1]
    assert tracks[0].frames_since_update == 10

    assert t.update([], W, H) == []

    tracks = t.update([_det()], W, H)
    assert [tr.track_id for tr in tracks] == [2]


def test_history_is_capped_at_five():
    t = _tracker()
    t.update([_det()], W, H)
    for i in range(7):
        t.update([_det(box=(400 + i, 400, 500 + i, 500))], W, H)
    tr = t.get(1)
    assert len(tr.history) == 5
    assert tr.history[-1] == Box(406, 400, 506, 500)
    assert tr.history[0] == Box(402, 400, 502, 500)


def test_unallowed_class_is_not_created():
    t = _tracker(allowed_classes=["apple"])
    assert t.update([_det(cls="banana")], W, H) == []


def test_reset_keeps_ids_monotonic():
    t = _tracker()
    t.update([_det()], W, H)
    t.reset()
    assert t.tracks == []
    assert t.update([_det()], W, H)[0].track_id == 2


class _FlakyLocalizer:
    """Valid estimate on the first call, no estimate afterwards."""

    def __init__(self):
        self.heights = Localizer().heights
        self.calls = 0

    def estimate(self, class_label, box, frame_w, frame_h):
        self.calls += 1
        if self.calls == 1:
            return Position3D(1.0, 0.0, 0.0, 0.0, 1.0, 0.0)
        return None


def test_invalid_estimate_keeps_previous_position():
    loc = _FlakyLocalizer()
    t = Tracker(loc, TrackingCfg())
    t.update([_det()], W, H)
    first = t.get(1).position
    assert first is not None

    t.update([_det(box=(405, 400, 505, 500))], W, H)
    assert loc.calls == 2
    assert t.get(1).position == first
    assert t.get(1).box == Box(405, 400, 505, 500)


def test_track_identity_cannot_be_reassigned():
    t = _tracker()
    tr = t.update([_det()], W, H)[0]
    with pytest.raises(AttributeError):
        tr.track_id = 99
    with pytest.raises(AttributeError):
        tr.class_label = "banana"
    tr.confidence = 0.5
    assert (tr.track_id, tr.class_label, tr.confidence) == (1, "apple", 0.5)
