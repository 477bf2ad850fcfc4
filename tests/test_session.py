from datetime import datetime, timezone

import numpy as np

from geotrack.core.schema import GeoCfg, TrackingCfg
from geotrack.domain.types import GeoPosition
from geotrack.localization.localizer import Localizer
from geotrack.persistence.record import LatLng
from geotrack.persistence.repository import PathRepository
from geotrack.persistence.store import InMemoryDocumentStore
from geotrack.persistence.throttle import Throttler
from geotrack.persistence.uploads import LocalDirImageUploader
from geotrack.pipeline.handler import ObjectHandler
from geotrack.pipeline.location import StaticLocationProvider
from geotrack.pipeline.session import TrackingSession
from geotrack.tracking.tracker import Tracker

T0 = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)
ORIGIN = GeoPosition(lat=47.42, lon=9.37, altitude=78.0, heading=0.0)


def _raw(cls="apple", x=0.4):
    return {"classLabel": cls, "confidence": 0.9, "box": {"x": x, "y": 0.45, "w": 0.1, "h": 0.1}}


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _session(store=None, location=None, uploader=None, events=None):
    log = (lambda e, p: events.append((e, p))) if events is not None else None
    store = store or InMemoryDocumentStore()
    repo = PathRepository(store, uploader=uploader, log=log)
    handler = ObjectHandler(
        repo,
        location or StaticLocationProvider(ORIGIN),
        geo=GeoCfg(),
        session_id="s",
        log=log,
        now=lambda: T0,
    )
    clock = FakeClock()
    session = TrackingSession(Tracker(Localizer(), TrackingCfg()), handler, Throttler(0.5, clock=clock), log=log)
    return session, repo, clock


def test_frames_are_tracked_and_persisted_through_throttle():
    session, repo, clock = _session()

    r1 = session.process_frame([_raw()], 1000, 1000)
    assert [tr.track_id for tr in r1.tracks] == [1]
    assert [rec.id for rec in r1.persisted] == ["s 1 apple"]
    assert not r1.throttled

    clock.now = 0.1
    r2 = session.process_frame([_raw(x=0.405)], 1000, 1000)
    assert r2.throttled
    assert r2.persisted == []

    clock.now = 0.7
    r3 = session.process_frame([_raw(x=0.41)], 1000, 1000)
    assert len(r3.persisted) == 1

    rec = repo.get("s 1 apple")
    assert len(rec.path) == 2
    assert rec.icon == "apple"
    assert rec.altitude == 78
    assert rec.tracked == T0
    # object is in front of a north-facing camera
    assert rec.path[0].lat > ORIGIN.lat


def test_stale_tracks_are_not_persisted_again():
    session, repo, clock = _session()
    session.process_frame([_raw()], 1000, 1000)
    clock.now = 1.0
    r = session.process_frame([], 1000, 1000)
    assert [tr.frames_since_update for tr in r.tracks] == [1]
    assert r.persisted == []
    assert len(repo.get("s 1 apple").path) == 1


def test_location_unavailable_skips_persistence_only():
    events = []
    session, repo, _ = _session(location=StaticLocationProvider(None), events=events)
    r = session.process_frame([_raw()], 1000, 1000)
    assert len(r.tracks) == 1
    assert r.persisted == []
    assert repo.keys() == []
    assert any(e == "location_unavailable" for e, _ in events)


class _PickyStore(InMemoryDocumentStore):
    def commit(self, key, data, expected_version):
        if "orange" in key:
            raise RuntimeError("disk full")
        return super().commit(key, data, expected_version)


def test_one_failing_object_does_not_stop_the_others():
    events = []
    session, repo, _ = _session(store=_PickyStore(), events=events)
    r = session.process_frame([_raw("orange", x=0.1), _raw("apple", x=0.6)], 1000, 1000)
    assert [rec.id for rec in r.persisted] == ["s 2 apple"]
    assert repo.keys() == ["s 2 apple"]
    assert any(e == "persist_failed" and p["track_id"] == 1 for e, p in events)


def test_frame_crop_is_uploaded(tmp_path):
    session, repo, _ = _session(uploader=LocalDirImageUploader(tmp_path))
    frame = np.full((1000, 1000, 3), 127, dtype=np.uint8)
    r = session.process_frame([_raw()], 1000, 1000, frame=frame)
    url = r.persisted[0].image_url
    assert url is not None and url.startswith("file://")
    assert repo.get("s 1 apple").image_url == url


def test_bad_crop_loses_only_the_image(tmp_path):
    events = []
    session, repo, _ = _session(uploader=LocalDirImageUploader(tmp_path), events=events)
    tiny = np.zeros((4, 4, 3), dtype=np.uint8)
    # boxes are far outside a 4x4 frame
    r = session.process_frame([_raw()], 1000, 1000, frame=tiny)
    assert r.persisted[0].image_url is None
    assert repo.get("s 1 apple").path == r.persisted[0].path
    assert any(e == "crop_failed" for e, _ in events)


def test_detected_text_is_attached():
    session, repo, _ = _session()
    session.process_frame([_raw()], 1000, 1000, detected_text={1: " PLU 4011 "})
    assert repo.get("s 1 apple").detected_text == "PLU 4011"
    assert isinstance(repo.get("s 1 apple").path[0], LatLng)


def test_malformed_item_does_not_drop_the_rest_of_the_frame():
    events = []
    session, repo, clock = _session(events=events)
    session.process_frame([_raw()], 1000, 1000)

    clock.now = 1.0
    bad = {"classLabel": "banana", "confidence": 0.8, "box": {"x": 0.1, "y": 0.1, "w": 0.1}}
    result = session.process_frame([bad, _raw(x=0.405)], 1000, 1000)

    assert [(tr.track_id, tr.frames_since_update) for tr in result.tracks] == [(1, 0)]
    assert len(repo.get("s 1 apple").path) == 2
    dropped = [p for e, p in events if e == "detection_dropped"]
    assert len(dropped) == 1
    assert dropped[0]["index"] == 0
    assert "KeyError" in dropped[0]["error"]
