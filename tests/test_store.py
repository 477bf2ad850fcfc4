import fcntl
import os
from contextlib import contextmanager

import pytest

from geotrack.persistence.store import (
    ConflictError,
    InMemoryDocumentStore,
    JsonDirDocumentStore,
    TransactionAbortedError,
)


@pytest.fixture(params=["memory", "json_dir"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryDocumentStore(max_attempts=3, backoff_s=0.0)
    return JsonDirDocumentStore(tmp_path / "points", max_attempts=3, backoff_s=0.0)


def test_commit_versions_and_conflict(store):
    snap = store.get("a b/c")
    assert not snap.exists
    assert snap.version == 0

    assert store.commit("a b/c", {"n": 1}, 0) == 1
    snap = store.get("a b/c")
    assert snap.data == {"n": 1}
    assert snap.version == 1

    with pytest.raises(ConflictError):
        store.commit("a b/c", {"n": 2}, 0)
    assert store.get("a b/c").data == {"n": 1}
    assert store.keys() == ["a b/c"]


def test_snapshots_are_copies(store):
    store.commit("k", {"lat": [1.0]}, 0)
    snap = store.get("k")
    snap.data["lat"].append(2.0)
    assert store.get("k").data == {"lat": [1.0]}


def test_transaction_gives_up_after_max_attempts(store):
    def always_stale(snap):
        # another writer commits between our read and our write
        store.commit("k", {"other": True}, store.get("k").version)
        return {"mine": True}

    with pytest.raises(TransactionAbortedError):
        store.run_transaction("k", always_stale)
    assert store.get("k").data == {"other": True}


@contextmanager
def _hold_lock(store, key):
    fd = os.open(store._lock_path(key), os.O_CREAT | os.O_RDWR)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        yield fd
    finally:
        os.close(fd)


def test_json_dir_lock_counts_as_conflict(tmp_path):
    store = JsonDirDocumentStore(tmp_path, max_attempts=2, backoff_s=0.0)
    with _hold_lock(store, "k"):
        with pytest.raises(ConflictError):
            store.commit("k", {"n": 1}, 0)
        with pytest.raises(TransactionAbortedError):
            store.run_transaction("k", lambda snap: {"n": 1})
    assert store.get("k").data is None


def test_json_dir_contender_never_removes_held_lock(tmp_path):
    store = JsonDirDocumentStore(tmp_path, max_attempts=1, backoff_s=0.0)
    lock = store._lock_path("k")
    with _hold_lock(store, "k") as fd:
        os.utime(lock, (0, 0))
        with pytest.raises(TransactionAbortedError):
            store.run_transaction("k", lambda snap: {"n": 1})
        assert os.fstat(fd).st_ino == lock.stat().st_ino
        # a third writer still cannot get in while the holder is inside commit
        with pytest.raises(ConflictError):
            store.commit("k", {"n": 2}, 0)
    assert store.commit("k", {"n": 3}, 0) == 1


def test_json_dir_leftover_lock_file_does_not_block(tmp_path):
    store = JsonDirDocumentStore(tmp_path, max_attempts=1, backoff_s=0.0)
    lock = store._lock_path("k")
    lock.write_text("")
    os.utime(lock, (0, 0))
    doc = store.run_transaction("k", lambda snap: {"n": 1})
    assert doc == {"n": 1}
    assert store.get("k").version == 1
    assert lock.exists()
