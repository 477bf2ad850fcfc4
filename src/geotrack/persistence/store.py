from __future__ import annotations

"""Document stores with per-key optimistic concurrency.

A transaction reads a versioned snapshot, computes the new document and
commits it only if the version is unchanged. Losers are retried here, with
exponential backoff, so callers never see a conflict unless every attempt lost.
"""

import copy
import fcntl
import os
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional
from urllib.parse import quote, unquote

from geotrack.core.io import dump_json, ensure_dir, read_json

Document = Dict[str, Any]


class ConflictError(Exception):
    """The stored version changed between read and commit."""


class TransactionAbortedError(Exception):
    """Every transaction attempt lost to a concurrent writer."""


@dataclass(frozen=True)
class Snapshot:
    key: str
    data: Optional[Document]
    # 0 means the document does not exist.
    version: int = 0

    @property
    def exists(self) -> bool:
        return self.data is not None


class DocumentStore(ABC):
    def __init__(self, *, max_attempts: int = 5, backoff_s: float = 0.01, max_backoff_s: float = 1.0):
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_s = float(backoff_s)
        self.max_backoff_s = float(max_backoff_s)

    @abstractmethod
    def get(self, key: str) -> Snapshot:
        ...

    @abstractmethod
    def commit(self, key: str, data: Document, expected_version: int) -> int:
        """Write ``data`` if the stored version equals ``expected_version``.

        Returns the new version; raises ConflictError otherwise.
        """

    @abstractmethod
    def keys(self) -> List[str]:
        ...

    def run_transaction(self, key: str, fn: Callable[[Snapshot], Document]) -> Document:
        """Read-modify-write ``key`` with retry on conflict.

        ``fn`` may run several times and must not do I/O of its own.
        """
        for attempt in range(self.max_attempts):
            snap = self.get(key)
            data = fn(snap)
            try:
                self.commit(key, data, snap.version)
                return data
            except ConflictError:
                if attempt + 1 < self.max_attempts:
                    time.sleep(min(self.max_backoff_s, self.backoff_s * (2 ** attempt)))
        raise TransactionAbortedError(f"Transaction on {key!r} aborted after {self.max_attempts} attempts")


class InMemoryDocumentStore(DocumentStore):
    """Process-local store. Each key has its own lock held only for the compare-and-set."""

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        self._docs: Dict[str, Snapshot] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def get(self, key: str) -> Snapshot:
        snap = self._docs.get(key)
        if snap is None:
            return Snapshot(key=key, data=None, version=0)
        return Snapshot(key=key, data=copy.deepcopy(snap.data), version=snap.version)

    def commit(self, key: str, data: Document, expected_version: int) -> int:
        with self._lock_for(key):
            current = self._docs.get(key)
            current_version = current.version if current is not None else 0
            if current_version != expected_version:
                raise ConflictError(f"{key!r}: expected v{expected_version}, found v{current_version}")
            new_version = current_version + 1
            self._docs[key] = Snapshot(key=key, data=copy.deepcopy(data), version=new_version)
            return new_version

    def keys(self) -> List[str]:
        return list(self._docs.keys())


class JsonDirDocumentStore(DocumentStore):
    """One ``<quoted key>.json`` file per document holding ``{version, data}``.

    Commits hold an exclusive ``flock`` on a per-key lock file for the
    compare-and-set only; a lock held by another writer counts as a conflict
    and goes through the retry. The kernel drops the lock when its holder
    exits, so a crashed writer never leaves the key blocked. Lock files are
    never unlinked: a waiter could otherwise lock an orphaned inode while a
    newcomer locks a fresh one.
    """

    SUFFIX = ".json"

    def __init__(self, root: str | Path, **kwargs: Any):
        super().__init__(**kwargs)
        self.root = ensure_dir(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{quote(key, safe='')}{self.SUFFIX}"

    def _lock_path(self, key: str) -> Path:
        return self.root / f".{quote(key, safe='')}.lock"

    def get(self, key: str) -> Snapshot:
        obj = read_json(self._path(key))
        if not obj or not isinstance(obj.get("data"), dict):
            return Snapshot(key=key, data=None, version=0)
        return Snapshot(key=key, data=obj["data"], version=int(obj.get("version", 0)))

    @contextmanager
    def _locked(self, key: str) -> Iterator[None]:
        fd = os.open(self._lock_path(key), os.O_CREAT | os.O_RDWR, 0o644)
        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                raise ConflictError(f"{key!r}: locked by another writer") from None
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def commit(self, key: str, data: Document, expected_version: int) -> int:
        with self._locked(key):
            current = self.get(key)
            if current.version != expected_version:
                raise ConflictError(f"{key!r}: expected v{expected_version}, found v{current.version}")
            new_version = current.version + 1
            dump_json(self._path(key), {"version": new_version, "data": data})
            return new_version

    def keys(self) -> List[str]:
        return sorted(
            unquote(p.name[: -len(self.SUFFIX)])
            for p in self.root.glob(f"*{self.SUFFIX}")
            if not p.name.startswith(".")
        )
