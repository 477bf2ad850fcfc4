from __future__ import annotations

from typing import Any, Dict, List, Optional

from geotrack.core.pipeline.log import LogFn, noop_log
from geotrack.persistence.record import GeoPointRecord, LatLng, read_path
from geotrack.persistence.store import DocumentStore, Snapshot
from geotrack.persistence.uploads import ImageUploader


def merge_document(stored: Optional[Dict[str, Any]], record: GeoPointRecord) -> Dict[str, Any]:
    """Stored path (clamped) followed by the record's new points.

    Fields the record leaves empty keep their stored values; fields unknown to
    the record are carried over untouched.
    """
    merged: Dict[str, Any] = dict(stored or {})
    path: List[LatLng] = read_path(stored) if stored else []
    path.extend(record.path)

    update = record.to_map()
    update["lat"] = [p.lat for p in path]
    update["lon"] = [p.lon for p in path]
    merged.update(update)
    return merged


class PathRepository:
    """Merges observations of one object into its durable path, keyed by record id.

    The image upload, when needed, happens before the transaction; the
    transaction itself only reads and writes the document.
    """

    def __init__(
        self,
        store: DocumentStore,
        uploader: Optional[ImageUploader] = None,
        log: Optional[LogFn] = None,
        known_classes: Optional[List[str]] = None,
    ):
        self.store = store
        self.uploader = uploader
        self._log = log or noop_log
        self._known_classes = list(known_classes or [])

    def upsert_and_append(
        self,
        record: GeoPointRecord,
        *,
        image_bytes: Optional[bytes] = None,
        content_type: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> GeoPointRecord:
        if image_bytes is not None and not record.image_url and self.uploader is not None:
            try:
                url = self.uploader.upload(
                    record.id,
                    image_bytes,
                    content_type=content_type,
                    file_name=file_name,
                    metadata={
                        "pointId": record.id,
                        "name": record.name,
                        "timestamp": record.tracked.isoformat(),
                    },
                )
            except Exception as e:
                self._log("upload_failed", {"key": record.id, "error": repr(e)})
            else:
                record = record.model_copy(update={"image_url": url})

        def _merge(snap: Snapshot) -> Dict[str, Any]:
            return merge_document(snap.data, record)

        doc = self.store.run_transaction(record.id, _merge)
        merged = GeoPointRecord.from_map(doc, known_classes=self._known_classes)
        self._log("record_merged", {"key": record.id, "points": len(merged.path)})
        return merged

    def get(self, key: str) -> Optional[GeoPointRecord]:
        snap = self.store.get(key)
        if not snap.exists:
            return None
        return GeoPointRecord.from_map(snap.data, known_classes=self._known_classes)

    def keys(self) -> List[str]:
        return self.store.keys()
