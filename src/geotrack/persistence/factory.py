from __future__ import annotations

from typing import Optional

from geotrack.core.schema import StoreCfg, UploadsCfg
from geotrack.persistence.store import DocumentStore, InMemoryDocumentStore, JsonDirDocumentStore
from geotrack.persistence.uploads import ImageUploader, LocalDirImageUploader


def make_store(cfg: StoreCfg) -> DocumentStore:
    if cfg.type == "memory":
        return InMemoryDocumentStore(max_attempts=cfg.max_attempts, backoff_s=cfg.backoff_s)
    if cfg.type == "json_dir":
        return JsonDirDocumentStore(cfg.path, max_attempts=cfg.max_attempts, backoff_s=cfg.backoff_s)
    raise ValueError(f"Unsupported store type: {cfg.type}")


def make_uploader(cfg: UploadsCfg) -> Optional[ImageUploader]:
    if not cfg.enabled:
        return None
    return LocalDirImageUploader(cfg.path)
