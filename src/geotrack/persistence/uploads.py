from __future__ import annotations

import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote

from geotrack.core.io import dump_json, ensure_dir


class ImageUploader(ABC):
    @abstractmethod
    def upload(
        self,
        key: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
        file_name: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Store image bytes under ``key`` and return a reference to them."""


class LocalDirImageUploader(ImageUploader):
    """Writes ``<root>/<key>/<file_name>`` with a ``.meta.json`` sidecar; returns a file URI."""

    def __init__(self, root: str | Path):
        self.root = ensure_dir(root)

    def upload(
        self,
        key: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
        file_name: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        if not data:
            raise ValueError(f"Refusing to upload empty image for {key!r}")
        name = file_name or f"img_{int(time.time() * 1000)}.jpg"
        target = ensure_dir(self.root / quote(key, safe="")) / name
        target.write_bytes(data)
        dump_json(
            target.with_name(target.name + ".meta.json"),
            {"content_type": content_type or "image/jpeg", "metadata": dict(metadata or {})},
        )
        return target.resolve().as_uri()
