from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


def read_json(path: str | Path) -> Optional[Dict[str, Any]]:
    """Best-effort JSON read. Returns None when the file is missing or unreadable."""
    p = Path(path)
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None


def dump_json(path: str | Path, obj: Dict[str, Any], *, indent: int = 2) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(f".{p.name}.{os.getpid()}.{time.monotonic_ns()}.tmp")
    last_err: OSError | None = None
    for _ in range(3):
        try:
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(obj, f, ensure_ascii=False, indent=indent, default=str)
            os.replace(tmp, p)
            return p
        except OSError as exc:
            last_err = exc
            # ESTALE on network filesystems
            if getattr(exc, "errno", None) != 116:
                raise
            time.sleep(0.2)
    if last_err is not None:
        raise last_err
    return p


def iter_jsonl(path: str | Path) -> Iterator[Dict[str, Any]]:
    """Yield one object per non-empty line of a JSONL file."""
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except ValueError as exc:
                raise ValueError(f"{p}:{lineno}: invalid JSON line") from exc
            if not isinstance(obj, dict):
                raise ValueError(f"{p}:{lineno}: expected a JSON object")
            yield obj
