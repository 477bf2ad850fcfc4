from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict

# Every component that logs takes one of these: log(event, payload).
LogFn = Callable[[str, Dict[str, Any]], None]


def _now_iso() -> str:
    """Return current UTC time as an ISO string."""
    return datetime.now(timezone.utc).isoformat()


def noop_log(event: str, payload: Dict[str, Any]) -> None:  # pragma: no cover
    return None


@dataclass
class JsonlLogger:
    """Append structured events to a JSONL file, optionally echoing to stdout.

    ``context`` is stamped onto every event (e.g. the session id) so lines from
    several sessions can be grepped apart.
    """
    path: Path
    echo: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __call__(self, event: str, payload: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        rec = {"t": _now_iso(), "event": event, **self.context, **payload}
        line = json.dumps(rec, ensure_ascii=False, default=str)
        if self.echo:
            print(line, flush=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
