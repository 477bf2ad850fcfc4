from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Optional

from geotrack.core.config import load_config
from geotrack.core.schema import GeotrackConfig
from geotrack.domain.types import Box
from geotrack.localization.camera import CameraIntrinsics, HeightTable
from geotrack.localization.localizer import Localizer
from geotrack.persistence.repository import PathRepository
from geotrack.persistence.store import JsonDirDocumentStore
from geotrack.replay.pipeline import ReplayPipeline


def _load_cfg(path: Optional[str]) -> GeotrackConfig:
    return load_config(path) if path else GeotrackConfig()


def cmd_classes(args: argparse.Namespace) -> int:
    cfg = _load_cfg(args.config)
    heights = HeightTable(cfg.heights)
    allowed = set(cfg.tracking.allowed_classes)
    for name, h in sorted(heights.as_dict().items()):
        mark = "*" if name in allowed else " "
        print(f"{mark} {name:14s} {h:6.3f} m")
    return 0


def cmd_estimate(args: argparse.Namespace) -> int:
    cfg = _load_cfg(args.config)
    localizer = Localizer(intrinsics=CameraIntrinsics.from_cfg(cfg.camera), heights=HeightTable(cfg.heights))
    width = float(args.width or cfg.camera.image_width_px)
    height = float(args.height or cfg.camera.image_height_px)
    cx = float(args.cx) if args.cx is not None else width / 2.0
    cy = float(args.cy) if args.cy is not None else height / 2.0
    h = float(args.bbox_height)
    w = float(args.bbox_width or h)
    box = Box(cx - w / 2.0, cy - h / 2.0, cx + w / 2.0, cy + h / 2.0)
    print(json.dumps(localizer.explain(args.cls.lower(), box, width, height), indent=2))
    return 0


def cmd_replay(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)

    # overrides
    if args.detections:
        cfg.detections_path = args.detections
    if args.session_id:
        cfg.session_id = args.session_id
    if args.out_dir:
        cfg.export.out_dir = args.out_dir
    if args.store_dir:
        cfg.store.type = "json_dir"
        cfg.store.path = args.store_dir
    if args.interval_ms is not None:
        cfg.throttle.interval_ms = int(args.interval_ms)

    ctx = ReplayPipeline(echo=not args.quiet).run(cfg)
    print(f"OK: {ctx.state['run_root']}")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    cfg = _load_cfg(args.config)
    store_dir = args.store_dir or cfg.store.path
    heights = HeightTable(cfg.heights)
    repo = PathRepository(JsonDirDocumentStore(store_dir), known_classes=heights.classes())
    keys = [args.key] if args.key else repo.keys()
    for key in keys:
        try:
            rec = repo.get(key)
        except ValueError as e:
            # pydantic ValidationError is a ValueError too
            print(f"{key}: invalid record: {str(e).splitlines()[0]}")
            continue
        if rec is None:
            print(f"{key}: not found")
            continue
        print(json.dumps(rec.to_map(), ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="geotrack")
    sub = p.add_subparsers(dest="cmd", required=True)

    spc = sub.add_parser("classes", help="List classes with a reference height (* = tracked)")
    spc.add_argument("--config", help="YAML config (default: built-in defaults).")
    spc.set_defaults(func=cmd_classes)

    spe = sub.add_parser("estimate", help="Explain the distance/angle/3D estimate for one box")
    spe.add_argument("cls", help="Class label, e.g. banana.")
    spe.add_argument("bbox_height", type=float, help="Box height in pixels.")
    spe.add_argument("--bbox-width", type=float, help="Box width in pixels (default: height).")
    spe.add_argument("--cx", type=float, help="Box center x (default: image center).")
    spe.add_argument("--cy", type=float, help="Box center y (default: image center).")
    spe.add_argument("--width", type=float, help="Image width in pixels.")
    spe.add_argument("--height", type=float, help="Image height in pixels.")
    spe.add_argument("--config", help="YAML config (default: built-in defaults).")
    spe.set_defaults(func=cmd_estimate)

    spr = sub.add_parser("replay", help="Replay a recorded detections JSONL file")
    spr.add_argument("--config", default="configs/replay.yaml", help="YAML config.")
    spr.add_argument("--detections", help="Override detections_path.")
    spr.add_argument("--session-id", help="Override session_id.")
    spr.add_argument("--out-dir", help="Override export.out_dir.")
    spr.add_argument("--store-dir", help="Use a JSON directory store at this path.")
    spr.add_argument("--interval-ms", type=int, help="Override throttle.interval_ms.")
    spr.add_argument("--quiet", action="store_true", help="Do not echo log events to stdout.")
    spr.set_defaults(func=cmd_replay)

    sps = sub.add_parser("show", help="Print stored GeoPoint records")
    sps.add_argument("--store-dir", help="JSON store directory (default: store.path).")
    sps.add_argument("--config", help="YAML config; its heights extend the known classes.")
    sps.add_argument("--key", help="Single record key (default: all).")
    sps.set_defaults(func=cmd_show)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
