from .fs import ensure_dir
from .json import read_json, dump_json, iter_jsonl

__all__ = [
    "ensure_dir",
    "read_json",
    "dump_json",
    "iter_jsonl",
]
