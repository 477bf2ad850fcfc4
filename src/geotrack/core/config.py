from __future__ import annotations

"""YAML and Pydantic config loaders for the core package."""

from pathlib import Path
from typing import Any, Dict, Type, TypeVar

import yaml

from geotrack.core.schema import GeotrackConfig

T = TypeVar("T")


def load_yaml(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a mapping at top-level: {p}")
    return data


def load_pydantic(path: str | Path, cls: Type[T]) -> T:
    """Load YAML and validate it against a Pydantic v2 model."""
    data = load_yaml(path)
    return cls.model_validate(data)  # type: ignore[attr-defined]


def load_config(path: str | Path) -> GeotrackConfig:
    """Load the geotrack YAML config."""
    return load_pydantic(path, GeotrackConfig)
