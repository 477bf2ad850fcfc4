from __future__ import annotations

"""GeoPoint record: the durable, append-only path of one tracked object."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

from geotrack.localization.camera import REFERENCE_HEIGHTS_M
from geotrack.localization.geo import clamp_lat, clamp_lon


class LatLng(NamedTuple):
    lat: float
    lon: float


def parse_timestamp(v: Any) -> datetime:
    """Accept datetime, ISO-8601, epoch seconds or milliseconds, or a
    ``{seconds, nanoseconds}`` / ``{_seconds, _nanoseconds}`` mapping."""
    if v is None:
        raise ValueError("Missing required field: tracked")

    if isinstance(v, datetime):
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)

    if isinstance(v, Mapping):
        for sec_key, nsec_key in (("_seconds", "_nanoseconds"), ("seconds", "nanoseconds")):
            if sec_key in v:
                sec = int(v[sec_key])
                nsec = int(v.get(nsec_key) or 0)
                return datetime.fromtimestamp(sec + nsec / 1e9, tz=timezone.utc)

    if isinstance(v, (int, float)) and not isinstance(v, bool):
        n = float(v)
        # >= 1e12 looks like milliseconds
        secs = n / 1000.0 if n >= 1e12 else n
        return datetime.fromtimestamp(secs, tz=timezone.utc)

    if isinstance(v, str):
        try:
            dt = datetime.fromisoformat(v.strip().replace("Z", "+00:00"))
        except ValueError:
            pass
        else:
            return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)

    raise ValueError(f"Unsupported timestamp format: {v!r}")


def _read_float_list(v: Any) -> List[float]:
    if v is None:
        return []
    if isinstance(v, (list, tuple)):
        return [float(e) for e in v if e is not None]
    return []


def read_path(m: Mapping[str, Any]) -> List[LatLng]:
    """Zip stored ``lat``/``lon`` arrays (truncated to the shorter) into a clamped path.

    A legacy scalar ``lat``/``lon`` pair reads as a single point.
    """
    lat_raw, lon_raw = m.get("lat"), m.get("lon")
    if isinstance(lat_raw, (int, float)) and isinstance(lon_raw, (int, float)):
        return [LatLng(clamp_lat(lat_raw), clamp_lon(lon_raw))]

    lats = _read_float_list(lat_raw)
    lons = _read_float_list(lon_raw)
    return [LatLng(clamp_lat(a), clamp_lon(b)) for a, b in zip(lats, lons)]


def _blank_to_none(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


class GeoPointRecord(BaseModel):
    """One object's accumulated path, oldest point first.

    ``icon`` must be a known class; extra classes can be allowed by validating
    with ``context={"known_classes": [...]}``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    icon: str
    path: List[LatLng]
    altitude: int
    tracked: datetime
    image_url: Optional[str] = None
    detected_text: Optional[str] = None

    @field_validator("icon", mode="before")
    @classmethod
    def _check_icon(cls, v: Any, info: ValidationInfo):
        icon = str(v or "").strip().lower()
        known = set(REFERENCE_HEIGHTS_M)
        if info.context and info.context.get("known_classes"):
            known.update(str(c).lower() for c in info.context["known_classes"])
        if icon not in known:
            raise ValueError(f"Invalid or missing icon: {v!r}")
        return icon

    @field_validator("path")
    @classmethod
    def _check_path(cls, v: List[LatLng]) -> List[LatLng]:
        if not v:
            raise ValueError("path must contain at least one coordinate")
        return [LatLng(clamp_lat(p.lat), clamp_lon(p.lon)) for p in v]

    @field_validator("altitude", mode="before")
    @classmethod
    def _round_altitude(cls, v: Any):
        if v is None:
            raise ValueError("Missing required field: altitude")
        if isinstance(v, float):
            return int(round(v))
        return v

    @field_validator("tracked", mode="before")
    @classmethod
    def _parse_tracked(cls, v: Any):
        return parse_timestamp(v)

    @field_validator("image_url", "detected_text", mode="before")
    @classmethod
    def _strip_optional(cls, v: Any):
        return _blank_to_none(v)

    @property
    def position(self) -> LatLng:
        """First coordinate, used as the record's anchor."""
        return self.path[0]

    @classmethod
    def from_map(cls, m: Mapping[str, Any], *, known_classes: Optional[List[str]] = None) -> "GeoPointRecord":
        """Parse a stored document."""
        data = {
            "id": m.get("id", m.get("docId")),
            "name": m.get("name") or m.get("id", m.get("docId")),
            "icon": m.get("icon"),
            "path": read_path(m),
            "altitude": m.get("altitude"),
            "tracked": m.get("tracked", m.get("timestamp")),
            "image_url": m.get("object_image_link"),
            "detected_text": m.get("detected_text"),
        }
        return cls.model_validate(data, context={"known_classes": known_classes or []})

    def to_map(self) -> Dict[str, Any]:
        """Stored document shape; absent optionals are omitted."""
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "lat": [p.lat for p in self.path],
            "lon": [p.lon for p in self.path],
            "altitude": self.altitude,
            "tracked": self.tracked.astimezone(timezone.utc).isoformat(),
        }
        if self.image_url is not None:
            out["object_image_link"] = self.image_url
        if self.detected_text is not None:
            out["detected_text"] = self.detected_text
        return out
