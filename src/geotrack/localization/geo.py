from __future__ import annotations

"""Project camera-relative offsets onto latitude/longitude."""

import math

from geotrack.domain.types import GeoPosition

EARTH_RADIUS_M = 6378137.0


def clamp_lat(lat: float) -> float:
    return max(-90.0, min(90.0, float(lat)))


def clamp_lon(lon: float) -> float:
    return max(-180.0, min(180.0, float(lon)))


def offset_position(
    origin: GeoPosition,
    x: float,
    y: float,
    z: float,
    *,
    heading_deg: float = 0.0,
    scale: float = 1.0,
) -> GeoPosition:
    """Move ``origin`` by a lateral (x), forward (y) and vertical (z) offset in meters.

    ``heading_deg`` is the compass bearing of the camera's forward axis
    (0 = north, 90 = east). Uses a local spherical-earth approximation.
    """
    x, y, z = x * scale, y * scale, z * scale
    heading = math.radians(heading_deg)

    east = x * math.cos(heading) + y * math.sin(heading)
    north = -x * math.sin(heading) + y * math.cos(heading)

    lat = origin.lat + math.degrees(north / EARTH_RADIUS_M)
    cos_lat = math.cos(math.radians(origin.lat))
    if abs(cos_lat) < 1e-12:
        lon = origin.lon
    else:
        lon = origin.lon + math.degrees(east / (EARTH_RADIUS_M * cos_lat))

    return GeoPosition(
        lat=clamp_lat(lat),
        lon=clamp_lon(lon),
        altitude=origin.altitude + z,
        heading=origin.heading,
    )
