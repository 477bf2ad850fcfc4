from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from geotrack.domain.types import GeoPosition


class LocationUnavailableError(Exception):
    pass


class LocationProvider(ABC):
    @abstractmethod
    def current_position(self) -> GeoPosition:
        """Device position; raises LocationUnavailableError when there is no fix."""


class StaticLocationProvider(LocationProvider):
    """Fixed position; ``set`` replaces it (e.g. per replayed frame)."""

    def __init__(self, position: Optional[GeoPosition] = None):
        self._position = position

    def set(self, position: Optional[GeoPosition]) -> None:
        self._position = position

    def current_position(self) -> GeoPosition:
        if self._position is None:
            raise LocationUnavailableError("No position fix")
        return self._position
