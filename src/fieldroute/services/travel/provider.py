"""Travel-time provider contract and great-circle implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from ...config import settings
from ...errors import ProviderError
from ..geospatial import haversine_matrix_km

logger = logging.getLogger(__name__)

Point = tuple[float, float]


@dataclass(slots=True)
class TravelMatrix:
    """Square matrices indexed like the input points: seconds and meters."""

    durations: list[list[float]]
    distances: list[list[float]]

    def __len__(self) -> int:
        return len(self.durations)

    def minutes(self, i: int, j: int) -> float:
        return self.durations[i][j] / 60.0


class TravelTimeProvider(ABC):
    """Opaque source of point-to-point travel durations and distances."""

    name: str = "provider"

    @abstractmethod
    def matrix(self, points: Sequence[Point], departure: Optional[datetime] = None) -> TravelMatrix:
        raise NotImplementedError

    def leg(self, origin: Point, destination: Point, departure: Optional[datetime] = None) -> tuple[float, float]:
        """Return ``(seconds, meters)`` for a single hop."""
        result = self.matrix([origin, destination], departure)
        return result.durations[0][1], result.distances[0][1]

    def check_health(self) -> bool:
        return True


class HaversineProvider(TravelTimeProvider):
    """Straight-line estimate at a constant average speed."""

    name = "haversine"

    def __init__(self, speed_kmh: float | None = None) -> None:
        self.speed_kmh = speed_kmh or settings.haversine_speed_kmh

    def matrix(self, points: Sequence[Point], departure: Optional[datetime] = None) -> TravelMatrix:
        if not points:
            return TravelMatrix(durations=[], distances=[])
        km = haversine_matrix_km(points)
        seconds = km / self.speed_kmh * 3600.0
        return TravelMatrix(
            durations=seconds.round(1).tolist(),
            distances=(km * 1000.0).round(1).tolist(),
        )


class FallbackProvider(TravelTimeProvider):
    """Delegate to ``primary`` and fall back to great-circle estimates on ProviderError."""

    def __init__(self, primary: TravelTimeProvider, fallback: TravelTimeProvider | None = None) -> None:
        self.primary = primary
        self.fallback = fallback or HaversineProvider()
        self.name = f"{primary.name}+{self.fallback.name}"

    def matrix(self, points: Sequence[Point], departure: Optional[datetime] = None) -> TravelMatrix:
        try:
            return self.primary.matrix(points, departure)
        except ProviderError as exc:
            logger.warning(f"{self.primary.name} matrix failed ({exc}). Using {self.fallback.name} fallback.")
            return self.fallback.matrix(points, departure)

    def check_health(self) -> bool:
        return self.primary.check_health()
