"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_matrix_km(points: Sequence[tuple[float, float]]) -> np.ndarray:
    """Pairwise great-circle distances (km) for ``(lat, lon)`` points."""
    coords = np.radians(np.asarray(points, dtype=float).reshape(-1, 2))
    lat = coords[:, 0][:, None]
    lon = coords[:, 1][:, None]
    d_phi = lat.T - lat
    d_lambda = lon.T - lon
    a = np.sin(d_phi / 2) ** 2 + np.cos(lat) * np.cos(lat.T) * np.sin(d_lambda / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(np.clip(1 - a, 0.0, None)))
    return EARTH_RADIUS_KM * c


def to_cartesian_km(points: Sequence[tuple[float, float]]) -> np.ndarray:
    """Equirectangular projection around the points' centroid, in km.

    Good enough for clustering within a metro area.
    """
    coords = np.asarray(points, dtype=float).reshape(-1, 2)
    if coords.size == 0:
        return coords
    lat_ref = np.radians(coords[:, 0].mean())
    x = EARTH_RADIUS_KM * np.radians(coords[:, 1]) * np.cos(lat_ref)
    y = EARTH_RADIUS_KM * np.radians(coords[:, 0])
    return np.column_stack([x, y])


def centroid(points: Sequence[tuple[float, float]]) -> tuple[float, float]:
    coords = np.asarray(points, dtype=float).reshape(-1, 2)
    return float(coords[:, 0].mean()), float(coords[:, 1].mean())
