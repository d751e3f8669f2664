from __future__ import annotations

import numpy as np
from sklearn.metrics.pairwise import haversine_distances

EARTH_RADIUS_KM = 6371.0


def distances_km(
    latitude: float,
    longitude: float,
    latitudes: np.ndarray | list[float],
    longitudes: np.ndarray | list[float],
) -> np.ndarray:
    """Great-circle distances in km from one point to many."""
    origin = np.radians([[latitude, longitude]])
    points = np.radians(np.column_stack([latitudes, longitudes]).astype(float))
    if points.size == 0:
        return np.zeros(0)
    return haversine_distances(origin, points)[0] * EARTH_RADIUS_KM


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return float(distances_km(lat1, lon1, [lat2], [lon2])[0])
