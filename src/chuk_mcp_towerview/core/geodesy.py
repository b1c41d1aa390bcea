"""
Great-circle distance on a spherical Earth.
"""

import math
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..constants import EARTH_RADIUS_M
from .grid import GeoPoint

FloatArray = NDArray[np.floating[Any]]


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Compute haversine surface distance between two points in metres.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in metres (0.0 when a == b)
    """
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    dphi = math.radians(b.latitude - a.latitude)
    dlam = math.radians(b.longitude - a.longitude)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def haversine_m(
    lat1: float | FloatArray,
    lon1: float | FloatArray,
    lat2: float | FloatArray,
    lon2: float | FloatArray,
) -> FloatArray:
    """Vectorised haversine distance in metres (broadcasts numpy arrays)."""
    phi1 = np.radians(lat1)
    phi2 = np.radians(lat2)
    dphi = np.radians(np.subtract(lat2, lat1))
    dlam = np.radians(np.subtract(lon2, lon1))

    h = np.sin(dphi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlam / 2) ** 2
    h = np.clip(h, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))
    return EARTH_RADIUS_M * c
