# safetrack/utils/geo.py

"""
Geospatial utility functions.
"""

import math
from typing import Tuple

COMPASS_POINTS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")

def haversine(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """
    Compute the great-circle distance between two points on the Earth.

    Parameters
    ----------
    a
        (latitude, longitude) of point A, in decimal degrees.
    b
        (latitude, longitude) of point B, in decimal degrees.

    Returns
    -------
    float
        Distance between A and B in metres.
    """
    lat1, lon1 = a
    lat2, lon2 = b
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lam = math.radians(lon2 - lon1)
    r = 6371000.0  # Earth radius in metres
    h = math.sin(d_phi/2)**2 + math.cos(phi1)*math.cos(phi2)*math.sin(d_lam/2)**2
    return 2 * r * math.asin(math.sqrt(min(1.0, h)))

def bearing_to_compass(bearing: float) -> str:
    """
    Map a bearing in degrees to one of eight compass labels.

    Each label covers a 45° sector centred on its direction, so N spans
    [337.5, 22.5).
    """
    index = int(((bearing % 360.0) + 22.5) // 45) % 8
    return COMPASS_POINTS[index]
