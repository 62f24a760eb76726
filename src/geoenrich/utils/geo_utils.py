"""
Geographic Utility Functions

Helper functions for geographic calculations including distance measurements,
coordinate validation and stop-name normalization.
"""
import re
from math import radians, cos, sin, asin, sqrt
from typing import Tuple

EARTH_RADIUS_M = 6_371_008.8
METERS_PER_DEGREE_LAT = 111_320.0

# Latin letters, Cyrillic letters and digits survive normalization
_NAME_KEY_PATTERN = re.compile(r"[^a-zA-Zа-яА-ЯёЁ0-9]")


def haversine_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float
) -> float:
    """
    Calculate great-circle distance between two points using Haversine formula.

    Args:
        lat1: Latitude of first point (decimal degrees)
        lon1: Longitude of first point (decimal degrees)
        lat2: Latitude of second point (decimal degrees)
        lon2: Longitude of second point (decimal degrees)

    Returns:
        Distance in meters

    Formula:
        a = sin²(Δlat/2) + cos(lat1) × cos(lat2) × sin²(Δlon/2)
        c = 2 × asin(√a)
        distance = R × c  (R = mean Earth radius = 6,371,008.8 m)
    """
    lon1, lat1, lon2, lat2 = map(radians, [lon1, lat1, lon2, lat2])

    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = sin(dlat/2)**2 + cos(lat1) * cos(lat2) * sin(dlon/2)**2
    c = 2 * asin(sqrt(min(1.0, a)))

    return c * EARTH_RADIUS_M


def is_valid_coordinate(lat: float, lon: float) -> bool:
    """Check that a latitude/longitude pair lies inside the WGS84 range."""
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def expand_bbox(lat: float, lon: float, degrees: float) -> Tuple[float, float, float, float]:
    """
    Build a (min_lon, min_lat, max_lon, max_lat) box around a point.

    Args:
        lat: Latitude of the center
        lon: Longitude of the center
        degrees: Half-width of the box in degrees on both axes

    Returns:
        Bounding box tuple in lon/lat order
    """
    return (lon - degrees, lat - degrees, lon + degrees, lat + degrees)


def meters_to_degrees(meters: float, lat: float) -> Tuple[float, float]:
    """
    Approximate a metric distance as (lat_degrees, lon_degrees) at a latitude.

    Used only for coarse envelope pre-filtering; exact distances are always
    recomputed afterwards.
    """
    lat_deg = meters / METERS_PER_DEGREE_LAT
    cos_lat = max(cos(radians(lat)), 1e-6)
    lon_deg = meters / (METERS_PER_DEGREE_LAT * cos_lat)
    return lat_deg, min(lon_deg, 180.0)


def normalize_stop_name(name: str) -> str:
    """
    Reduce a stop name to its comparison key.

    Strips everything except Latin and Cyrillic letters and digits, then
    lowercases, so "Pl. Catalunya" and "PL CATALUNYA" share a key.
    """
    if not name:
        return ""
    return _NAME_KEY_PATTERN.sub("", name).lower()
