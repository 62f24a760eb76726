"""
Geographic Point

Immutable WGS84 point shared by every spatial component.
"""
from dataclasses import dataclass

from src.geoenrich.utils.geo_utils import is_valid_coordinate


@dataclass(frozen=True)
class GeoPoint:
    """
    WGS84 coordinate pair.

    Attributes:
        lat: Latitude in decimal degrees, -90..90
        lon: Longitude in decimal degrees, -180..180
    """

    lat: float
    lon: float

    def __post_init__(self):
        if not is_valid_coordinate(self.lat, self.lon):
            raise ValueError(f"Coordinates out of range: lat={self.lat}, lon={self.lon}")

    def as_lonlat(self) -> tuple:
        """Return (lon, lat), the axis order used by shapely and PostGIS."""
        return (self.lon, self.lat)
