"""
Transit Models

Stops and lines as stored by the spatial gateway, plus the serializable
nearest-stop result attached to enriched locations.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from src.geoenrich.models.point import GeoPoint
from src.geoenrich.utils.geo_utils import normalize_stop_name


class TransitMode(str, Enum):
    """Transit mode of a stop or line."""

    METRO = "metro"
    TRAIN = "train"
    TRAM = "tram"
    BUS = "bus"
    FERRY = "ferry"
    OTHER = "other"

    @classmethod
    def from_tag(cls, value: Optional[str]) -> "TransitMode":
        """
        Map an OSM-style route/station tag to a mode.

        Args:
            value: Raw tag such as "subway", "light_rail", "trolleybus"

        Returns:
            Matching mode, OTHER when unknown or empty
        """
        if not value:
            return cls.OTHER
        return _TAG_ALIASES.get(value.strip().lower(), cls.OTHER)


_TAG_ALIASES = {
    "metro": TransitMode.METRO,
    "subway": TransitMode.METRO,
    "light_rail": TransitMode.TRAM,
    "train": TransitMode.TRAIN,
    "rail": TransitMode.TRAIN,
    "railway": TransitMode.TRAIN,
    "tram": TransitMode.TRAM,
    "bus": TransitMode.BUS,
    "trolleybus": TransitMode.BUS,
    "ferry": TransitMode.FERRY,
}


@dataclass(frozen=True)
class TransitStop:
    """
    A transit stop or station.

    Attributes:
        id: Stable identifier
        name: Display name
        mode: Transit mode
        lat: Latitude
        lon: Longitude
        names: Translated names keyed by language code
        generic_platform: True for generic platforms/stop positions whose
            mode could not be classified more strictly
    """

    id: int
    name: str
    mode: TransitMode
    lat: float
    lon: float
    names: Dict[str, str] = field(default_factory=dict, compare=False)
    generic_platform: bool = False

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lon)

    @property
    def name_key(self) -> str:
        """Normalized name used for deduplication."""
        return normalize_stop_name(self.name)


@dataclass(frozen=True)
class StopCandidate:
    """A stop found near a search point with its linear distance in meters."""

    stop: TransitStop
    distance_m: float


@dataclass(frozen=True)
class TransitLine:
    """
    A transit route serving one or more stops.

    Attributes:
        id: Stable identifier
        name: Route name
        ref: Public reference, e.g. "L3" or "V15"
        mode: Transit mode
        color: Display color, e.g. "#FF0000"
    """

    id: int
    name: Optional[str]
    ref: Optional[str]
    mode: TransitMode
    color: Optional[str] = None

    @property
    def dedup_key(self) -> str:
        """Reference when present, otherwise name."""
        return self.ref or self.name or ""

    def to_info(self) -> "TransitLineInfo":
        return TransitLineInfo(
            id=self.id,
            name=self.name or self.ref or "",
            ref=self.ref or None,
            type=self.mode.value,
            color=self.color or None,
        )


class TransitLineInfo(BaseModel):
    """Line summary attached to a nearest stop."""

    id: int = Field(..., description="Line identifier")
    name: str = Field(..., description="Line name")
    ref: Optional[str] = Field(None, description="Public reference")
    type: Optional[str] = Field(None, description="Transit mode")
    color: Optional[str] = Field(None, description="Display color")


class NearestStop(BaseModel):
    """
    A stop selected for a search point.

    Attributes:
        station_id: Stop identifier
        name: Stop name
        name_en: English name when known
        type: Transit mode
        lat: Stop latitude
        lon: Stop longitude
        distance: Linear distance from the search point in meters
        priority: Tier rank, 1 = metro/train, 2 = tram/bus
        walking_distance: Walking distance in meters, when estimated or routed
        walking_duration: Walking duration in seconds, when estimated or routed
        lines: Deduplicated lines serving the stop
    """

    station_id: int = Field(..., description="Stop identifier")
    name: str = Field(..., description="Stop name")
    name_en: Optional[str] = Field(None, description="English name")
    type: str = Field(..., description="Transit mode")
    lat: float = Field(..., description="WGS84 latitude", ge=-90, le=90)
    lon: float = Field(..., description="WGS84 longitude", ge=-180, le=180)
    distance: float = Field(..., description="Linear distance in meters", ge=0)
    priority: int = Field(..., description="Tier rank")
    walking_distance: Optional[float] = Field(None, description="Walking distance in meters")
    walking_duration: Optional[float] = Field(None, description="Walking duration in seconds")
    lines: List[TransitLineInfo] = Field(default_factory=list, description="Lines serving the stop")

    class Config:
        """Pydantic model configuration."""
        validate_assignment = True
