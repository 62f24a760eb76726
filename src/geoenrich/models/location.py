"""
Location Event Models

Pydantic models for the inbound location event, the orchestrator input and
the enriched outbound event.
"""
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.geoenrich.models.point import GeoPoint
from src.geoenrich.models.transit import NearestStop
from src.geoenrich.utils.geo_utils import is_valid_coordinate


class LocationEvent(BaseModel):
    """
    Inbound location event read from the enrichment stream.

    Attributes:
        property_id: Identifier of the property being enriched
        country: Country name as entered
        region: Optional region name
        province: Optional province name
        city: Optional city name
        district: Optional district name
        neighborhood: Optional neighborhood name
        street: Optional street name
        house_number: Optional house number
        postal_code: Optional postal code
        latitude: Optional WGS84 latitude
        longitude: Optional WGS84 longitude
        is_visible: Whether the exact address may be shown
    """

    property_id: UUID = Field(..., description="Property identifier")
    country: str = Field(..., description="Country name")
    region: Optional[str] = Field(None, description="Region name")
    province: Optional[str] = Field(None, description="Province name")
    city: Optional[str] = Field(None, description="City name")
    district: Optional[str] = Field(None, description="District name")
    neighborhood: Optional[str] = Field(None, description="Neighborhood name")
    street: Optional[str] = Field(None, description="Street name")
    house_number: Optional[str] = Field(None, description="House number")
    postal_code: Optional[str] = Field(None, description="Postal code")
    latitude: Optional[float] = Field(None, description="WGS84 latitude")
    longitude: Optional[float] = Field(None, description="WGS84 longitude")
    is_visible: Optional[bool] = Field(None, description="Address visibility flag")

    def has_street_address(self) -> bool:
        """True only when both street and house number are non-empty."""
        return bool(self.street) and bool(self.house_number)

    def has_coordinates(self) -> bool:
        """Check if event has coordinates."""
        return self.latitude is not None and self.longitude is not None

    class Config:
        """Pydantic model configuration."""
        str_strip_whitespace = True


class LocationInput(BaseModel):
    """
    One item of an enrichment batch.

    The index ties the result back to its input position.
    """

    index: int = Field(..., description="Position in the batch", ge=0)
    country: Optional[str] = Field(None, description="Country name")
    region: Optional[str] = Field(None, description="Region name")
    province: Optional[str] = Field(None, description="Province name")
    city: Optional[str] = Field(None, description="City name")
    district: Optional[str] = Field(None, description="District name")
    neighborhood: Optional[str] = Field(None, description="Neighborhood name")
    latitude: Optional[float] = Field(None, description="WGS84 latitude")
    longitude: Optional[float] = Field(None, description="WGS84 longitude")
    is_visible: Optional[bool] = Field(None, description="Address visibility flag")

    @classmethod
    def from_event(cls, index: int, event: LocationEvent) -> "LocationInput":
        """Build a batch item from an inbound event."""
        return cls(
            index=index,
            country=event.country,
            region=event.region,
            province=event.province,
            city=event.city,
            district=event.district,
            neighborhood=event.neighborhood,
            latitude=event.latitude,
            longitude=event.longitude,
            is_visible=event.is_visible,
        )

    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def has_valid_coordinates(self) -> bool:
        return self.has_coordinates() and is_valid_coordinate(self.latitude, self.longitude)

    def point(self) -> GeoPoint:
        """
        Return the item's coordinates as a point.

        Raises:
            ValueError: If coordinates are missing or out of range
        """
        if not self.has_coordinates():
            raise ValueError(f"Location {self.index} has no coordinates")
        return GeoPoint(self.latitude, self.longitude)


class BoundaryInfo(BaseModel):
    """Boundary reference placed in an enriched-location slot."""

    id: int = Field(..., description="Boundary identifier")
    name: str = Field(..., description="Primary name")
    translate_names: Optional[Dict[str, str]] = Field(
        None, description="Translations keyed by language code"
    )


class EnrichedLocation(BaseModel):
    """
    Administrative hierarchy resolved for a point.

    One optional slot per admin level, coarse to fine.
    """

    country: Optional[BoundaryInfo] = None
    region: Optional[BoundaryInfo] = None
    province: Optional[BoundaryInfo] = None
    subprovince: Optional[BoundaryInfo] = None
    city: Optional[BoundaryInfo] = None
    district: Optional[BoundaryInfo] = None
    subdistrict: Optional[BoundaryInfo] = None
    neighborhood: Optional[BoundaryInfo] = None
    is_address_visible: Optional[bool] = None

    def filled_slots(self) -> List[str]:
        """Names of the hierarchy slots that hold a boundary."""
        return [
            name for name in (
                "country", "region", "province", "subprovince",
                "city", "district", "subdistrict", "neighborhood",
            )
            if getattr(self, name) is not None
        ]


class LocationDoneEvent(BaseModel):
    """
    Outbound event published to the done stream.

    Absent values are omitted from the serialized payload.
    """

    property_id: UUID = Field(..., description="Property identifier")
    enriched_location: Optional[EnrichedLocation] = None
    nearest_transport: Optional[List[NearestStop]] = None
    error: Optional[str] = None

    @field_validator("nearest_transport")
    @classmethod
    def empty_transport_is_absent(cls, v: Optional[List[NearestStop]]) -> Optional[List[NearestStop]]:
        """Collapse an empty stop list to None so it is omitted."""
        return v or None

    @classmethod
    def from_result(cls, property_id: UUID, result: "EnrichedLocationResult") -> "LocationDoneEvent":
        """Build the outbound event for one enrichment result."""
        return cls(
            property_id=property_id,
            enriched_location=result.enriched_location,
            nearest_transport=result.nearest_transport,
            error=result.error,
        )

    def to_stream_payload(self) -> str:
        """Serialize to the JSON carried in the stream's data field."""
        return self.model_dump_json(exclude_none=True)


class EnrichedLocationResult(BaseModel):
    """
    Enrichment outcome for one batch item.

    When `error` is set the other fields are empty.
    """

    index: int = Field(..., description="Position of the input item")
    enriched_location: Optional[EnrichedLocation] = None
    nearest_transport: List[NearestStop] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchMeta(BaseModel):
    """Counters describing a processed batch."""

    total_locations: int = Field(0, description="Items in the batch")
    success_count: int = Field(0, description="Items without error")
    error_count: int = Field(0, description="Items with an error")
    with_transport: int = Field(0, description="Items with at least one stop")


class EnrichmentBatchResult(BaseModel):
    """Index-aligned results plus batch counters."""

    results: List[EnrichedLocationResult] = Field(default_factory=list)
    meta: BatchMeta = Field(default_factory=BatchMeta)
