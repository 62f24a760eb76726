"""
Data Models

Pydantic and dataclass models for stream events, boundaries and transit.
"""
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.models.boundary import AdminBoundary, AdminLevel, TRANSLATION_LANGUAGES
from src.geoenrich.models.transit import (
    TransitMode,
    TransitStop,
    StopCandidate,
    TransitLine,
    TransitLineInfo,
    NearestStop,
)
from src.geoenrich.models.location import (
    LocationEvent,
    LocationInput,
    BoundaryInfo,
    EnrichedLocation,
    LocationDoneEvent,
    EnrichedLocationResult,
    BatchMeta,
    EnrichmentBatchResult,
)

__all__ = [
    "GeoPoint",
    "AdminBoundary",
    "AdminLevel",
    "TRANSLATION_LANGUAGES",
    "TransitMode",
    "TransitStop",
    "StopCandidate",
    "TransitLine",
    "TransitLineInfo",
    "NearestStop",
    "LocationEvent",
    "LocationInput",
    "BoundaryInfo",
    "EnrichedLocation",
    "LocationDoneEvent",
    "EnrichedLocationResult",
    "BatchMeta",
    "EnrichmentBatchResult",
]
