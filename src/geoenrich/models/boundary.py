"""
Administrative Boundary Models

Boundary records as returned by the spatial gateway and the admin level
scale they are classified on.
"""
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional

# Languages carried in translated boundary names
TRANSLATION_LANGUAGES = ("en", "es", "ca", "ru", "uk", "fr", "pt", "it", "de")


class AdminLevel(IntEnum):
    """
    OpenStreetMap admin_level values mapped to enriched-location slots.

    Lower numbers are coarser. Levels not listed here (1, 3, 5) are ignored.
    """

    COUNTRY = 2
    REGION = 4
    PROVINCE = 6
    SUBPROVINCE = 7
    CITY = 8
    DISTRICT = 9
    SUBDISTRICT = 10
    NEIGHBORHOOD = 11

    @property
    def slot(self) -> str:
        """Field name on EnrichedLocation for this level."""
        return self.name.lower()

    @classmethod
    def from_value(cls, value: int) -> Optional["AdminLevel"]:
        """Map a raw admin_level to a known level, or None."""
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class AdminBoundary:
    """
    A polygonal administrative region.

    Attributes:
        id: Stable identifier (OSM relation id)
        name: Primary name
        admin_level: Raw admin level number
        names: Translated names keyed by language code
        area_sq_km: Polygon area, used to break ties at equal level
        population: Optional population figure
        geometry: Polygon geometry when the backend keeps it in memory
    """

    id: int
    name: str
    admin_level: int
    names: Dict[str, str] = field(default_factory=dict)
    area_sq_km: Optional[float] = None
    population: Optional[int] = None
    geometry: Optional[Any] = field(default=None, compare=False, repr=False)

    @property
    def level(self) -> Optional[AdminLevel]:
        return AdminLevel.from_value(self.admin_level)

    def translated_names(self) -> Dict[str, str]:
        """Return non-empty translations for the supported languages."""
        return {
            lang: self.names[lang]
            for lang in TRANSLATION_LANGUAGES
            if self.names.get(lang)
        }
