"""
Boundary Resolver

Maps points to their administrative hierarchy. Candidate boundaries are
fetched from the spatial gateway (bounding-box pre-filter followed by an
exact containment test) and folded into one slot per admin level.
"""
from collections import defaultdict
from enum import Enum
from typing import Dict, List, Optional, Sequence

from src.geoenrich.gateway.base import SpatialGateway
from src.geoenrich.models.boundary import AdminBoundary, AdminLevel
from src.geoenrich.models.location import BoundaryInfo, EnrichedLocation
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.utils.logger import get_logger

logger = get_logger(__name__)


class TieBreak(str, Enum):
    """How to pick one boundary when several share a level."""

    SMALLEST_AREA = "smallest_area"
    FIRST = "first"


class BoundaryResolver:
    """
    Resolves points to enriched locations.

    A point outside every known boundary resolves to None. Batches are
    answered with a single gateway call and results stay index-aligned with
    the input.
    """

    def __init__(self, gateway: SpatialGateway, tie_break: TieBreak = TieBreak.SMALLEST_AREA):
        """
        Initialize resolver.

        Args:
            gateway: Spatial gateway to query
            tie_break: Rule for several boundaries at the same level
        """
        self.gateway = gateway
        self.tie_break = TieBreak(tie_break)

    def resolve_one(self, point: GeoPoint) -> Optional[EnrichedLocation]:
        """
        Resolve a single point.

        Args:
            point: Point to resolve

        Returns:
            EnrichedLocation, or None when no boundary contains the point
        """
        return self.build_location(self.gateway.containing_boundaries(point))

    def resolve_batch(self, points: Sequence[GeoPoint]) -> List[Optional[EnrichedLocation]]:
        """
        Resolve many points with one gateway round-trip.

        Args:
            points: Points to resolve

        Returns:
            One entry per input point, in input order
        """
        if not points:
            return []

        candidates = self.gateway.containing_boundaries_batch(points)
        if len(candidates) != len(points):
            raise ValueError(
                f"Gateway returned {len(candidates)} result sets for {len(points)} points"
            )

        results = [self.build_location(boundaries) for boundaries in candidates]
        logger.debug(
            "boundaries_resolved",
            points=len(points),
            resolved=sum(1 for r in results if r is not None),
        )
        return results

    def build_location(self, boundaries: Sequence[AdminBoundary]) -> Optional[EnrichedLocation]:
        """Fold containing boundaries into one slot per admin level."""
        selected = self.select_per_level(boundaries)
        if not selected:
            return None

        return EnrichedLocation(**{
            level.slot: to_boundary_info(boundary)
            for level, boundary in selected.items()
        })

    def select_per_level(self, boundaries: Sequence[AdminBoundary]) -> Dict[AdminLevel, AdminBoundary]:
        """
        Choose one boundary per known admin level.

        Ties are broken deterministically: smallest area first (unknown area
        sorts last), then lowest id. With TieBreak.FIRST the gateway order
        decides.
        """
        by_level: Dict[AdminLevel, List[AdminBoundary]] = defaultdict(list)
        for boundary in boundaries:
            level = boundary.level
            if level is not None:
                by_level[level].append(boundary)

        selected = {}
        for level in sorted(by_level):
            group = by_level[level]
            if len(group) > 1:
                logger.warning(
                    "boundary_level_ambiguous",
                    admin_level=int(level),
                    boundary_ids=[b.id for b in group],
                    tie_break=self.tie_break.value,
                )
                if self.tie_break == TieBreak.SMALLEST_AREA:
                    group = sorted(group, key=_area_then_id)
            selected[level] = group[0]
        return selected


def to_boundary_info(boundary: AdminBoundary) -> BoundaryInfo:
    """Convert a boundary to its slot representation."""
    return BoundaryInfo(
        id=boundary.id,
        name=boundary.name,
        translate_names=boundary.translated_names() or None,
    )


def _area_then_id(boundary: AdminBoundary):
    area = boundary.area_sq_km
    return (area is None, area if area is not None else 0.0, boundary.id)
