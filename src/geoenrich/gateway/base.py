"""
Spatial Gateway Contract

Backend-neutral access to administrative boundaries, transit stops and
transit lines. Every lookup exists in a single-point and a batched form; the
batched form answers all points in one backend round-trip and returns one
result list per input point, in input order.
"""
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence

from src.geoenrich.gateway.query_plan import Layer, QueryBuilder, QueryPlan
from src.geoenrich.models.boundary import AdminBoundary, AdminLevel
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.models.transit import StopCandidate, TransitLine, TransitMode

DEFAULT_BOUNDARY_EXPANSION_DEGREES = 0.1


class SpatialGateway(ABC):
    """
    Read-only spatial store.

    Subclasses implement the three plan executors; plan construction and the
    public lookup methods live here so every backend answers the same queries.
    """

    def __init__(self, boundary_expansion_degrees: float = DEFAULT_BOUNDARY_EXPANSION_DEGREES):
        self.boundary_expansion_degrees = boundary_expansion_degrees

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def boundary_plan(self) -> QueryPlan:
        """Boundaries of known admin levels containing the anchor, coarse first."""
        return (
            QueryBuilder(Layer.BOUNDARIES)
            .envelope_around(self.boundary_expansion_degrees)
            .contains_anchor()
            .field_in("admin_level", [level.value for level in AdminLevel])
            .order_by("admin_level")
            .order_by("id")
            .build()
        )

    @staticmethod
    def stop_plan(
        radius_m: float,
        limit: Optional[int] = None,
        modes: Optional[Iterable[TransitMode]] = None,
    ) -> QueryPlan:
        """Named stops within radius, nearest first."""
        builder = QueryBuilder(Layer.STOPS).within_meters(radius_m).field_not_empty("name")
        if modes is not None:
            builder.field_in("mode", [mode.value for mode in modes])
        return builder.order_by("distance").order_by("id").limit(limit).build()

    @staticmethod
    def line_plan(
        threshold_m: float,
        modes: Iterable[TransitMode],
        limit: Optional[int] = None,
    ) -> QueryPlan:
        """Lines of the given modes passing within threshold_m meters of the anchor."""
        return (
            QueryBuilder(Layer.LINES)
            .within_meters(threshold_m)
            .field_in("mode", [mode.value for mode in modes])
            .order_by("id")
            .limit(limit)
            .build()
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def containing_boundaries(self, point: GeoPoint) -> List[AdminBoundary]:
        return self.containing_boundaries_batch([point])[0]

    def containing_boundaries_batch(self, points: Sequence[GeoPoint]) -> List[List[AdminBoundary]]:
        if not points:
            return []
        return self.execute_boundaries(self.boundary_plan(), list(points))

    def nearest_stops(
        self,
        point: GeoPoint,
        radius_m: float,
        limit: Optional[int] = None,
        modes: Optional[Iterable[TransitMode]] = None,
    ) -> List[StopCandidate]:
        return self.nearest_stops_batch([point], radius_m, limit, modes)[0]

    def nearest_stops_batch(
        self,
        points: Sequence[GeoPoint],
        radius_m: float,
        limit: Optional[int] = None,
        modes: Optional[Iterable[TransitMode]] = None,
    ) -> List[List[StopCandidate]]:
        if not points:
            return []
        return self.execute_stops(self.stop_plan(radius_m, limit, modes), list(points))

    def lines_near(
        self,
        point: GeoPoint,
        threshold_m: float,
        modes: Iterable[TransitMode],
    ) -> List[TransitLine]:
        return self.lines_near_batch([point], threshold_m, modes)[0]

    def lines_near_batch(
        self,
        points: Sequence[GeoPoint],
        threshold_m: float,
        modes: Iterable[TransitMode],
    ) -> List[List[TransitLine]]:
        if not points:
            return []
        return self.execute_lines(self.line_plan(threshold_m, modes), list(points))

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def execute_boundaries(self, plan: QueryPlan, anchors: List[GeoPoint]) -> List[List[AdminBoundary]]:
        """Run a boundary plan for every anchor."""

    @abstractmethod
    def execute_stops(self, plan: QueryPlan, anchors: List[GeoPoint]) -> List[List[StopCandidate]]:
        """Run a stop plan for every anchor."""

    @abstractmethod
    def execute_lines(self, plan: QueryPlan, anchors: List[GeoPoint]) -> List[List[TransitLine]]:
        """Run a line plan for every anchor."""

    def health_check(self) -> bool:
        """Return True when the backend can answer queries."""
        return True

    def close(self) -> None:
        """Release backend resources."""
