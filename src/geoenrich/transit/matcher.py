"""
Transit Matcher

Finds the nearest transit stops for points, applying priority tiers and
name deduplication, attaches the lines serving each stop and, when
available, walking distance and duration.
"""
from typing import Dict, List, Optional, Sequence

from src.geoenrich.exceptions import RoutingError
from src.geoenrich.gateway.base import SpatialGateway
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.models.transit import NearestStop, TransitLine, TransitStop
from src.geoenrich.transit.priority import (
    LINE_MODES,
    RankedCandidate,
    dedupe_lines,
    select_by_priority,
)
from src.geoenrich.transit.routing import RoutingClient, WalkingEstimator, WalkingMetrics
from src.geoenrich.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_RADIUS_M = 1500.0
DEFAULT_LIMIT = 5
MAX_LIMIT = 10
DEFAULT_LINE_PROXIMITY_M = 100.0
DEFAULT_LINE_LIMIT = 50


class TransitMatcher:
    """
    Matches points to nearby transit stops.

    Batches cost one gateway call for stops and one for lines regardless of
    the number of points.
    """

    def __init__(
        self,
        gateway: SpatialGateway,
        max_limit: int = MAX_LIMIT,
        line_proximity_m: float = DEFAULT_LINE_PROXIMITY_M,
        line_limit: int = DEFAULT_LINE_LIMIT,
        routing_client: Optional[RoutingClient] = None,
        walking_estimator: Optional[WalkingEstimator] = None,
    ):
        """
        Initialize matcher.

        Args:
            gateway: Spatial gateway to query
            max_limit: Ceiling on stops per point
            line_proximity_m: Line-to-stop distance threshold in meters
            line_limit: Maximum lines reported per stop
            routing_client: Optional walking router
            walking_estimator: Optional heuristic used when routing is absent or fails
        """
        self.gateway = gateway
        self.max_limit = max_limit
        self.line_proximity_m = line_proximity_m
        self.line_limit = line_limit
        self.routing_client = routing_client
        self.walking_estimator = walking_estimator

    def normalize_radius(self, radius_m: Optional[float]) -> float:
        """Non-positive or missing radius falls back to the default."""
        if radius_m is None or radius_m <= 0:
            return DEFAULT_RADIUS_M
        return float(radius_m)

    def clamp_limit(self, limit: Optional[int]) -> int:
        """Non-positive, missing or oversized limits are clamped to the ceiling."""
        if limit is None or limit <= 0 or limit > self.max_limit:
            return self.max_limit
        return limit

    def nearest_one(
        self,
        point: GeoPoint,
        radius_m: Optional[float] = DEFAULT_RADIUS_M,
        limit: Optional[int] = DEFAULT_LIMIT,
    ) -> List[NearestStop]:
        """
        Nearest stops for a single point.

        Args:
            point: Search point
            radius_m: Search radius in meters
            limit: Maximum stops to return

        Returns:
            Stops ordered by tier, then distance
        """
        return self.nearest_batch([point], radius_m, limit)[0]

    def nearest_batch(
        self,
        points: Sequence[GeoPoint],
        radius_m: Optional[float] = DEFAULT_RADIUS_M,
        limit_per_point: Optional[int] = DEFAULT_LIMIT,
    ) -> List[List[NearestStop]]:
        """
        Nearest stops for many points.

        Each point's stops come only from that point's own radius.

        Returns:
            One stop list per input point, in input order
        """
        if not points:
            return []

        radius = self.normalize_radius(radius_m)
        limit = self.clamp_limit(limit_per_point)

        candidate_sets = self.gateway.nearest_stops_batch(points, radius)
        if len(candidate_sets) != len(points):
            raise ValueError(
                f"Gateway returned {len(candidate_sets)} result sets for {len(points)} points"
            )

        selections = [select_by_priority(candidates, limit) for candidates in candidate_sets]
        lines_by_stop = self._lines_for(selections)

        results = [
            self._build_stops(point, selection, lines_by_stop)
            for point, selection in zip(points, selections)
        ]

        logger.debug(
            "transit_matched",
            points=len(points),
            radius_m=radius,
            limit=limit,
            stops=sum(len(r) for r in results),
        )
        return results

    def _lines_for(self, selections: List[List[RankedCandidate]]) -> Dict[int, List[TransitLine]]:
        """Fetch and deduplicate lines for every distinct selected stop in one call."""
        stops: Dict[int, TransitStop] = {}
        for selection in selections:
            for ranked in selection:
                stops.setdefault(ranked.candidate.stop.id, ranked.candidate.stop)
        if not stops:
            return {}

        ordered = [stops[stop_id] for stop_id in sorted(stops)]
        line_sets = self.gateway.lines_near_batch(
            [stop.point for stop in ordered], self.line_proximity_m, LINE_MODES
        )
        return {
            stop.id: dedupe_lines(lines, self.line_limit)
            for stop, lines in zip(ordered, line_sets)
        }

    def _build_stops(
        self,
        point: GeoPoint,
        selection: List[RankedCandidate],
        lines_by_stop: Dict[int, List[TransitLine]],
    ) -> List[NearestStop]:
        walking = self._walking_metrics(point, selection)
        stops = []
        for ranked, metrics in zip(selection, walking):
            stop = ranked.candidate.stop
            stops.append(NearestStop(
                station_id=stop.id,
                name=stop.name,
                name_en=stop.names.get("en") or None,
                type=stop.mode.value,
                lat=stop.lat,
                lon=stop.lon,
                distance=round(ranked.candidate.distance_m, 1),
                priority=ranked.tier,
                walking_distance=metrics.distance_m if metrics else None,
                walking_duration=metrics.duration_s if metrics else None,
                lines=[line.to_info() for line in lines_by_stop.get(stop.id, [])],
            ))
        return stops

    def _walking_metrics(
        self,
        point: GeoPoint,
        selection: List[RankedCandidate],
    ) -> List[Optional[WalkingMetrics]]:
        """Routed metrics where possible, heuristic estimate otherwise."""
        metrics: List[Optional[WalkingMetrics]] = [None] * len(selection)
        if not selection:
            return metrics

        if self.routing_client is not None:
            try:
                metrics = self.routing_client.walking_metrics(
                    point, [ranked.candidate.stop.point for ranked in selection]
                )
            except RoutingError as e:
                logger.warning("walking_routing_failed", error=str(e), stops=len(selection))
                metrics = [None] * len(selection)

            if len(metrics) != len(selection):
                logger.warning(
                    "walking_routing_mismatch",
                    expected=len(selection),
                    received=len(metrics),
                )
                metrics = [None] * len(selection)

        if self.walking_estimator is not None:
            metrics = [
                m if m is not None else self.walking_estimator.estimate(ranked.candidate.distance_m)
                for m, ranked in zip(metrics, selection)
            ]
        return metrics
