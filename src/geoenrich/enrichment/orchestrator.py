"""
Enrichment Orchestrator

Combines boundary resolution and transit matching for a batch of locations.
Both lookups run once for the whole batch; results are index-aligned with
the input and a failing item never affects its neighbours.
"""
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from src.geoenrich.exceptions import GatewayQueryError, GatewayUnavailableError
from src.geoenrich.models.location import (
    BatchMeta,
    EnrichedLocationResult,
    EnrichmentBatchResult,
    LocationDoneEvent,
    LocationEvent,
    LocationInput,
)
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.resolvers.boundary_resolver import BoundaryResolver
from src.geoenrich.transit.matcher import DEFAULT_LIMIT, DEFAULT_RADIUS_M, TransitMatcher
from src.geoenrich.utils.logger import get_logger

logger = get_logger(__name__)

NO_COORDINATES_ERROR = "location has no coordinates"
INVALID_COORDINATES_ERROR = "invalid coordinates"


@dataclass
class _StageOutcome:
    value: Any = None
    error: Optional[str] = None


class EnrichmentOrchestrator:
    """
    Runs the enrichment of a batch of locations.

    Stateless between calls: the same input always yields the same output.
    """

    def __init__(
        self,
        boundary_resolver: BoundaryResolver,
        transit_matcher: TransitMatcher,
        transit_radius_m: float = DEFAULT_RADIUS_M,
        transit_limit: int = DEFAULT_LIMIT,
        transit_visible_only: bool = False,
    ):
        """
        Initialize orchestrator.

        Args:
            boundary_resolver: Resolver for administrative hierarchy
            transit_matcher: Matcher for nearby stops
            transit_radius_m: Transit search radius in meters
            transit_limit: Stops per location
            transit_visible_only: Only search transit for visible addresses
        """
        self.boundary_resolver = boundary_resolver
        self.transit_matcher = transit_matcher
        self.transit_radius_m = transit_radius_m
        self.transit_limit = transit_limit
        self.transit_visible_only = transit_visible_only

    def enrich_batch(self, locations: Sequence[LocationInput]) -> EnrichmentBatchResult:
        """
        Enrich a batch of locations.

        Args:
            locations: Items to enrich

        Returns:
            One result per input item, in input order, plus counters

        Raises:
            GatewayUnavailableError: If the spatial store cannot be reached
        """
        if not locations:
            return EnrichmentBatchResult()

        errors: List[Optional[str]] = [None] * len(locations)
        resolvable: List[int] = []
        for pos, location in enumerate(locations):
            if not location.has_coordinates():
                errors[pos] = NO_COORDINATES_ERROR
            elif not location.has_valid_coordinates():
                errors[pos] = INVALID_COORDINATES_ERROR
            else:
                resolvable.append(pos)

        points = [locations[pos].point() for pos in resolvable]
        boundary_outcomes = self._run_stage(
            "boundary resolution",
            self.boundary_resolver.resolve_batch,
            self.boundary_resolver.resolve_one,
            points,
        )

        transit_positions = [
            pos for pos in resolvable
            if not self.transit_visible_only or locations[pos].is_visible
        ]
        transit_outcomes = self._run_stage(
            "transit search",
            lambda pts: self.transit_matcher.nearest_batch(pts, self.transit_radius_m, self.transit_limit),
            lambda pt: self.transit_matcher.nearest_one(pt, self.transit_radius_m, self.transit_limit),
            [locations[pos].point() for pos in transit_positions],
        )

        boundary_by_pos = dict(zip(resolvable, boundary_outcomes))
        transit_by_pos = dict(zip(transit_positions, transit_outcomes))

        results = []
        for pos, location in enumerate(locations):
            boundary = boundary_by_pos.get(pos)
            transit = transit_by_pos.get(pos)
            error = errors[pos] or (boundary.error if boundary else None) or (transit.error if transit else None)

            if error is not None:
                results.append(EnrichedLocationResult(index=location.index, error=error))
                continue

            enriched = boundary.value
            if enriched is not None:
                enriched = enriched.model_copy(update={"is_address_visible": location.is_visible})

            results.append(EnrichedLocationResult(
                index=location.index,
                enriched_location=enriched,
                nearest_transport=transit.value if transit else [],
            ))

        meta = BatchMeta(
            total_locations=len(results),
            success_count=sum(1 for r in results if r.ok),
            error_count=sum(1 for r in results if not r.ok),
            with_transport=sum(1 for r in results if r.nearest_transport),
        )
        logger.info(
            "enrichment_batch_complete",
            total=meta.total_locations,
            success=meta.success_count,
            errors=meta.error_count,
            with_transport=meta.with_transport,
        )
        return EnrichmentBatchResult(results=results, meta=meta)

    def enrich_event(self, event: LocationEvent) -> LocationDoneEvent:
        """Enrich one inbound event and build its outbound event."""
        result = self.enrich_batch([LocationInput.from_event(0, event)]).results[0]
        return LocationDoneEvent.from_result(event.property_id, result)

    def _run_stage(
        self,
        stage: str,
        batch_call: Callable[[List[GeoPoint]], list],
        single_call: Callable[[GeoPoint], Any],
        points: List[GeoPoint],
    ) -> List[_StageOutcome]:
        """
        Run a batched lookup, isolating failing items on query errors.

        A GatewayQueryError for the batch re-runs the stage point by point so
        only the offending items carry an error.
        """
        if not points:
            return []

        try:
            return [_StageOutcome(value=value) for value in batch_call(points)]
        except GatewayUnavailableError:
            raise
        except GatewayQueryError as e:
            logger.warning("batch_stage_degraded", stage=stage, error=str(e), items=len(points))

        outcomes = []
        for point in points:
            try:
                outcomes.append(_StageOutcome(value=single_call(point)))
            except GatewayUnavailableError:
                raise
            except GatewayQueryError as e:
                logger.warning("item_stage_failed", stage=stage, lat=point.lat, lon=point.lon, error=e.detail)
                outcomes.append(_StageOutcome(error=f"{stage} failed: {e.detail}"))
        return outcomes
