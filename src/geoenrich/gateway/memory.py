"""
In-Memory Spatial Gateway

Evaluates query plans against boundaries, stops and lines held in process,
indexed with shapely STRtree R-trees. Used for tests, local development and
small deployments that ship a GeoJSON extract instead of a PostGIS database.
"""
import json
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pyproj import Geod, Transformer
from shapely.geometry import Point, box, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform
from shapely.strtree import STRtree

from src.geoenrich.exceptions import GatewayQueryError
from src.geoenrich.gateway.base import SpatialGateway, DEFAULT_BOUNDARY_EXPANSION_DEGREES
from src.geoenrich.gateway.query_plan import (
    ContainsAnchor,
    EnvelopeAround,
    FieldIn,
    FieldNotEmpty,
    Layer,
    Predicate,
    QueryPlan,
    WithinMeters,
)
from src.geoenrich.models.boundary import AdminBoundary, TRANSLATION_LANGUAGES
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.models.transit import StopCandidate, TransitLine, TransitMode, TransitStop
from src.geoenrich.utils.geo_utils import expand_bbox, haversine_distance, meters_to_degrees
from src.geoenrich.utils.logger import get_logger

logger = get_logger(__name__)

WGS84_EPSG = 4326
WEB_MERCATOR_EPSG = 3857
MAX_MERCATOR_LAT = 85.05112878

Record = Union[AdminBoundary, TransitStop, TransitLine]


@dataclass(frozen=True)
class _IndexedLayer:
    """Records of one layer with their geometries and R-tree."""

    records: List[Any]
    geometries: List[BaseGeometry]
    tree: Optional[STRtree]

    @classmethod
    def build(cls, records: List[Any], geometries: List[BaseGeometry]) -> "_IndexedLayer":
        tree = STRtree(geometries) if geometries else None
        return cls(records=records, geometries=geometries, tree=tree)

    def query(self, envelope: Optional[BaseGeometry]) -> List[int]:
        if self.tree is None:
            return []
        if envelope is None:
            return list(range(len(self.records)))
        return sorted(int(i) for i in self.tree.query(envelope))


class InMemorySpatialGateway(SpatialGateway):
    """
    Spatial gateway backed by in-process R-trees.

    Boundaries and lines must carry geometries. Lines are indexed in Web
    Mercator and their distances are scaled back to meters by the cosine of
    the anchor latitude, which holds well at line-proximity ranges.
    """

    def __init__(
        self,
        boundaries: Sequence[AdminBoundary] = (),
        stops: Sequence[TransitStop] = (),
        lines: Sequence[Tuple[TransitLine, BaseGeometry]] = (),
        boundary_expansion_degrees: float = DEFAULT_BOUNDARY_EXPANSION_DEGREES,
    ):
        """
        Initialize the gateway and build spatial indexes.

        Args:
            boundaries: Boundaries with polygon geometries
            stops: Transit stops
            lines: (line, WGS84 geometry) pairs
            boundary_expansion_degrees: Envelope pre-filter half-width
        """
        super().__init__(boundary_expansion_degrees)
        self._geod = Geod(ellps="WGS84")
        self._to_mercator = Transformer.from_crs(
            f"EPSG:{WGS84_EPSG}",
            f"EPSG:{WEB_MERCATOR_EPSG}",
            always_xy=True
        )

        missing = [b.id for b in boundaries if b.geometry is None]
        if missing:
            raise ValueError(f"Boundaries without geometry: {missing}")
        boundary_records = [self._with_area(b) for b in boundaries]

        self._layers: Dict[Layer, _IndexedLayer] = {
            Layer.BOUNDARIES: _IndexedLayer.build(
                boundary_records, [b.geometry for b in boundary_records]
            ),
            Layer.STOPS: _IndexedLayer.build(
                list(stops), [Point(s.lon, s.lat) for s in stops]
            ),
            Layer.LINES: _IndexedLayer.build(
                [line for line, _ in lines],
                [self._project(geom) for _, geom in lines],
            ),
        }

        logger.info(
            "memory_gateway_initialized",
            boundaries=len(boundary_records),
            stops=len(stops),
            lines=len(lines),
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_geojson(
        cls,
        path: Union[str, Path],
        boundary_expansion_degrees: float = DEFAULT_BOUNDARY_EXPANSION_DEGREES,
    ) -> "InMemorySpatialGateway":
        """
        Load a FeatureCollection whose features carry a `layer` property.

        Supported layers are "boundary", "stop" and "line". Translations may be
        given as a `names` object or as `name:<lang>` properties.

        Args:
            path: Path to the GeoJSON file
            boundary_expansion_degrees: Envelope pre-filter half-width

        Returns:
            Gateway holding every feature of the file
        """
        with open(path, encoding="utf-8") as fh:
            collection = json.load(fh)

        boundaries, stops, lines = [], [], []
        for feature in collection.get("features", []):
            props = feature.get("properties") or {}
            geometry = shape(feature["geometry"])
            layer = props.get("layer")

            if layer == "boundary":
                boundaries.append(AdminBoundary(
                    id=int(props["id"]),
                    name=props.get("name") or "",
                    admin_level=int(props["admin_level"]),
                    names=_read_names(props),
                    area_sq_km=props.get("area_sq_km"),
                    population=props.get("population"),
                    geometry=geometry,
                ))
            elif layer == "stop":
                stops.append(TransitStop(
                    id=int(props["id"]),
                    name=props.get("name") or "",
                    mode=TransitMode.from_tag(props.get("mode")),
                    lat=geometry.y,
                    lon=geometry.x,
                    names=_read_names(props),
                    generic_platform=bool(props.get("generic_platform", False)),
                ))
            elif layer == "line":
                lines.append((TransitLine(
                    id=int(props["id"]),
                    name=props.get("name"),
                    ref=props.get("ref"),
                    mode=TransitMode.from_tag(props.get("mode")),
                    color=props.get("color"),
                ), geometry))
            else:
                logger.warning("geojson_feature_skipped", layer=layer, feature_id=props.get("id"))

        logger.info("geojson_fixture_loaded", path=str(path), features=len(collection.get("features", [])))
        return cls(boundaries, stops, lines, boundary_expansion_degrees)

    # ------------------------------------------------------------------
    # Plan execution
    # ------------------------------------------------------------------

    def execute_boundaries(self, plan: QueryPlan, anchors: List[GeoPoint]) -> List[List[AdminBoundary]]:
        return [[record for record, _ in self._run(plan, anchor)] for anchor in anchors]

    def execute_stops(self, plan: QueryPlan, anchors: List[GeoPoint]) -> List[List[StopCandidate]]:
        results = []
        for anchor in anchors:
            results.append([
                StopCandidate(stop=record, distance_m=distance)
                for record, distance in self._run(plan, anchor)
            ])
        return results

    def execute_lines(self, plan: QueryPlan, anchors: List[GeoPoint]) -> List[List[TransitLine]]:
        return [[record for record, _ in self._run(plan, anchor)] for anchor in anchors]

    def _run(self, plan: QueryPlan, anchor: GeoPoint) -> List[Tuple[Record, float]]:
        """Evaluate a plan for one anchor, returning (record, distance_m) rows."""
        layer = self._layers[plan.layer]
        anchor_point = Point(anchor.lon, anchor.lat)
        anchor_projected = self._project(anchor_point) if plan.layer == Layer.LINES else None

        rows = []
        for idx in layer.query(self._envelope(plan, anchor, anchor_projected)):
            record = layer.records[idx]
            geometry = layer.geometries[idx]
            distance = self._distance(plan.layer, geometry, anchor, anchor_projected)
            if all(
                self._matches(predicate, record, geometry, anchor_point, distance)
                for predicate in plan.predicates
            ):
                rows.append((record, distance))

        for order in reversed(plan.order_by):
            rows.sort(
                key=lambda row: _sort_value(order.key, row[0], row[1]),
                reverse=order.descending,
            )

        if plan.limit is not None:
            rows = rows[:plan.limit]
        return rows

    def _envelope(
        self,
        plan: QueryPlan,
        anchor: GeoPoint,
        anchor_projected: Optional[Point],
    ) -> Optional[BaseGeometry]:
        """Coarse R-tree window implied by the plan's spatial predicates."""
        around = plan.find(EnvelopeAround)
        if around is not None:
            return box(*expand_bbox(anchor.lat, anchor.lon, around.degrees))

        within = plan.find(WithinMeters)
        if within is not None and anchor_projected is not None:
            units = within.meters / _mercator_scale(anchor.lat)
            return anchor_projected.buffer(units).envelope
        if within is not None:
            lat_deg, lon_deg = meters_to_degrees(within.meters, anchor.lat)
            return box(anchor.lon - lon_deg, anchor.lat - lat_deg, anchor.lon + lon_deg, anchor.lat + lat_deg)

        if plan.find(ContainsAnchor) is not None:
            return Point(anchor.lon, anchor.lat)
        return None

    def _matches(
        self,
        predicate: Predicate,
        record: Record,
        geometry: BaseGeometry,
        anchor_point: Point,
        distance: float,
    ) -> bool:
        if isinstance(predicate, EnvelopeAround):
            return True  # applied by the R-tree window
        if isinstance(predicate, ContainsAnchor):
            return geometry.contains(anchor_point)
        if isinstance(predicate, WithinMeters):
            return distance <= predicate.meters
        if isinstance(predicate, FieldIn):
            return _attribute(record, predicate.field) in predicate.values
        if isinstance(predicate, FieldNotEmpty):
            return _attribute(record, predicate.field) not in (None, "")
        raise GatewayQueryError("memory_query", f"unsupported predicate {predicate!r}")

    # ------------------------------------------------------------------
    # Geometry helpers
    # ------------------------------------------------------------------

    def _project(self, geometry: BaseGeometry) -> BaseGeometry:
        """Project a WGS84 geometry to Web Mercator, clamping polar latitudes."""
        def _clamped(x, y, z=None):
            if isinstance(y, (int, float)):
                y = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, y))
            else:
                y = [max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, v)) for v in y]
            return self._to_mercator.transform(x, y)
        return transform(_clamped, geometry)

    def _distance(
        self,
        layer: Layer,
        geometry: BaseGeometry,
        anchor: GeoPoint,
        anchor_projected: Optional[Point],
    ) -> float:
        """Meters for stops and lines, zero for boundaries."""
        if layer == Layer.STOPS:
            return haversine_distance(anchor.lat, anchor.lon, geometry.y, geometry.x)
        if layer == Layer.LINES and anchor_projected is not None:
            return geometry.distance(anchor_projected) * _mercator_scale(anchor.lat)
        return 0.0

    def _with_area(self, boundary: AdminBoundary) -> AdminBoundary:
        if boundary.area_sq_km is not None:
            return boundary
        area_m2, _ = self._geod.geometry_area_perimeter(boundary.geometry)
        return replace(boundary, area_sq_km=abs(area_m2) / 1_000_000)


def _mercator_scale(lat: float) -> float:
    """Meters per Web Mercator unit near latitude `lat`."""
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    return math.cos(math.radians(lat))


def _attribute(record: Record, name: str) -> Any:
    value = getattr(record, name)
    return value.value if isinstance(value, TransitMode) else value


def _sort_value(key: str, record: Record, distance: float) -> Any:
    if key == "distance":
        return distance
    value = _attribute(record, key)
    return (value is None, value if value is not None else 0)


def _read_names(props: Dict[str, Any]) -> Dict[str, str]:
    names = dict(props.get("names") or {})
    for lang in TRANSLATION_LANGUAGES:
        value = props.get(f"name:{lang}")
        if value and lang not in names:
            names[lang] = value
    return names
