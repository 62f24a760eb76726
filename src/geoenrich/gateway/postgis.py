"""
PostGIS Spatial Gateway

Compiles query plans into SQLAlchemy/GeoAlchemy2 statements. All anchors of a
batch are shipped as one VALUES relation and joined against the spatial
table, so a batch costs a single round-trip; per-anchor ordering and limits
are applied with a ROW_NUMBER() window partitioned by anchor.
"""
from typing import Callable, Dict, List, Optional, Type

from geoalchemy2 import Geography
from sqlalchemy import Float, Integer, and_, cast, column, exc, func, literal, select, values
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.sql import ColumnElement, Select

from config.settings import Settings
from src.geoenrich.db.base import Base
from src.geoenrich.db.models import (
    AdminBoundaryRecord,
    SRID_WGS84,
    TransitLineRecord,
    TransitStopRecord,
)
from src.geoenrich.db.session import (
    close_connections,
    create_db_engine,
    create_session_factory,
    health_check,
    session_scope,
    with_retry,
)
from src.geoenrich.exceptions import GatewayQueryError, GatewayUnavailableError
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
from src.geoenrich.models.boundary import AdminBoundary
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.models.transit import StopCandidate, TransitLine
from src.geoenrich.utils.logger import get_logger

logger = get_logger(__name__)

LAYER_MODELS: Dict[Layer, Type[Base]] = {
    Layer.BOUNDARIES: AdminBoundaryRecord,
    Layer.STOPS: TransitStopRecord,
    Layer.LINES: TransitLineRecord,
}

_UNAVAILABLE_ERRORS = (exc.OperationalError, exc.DisconnectionError, exc.InterfaceError)


class PlanCompiler:
    """
    Translates QueryPlan objects into SQLAlchemy select statements.

    The anchor point is an SQL expression, so the same translation serves one
    point or a VALUES list of points.
    """

    def anchors_relation(self, anchors: List[GeoPoint]):
        """VALUES (anchor_idx, lon, lat) relation for a batch of points."""
        return values(
            column("anchor_idx", Integer),
            column("lon", Float),
            column("lat", Float),
            name="anchors",
        ).data([(idx, point.lon, point.lat) for idx, point in enumerate(anchors)])

    def predicate(self, predicate: Predicate, model: Type[Base], anchor_geom: ColumnElement) -> ColumnElement:
        if isinstance(predicate, EnvelopeAround):
            return model.geom.op("&&")(func.ST_Expand(anchor_geom, predicate.degrees))
        if isinstance(predicate, ContainsAnchor):
            return func.ST_Contains(model.geom, anchor_geom)
        if isinstance(predicate, WithinMeters):
            return func.ST_DWithin(
                cast(model.geom, Geography(srid=SRID_WGS84)),
                cast(anchor_geom, Geography(srid=SRID_WGS84)),
                predicate.meters,
            )
        if isinstance(predicate, FieldIn):
            return getattr(model, predicate.field).in_(list(predicate.values))
        if isinstance(predicate, FieldNotEmpty):
            col = getattr(model, predicate.field)
            return and_(col.isnot(None), col != "")
        raise GatewayQueryError("compile_plan", f"unsupported predicate {predicate!r}")

    def distance(self, layer: Layer, model: Type[Base], anchor_geom: ColumnElement) -> ColumnElement:
        """Geodesic meters for stops and lines, zero for boundaries."""
        if layer in (Layer.STOPS, Layer.LINES):
            return func.ST_Distance(
                cast(model.geom, Geography(srid=SRID_WGS84)),
                cast(anchor_geom, Geography(srid=SRID_WGS84)),
            )
        return literal(0.0, Float)

    def statement(self, plan: QueryPlan, anchors: List[GeoPoint]) -> Select:
        """
        Build the batched statement for a plan.

        Returns:
            Select yielding (anchor_idx, distance, <mapped record>) rows ordered
            by anchor then rank
        """
        model = LAYER_MODELS[plan.layer]
        anchors_rel = self.anchors_relation(anchors)
        anchor_geom = func.ST_SetSRID(
            func.ST_MakePoint(anchors_rel.c.lon, anchors_rel.c.lat), SRID_WGS84
        )

        condition = and_(*[self.predicate(p, model, anchor_geom) for p in plan.predicates])
        distance = self.distance(plan.layer, model, anchor_geom)

        ordering = []
        for order in plan.order_by:
            key = distance if order.key == "distance" else getattr(model, order.key)
            ordering.append(key.desc() if order.descending else key.asc())

        ranked = (
            select(
                anchors_rel.c.anchor_idx,
                model.id.label("record_id"),
                distance.label("distance"),
                func.row_number().over(
                    partition_by=anchors_rel.c.anchor_idx,
                    order_by=ordering or [model.id.asc()],
                ).label("rank"),
            )
            .select_from(anchors_rel)
            .join(model, condition)
            .subquery("ranked")
        )

        stmt = (
            select(ranked.c.anchor_idx, ranked.c.distance, model)
            .select_from(ranked)
            .join(model, model.id == ranked.c.record_id)
        )
        if plan.limit is not None:
            stmt = stmt.where(ranked.c.rank <= plan.limit)
        return stmt.order_by(ranked.c.anchor_idx, ranked.c.rank)


class PostGISSpatialGateway(SpatialGateway):
    """
    Spatial gateway backed by a PostGIS database.

    Connectivity failures surface as GatewayUnavailableError, everything else
    SQLAlchemy raises surfaces as GatewayQueryError.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        engine: Optional[Engine] = None,
        boundary_expansion_degrees: float = DEFAULT_BOUNDARY_EXPANSION_DEGREES,
    ):
        """
        Initialize the gateway.

        Args:
            session_factory: Callable returning a new Session
            engine: Engine to dispose on close, when owned by the gateway
            boundary_expansion_degrees: Envelope pre-filter half-width
        """
        super().__init__(boundary_expansion_degrees)
        self._session_factory = session_factory
        self._engine = engine
        self.compiler = PlanCompiler()

    @classmethod
    def from_settings(cls, config: Settings) -> "PostGISSpatialGateway":
        engine = create_db_engine(config)
        return cls(
            create_session_factory(engine),
            engine=engine,
            boundary_expansion_degrees=config.boundary_expansion_degrees,
        )

    def execute_boundaries(self, plan: QueryPlan, anchors: List[GeoPoint]) -> List[List[AdminBoundary]]:
        grouped = self._fetch("containing_boundaries", plan, anchors)
        return [[record for record, _ in rows] for rows in grouped]

    def execute_stops(self, plan: QueryPlan, anchors: List[GeoPoint]) -> List[List[StopCandidate]]:
        grouped = self._fetch("nearest_stops", plan, anchors)
        return [
            [StopCandidate(stop=record, distance_m=float(distance)) for record, distance in rows]
            for rows in grouped
        ]

    def execute_lines(self, plan: QueryPlan, anchors: List[GeoPoint]) -> List[List[TransitLine]]:
        grouped = self._fetch("lines_near", plan, anchors)
        return [[record for record, _ in rows] for rows in grouped]

    def _fetch(self, operation: str, plan: QueryPlan, anchors: List[GeoPoint]) -> List[list]:
        """Run a plan and group (domain record, distance) rows by anchor index."""
        stmt = self.compiler.statement(plan, anchors)
        logger.debug("spatial_query", operation=operation, plan=plan.describe(), anchors=len(anchors))

        try:
            rows = self._execute(stmt)
        except _UNAVAILABLE_ERRORS as e:
            raise GatewayUnavailableError(operation, str(e)) from e
        except exc.SQLAlchemyError as e:
            raise GatewayQueryError(operation, str(e)) from e

        grouped: List[list] = [[] for _ in anchors]
        for anchor_idx, distance, record in rows:
            grouped[anchor_idx].append((record, distance))
        return grouped

    @with_retry(max_retries=2, retry_delay=0.1)
    def _execute(self, stmt: Select) -> list:
        with session_scope(self._session_factory) as session:
            return [
                (anchor_idx, distance, record.to_domain())
                for anchor_idx, distance, record in session.execute(stmt).all()
            ]

    def health_check(self) -> bool:
        return health_check(self._session_factory)

    def close(self) -> None:
        if self._engine is not None:
            close_connections(self._engine)
