"""
Spatial Query Plans

Typed description of a spatial lookup, independent of any storage engine.
A plan is evaluated once per anchor point: predicates refer to "the anchor"
implicitly, so the same plan can run for a single point or for a whole batch
of points in one round-trip. Backends translate plans into their own query
form (SQLAlchemy expressions, R-tree lookups) and never receive SQL text.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Tuple, Union


class Layer(str, Enum):
    """Spatial data set a plan reads from."""

    BOUNDARIES = "admin_boundaries"
    STOPS = "transit_stops"
    LINES = "transit_lines"


@dataclass(frozen=True)
class EnvelopeAround:
    """Geometry bounding box intersects the anchor expanded by `degrees`."""

    degrees: float


@dataclass(frozen=True)
class ContainsAnchor:
    """Geometry strictly contains the anchor point."""


@dataclass(frozen=True)
class WithinMeters:
    """Geodesic distance from geometry to anchor is at most `meters`."""

    meters: float


@dataclass(frozen=True)
class FieldIn:
    """Attribute value is one of `values`."""

    field: str
    values: Tuple

    def __post_init__(self):
        if not self.values:
            raise ValueError(f"FieldIn({self.field}) needs at least one value")


@dataclass(frozen=True)
class FieldNotEmpty:
    """Attribute is neither null nor an empty string."""

    field: str


Predicate = Union[EnvelopeAround, ContainsAnchor, WithinMeters, FieldIn, FieldNotEmpty]


@dataclass(frozen=True)
class OrderBy:
    """
    Sort key applied per anchor.

    `key` is an attribute name or "distance" for the distance to the anchor.
    """

    key: str
    descending: bool = False


@dataclass(frozen=True)
class QueryPlan:
    """
    A complete spatial lookup.

    Attributes:
        layer: Data set to read
        predicates: Conjunction of filters, all must hold
        order_by: Sort keys applied to each anchor's rows
        limit: Maximum rows per anchor, None for no limit
    """

    layer: Layer
    predicates: Tuple[Predicate, ...] = ()
    order_by: Tuple[OrderBy, ...] = ()
    limit: Optional[int] = None

    def find(self, predicate_type: type) -> Optional[Predicate]:
        """Return the first predicate of a given type, if any."""
        for predicate in self.predicates:
            if isinstance(predicate, predicate_type):
                return predicate
        return None

    def describe(self) -> str:
        """Human-readable one-line rendering for logs."""
        parts = [self.layer.value]
        if self.predicates:
            parts.append("where " + " and ".join(_describe_predicate(p) for p in self.predicates))
        if self.order_by:
            parts.append("order by " + ", ".join(
                f"{o.key}{' desc' if o.descending else ''}" for o in self.order_by
            ))
        if self.limit is not None:
            parts.append(f"limit {self.limit}")
        return " ".join(parts)


def _describe_predicate(predicate: Predicate) -> str:
    if isinstance(predicate, EnvelopeAround):
        return f"bbox&&anchor±{predicate.degrees}°"
    if isinstance(predicate, ContainsAnchor):
        return "contains(anchor)"
    if isinstance(predicate, WithinMeters):
        return f"dwithin(anchor,{predicate.meters}m)"
    if isinstance(predicate, FieldIn):
        return f"{predicate.field} in {list(predicate.values)}"
    if isinstance(predicate, FieldNotEmpty):
        return f"{predicate.field} not empty"
    return repr(predicate)


@dataclass
class QueryBuilder:
    """
    Fluent construction of a QueryPlan.

    Usage:
        plan = (
            QueryBuilder(Layer.STOPS)
            .within_meters(1500)
            .order_by("distance")
            .limit(10)
            .build()
        )
    """

    layer: Layer
    _predicates: list = field(default_factory=list)
    _order_by: list = field(default_factory=list)
    _limit: Optional[int] = None

    def envelope_around(self, degrees: float) -> "QueryBuilder":
        if degrees < 0:
            raise ValueError("Envelope expansion must be non-negative")
        self._predicates.append(EnvelopeAround(degrees))
        return self

    def contains_anchor(self) -> "QueryBuilder":
        self._predicates.append(ContainsAnchor())
        return self

    def within_meters(self, meters: float) -> "QueryBuilder":
        if meters <= 0:
            raise ValueError("Search distance must be positive")
        self._predicates.append(WithinMeters(meters))
        return self

    def field_in(self, name: str, values: Iterable) -> "QueryBuilder":
        self._predicates.append(FieldIn(name, tuple(values)))
        return self

    def field_not_empty(self, name: str) -> "QueryBuilder":
        self._predicates.append(FieldNotEmpty(name))
        return self

    def order_by(self, key: str, descending: bool = False) -> "QueryBuilder":
        self._order_by.append(OrderBy(key, descending))
        return self

    def limit(self, limit: Optional[int]) -> "QueryBuilder":
        if limit is not None and limit <= 0:
            raise ValueError("Limit must be positive")
        self._limit = limit
        return self

    def build(self) -> QueryPlan:
        return QueryPlan(
            layer=self.layer,
            predicates=tuple(self._predicates),
            order_by=tuple(self._order_by),
            limit=self._limit,
        )
