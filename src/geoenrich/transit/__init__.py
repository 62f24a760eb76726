"""
Transit Package

Priority-tiered nearest-stop matching with line association and walking metrics.
"""
from src.geoenrich.transit.matcher import TransitMatcher
from src.geoenrich.transit.routing import MapboxMatrixClient, RoutingClient, WalkingEstimator

__all__ = ["TransitMatcher", "MapboxMatrixClient", "RoutingClient", "WalkingEstimator"]
