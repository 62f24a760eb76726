"""
Spatial Gateway Package

Backend-neutral spatial lookups with in-memory and PostGIS implementations.
"""
from src.geoenrich.gateway.base import SpatialGateway
from src.geoenrich.gateway.query_plan import Layer, QueryBuilder, QueryPlan

__all__ = ["SpatialGateway", "Layer", "QueryBuilder", "QueryPlan"]
