"""
Resolvers Package

Point to administrative hierarchy resolution.
"""
from src.geoenrich.resolvers.boundary_resolver import BoundaryResolver, TieBreak

__all__ = ["BoundaryResolver", "TieBreak"]
