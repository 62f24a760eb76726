"""
Location Enrichment Service - Core Package

This package contains the core functionality for the location enrichment worker,
including boundary resolution, transit matching, and stream processing.
"""

__version__ = "0.1.0"
