"""
Location Enrichment - Core Package

Resolves administrative boundaries and nearby public transit for property
locations consumed from a Redis stream, and publishes the enriched result.
"""
