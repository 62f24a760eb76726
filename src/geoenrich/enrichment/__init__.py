"""
Enrichment Module

Batch enrichment of locations with administrative boundaries and transit.
"""
from src.geoenrich.enrichment.orchestrator import EnrichmentOrchestrator

__all__ = ["EnrichmentOrchestrator"]
