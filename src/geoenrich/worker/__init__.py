"""
Worker Package

Redis stream batch worker for location enrichment.
"""
from src.geoenrich.worker.location_worker import (
    AckPolicy,
    CancellationToken,
    LocationEnrichmentWorker,
    WorkerConfig,
    WorkerState,
)

__all__ = [
    "AckPolicy",
    "CancellationToken",
    "LocationEnrichmentWorker",
    "WorkerConfig",
    "WorkerState",
]
