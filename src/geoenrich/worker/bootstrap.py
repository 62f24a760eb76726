"""
Worker Bootstrap

Builds the enrichment worker from settings and runs it until SIGINT or
SIGTERM is received.
"""
import argparse
import signal
import sys
from typing import List, Optional

from config.settings import Settings, settings
from src.geoenrich.enrichment.orchestrator import EnrichmentOrchestrator
from src.geoenrich.gateway.base import SpatialGateway
from src.geoenrich.gateway.memory import InMemorySpatialGateway
from src.geoenrich.gateway.postgis import PostGISSpatialGateway
from src.geoenrich.resolvers.boundary_resolver import BoundaryResolver, TieBreak
from src.geoenrich.streams.broker import RedisStreamBroker
from src.geoenrich.transit.matcher import TransitMatcher
from src.geoenrich.transit.routing import MapboxMatrixClient, RoutingClient, WalkingEstimator
from src.geoenrich.utils.logger import get_logger, setup_logging
from src.geoenrich.worker.location_worker import (
    CancellationToken,
    LocationEnrichmentWorker,
    WorkerConfig,
)

logger = get_logger(__name__)


def build_gateway(config: Settings) -> SpatialGateway:
    """Create the spatial gateway selected by `spatial_backend`."""
    backend = config.spatial_backend.lower()
    if backend == "postgis":
        return PostGISSpatialGateway.from_settings(config)
    if backend == "memory":
        if not config.spatial_fixture_path:
            raise ValueError("spatial_fixture_path is required for the memory backend")
        return InMemorySpatialGateway.from_geojson(
            config.spatial_fixture_path,
            boundary_expansion_degrees=config.boundary_expansion_degrees,
        )
    raise ValueError(f"Unknown spatial backend: {config.spatial_backend}")


def build_routing_client(config: Settings) -> Optional[RoutingClient]:
    """Mapbox client when an access token is configured."""
    if not config.mapbox_access_token:
        return None
    return MapboxMatrixClient(
        access_token=config.mapbox_access_token,
        base_url=config.mapbox_base_url,
        profile=config.mapbox_walking_profile,
        timeout=config.mapbox_request_timeout,
        max_points=config.mapbox_max_matrix_points,
    )


def build_orchestrator(config: Settings, gateway: SpatialGateway) -> EnrichmentOrchestrator:
    """Wire resolver, matcher and orchestrator from settings."""
    estimator = None
    if config.walking_estimate_enabled:
        estimator = WalkingEstimator(
            detour_factor=config.walking_detour_factor,
            speed_mps=config.walking_speed_mps,
        )

    matcher = TransitMatcher(
        gateway,
        max_limit=config.transit_max_limit,
        line_proximity_m=config.transit_line_proximity_m,
        line_limit=config.transit_line_limit,
        routing_client=build_routing_client(config),
        walking_estimator=estimator,
    )
    resolver = BoundaryResolver(gateway, tie_break=TieBreak(config.boundary_tie_break))

    return EnrichmentOrchestrator(
        resolver,
        matcher,
        transit_radius_m=config.transit_radius_m,
        transit_limit=config.transit_limit,
        transit_visible_only=config.transit_visible_only,
    )


def install_signal_handlers(token: CancellationToken) -> None:
    """Cancel the token on SIGINT/SIGTERM."""
    def _handle(signum, frame):
        logger.info("shutdown_signal_received", signal=signal.Signals(signum).name)
        token.cancel()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the location enrichment worker")
    parser.add_argument("--consumer-name", help="Override the consumer name")
    parser.add_argument("--batch-size", type=int, help="Override the maximum batch size")
    parser.add_argument("--ack-policy", choices=["lenient", "strict"], help="Override the ack policy")
    parser.add_argument("--log-level", help="Override the log level")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(level=args.log_level)

    overrides = {
        key: value for key, value in {
            "worker_consumer_name": args.consumer_name,
            "worker_max_batch_size": args.batch_size,
            "worker_ack_policy": args.ack_policy,
        }.items()
        if value is not None
    }
    config = settings.model_copy(update=overrides)

    if not config.worker_enabled:
        logger.info("worker_disabled")
        return 0

    gateway = build_gateway(config)
    if not gateway.health_check():
        logger.error("spatial_gateway_unhealthy", backend=config.spatial_backend)
        gateway.close()
        return 1

    broker = RedisStreamBroker.from_url(config.redis_streams_url, socket_timeout=config.redis_socket_timeout)
    worker = LocationEnrichmentWorker(
        broker,
        build_orchestrator(config, gateway),
        WorkerConfig.from_settings(config),
    )

    token = CancellationToken()
    install_signal_handlers(token)

    try:
        worker.run(token)
    finally:
        broker.close()
        gateway.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
