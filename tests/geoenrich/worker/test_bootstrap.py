"""
Unit tests for worker bootstrap wiring
"""
import json
from unittest.mock import MagicMock, patch

import pytest

from config.settings import Settings
from src.geoenrich.gateway.memory import InMemorySpatialGateway
from src.geoenrich.gateway.postgis import PostGISSpatialGateway
from src.geoenrich.resolvers.boundary_resolver import TieBreak
from src.geoenrich.transit.routing import MapboxMatrixClient
from src.geoenrich.worker import bootstrap


@pytest.fixture
def fixture_path(tmp_path):
    path = tmp_path / "extract.geojson"
    path.write_text(json.dumps({"type": "FeatureCollection", "features": []}), encoding="utf-8")
    return str(path)


class TestBuilders:
    """Tests for component construction from settings"""

    def test_memory_gateway(self, fixture_path):
        gateway = bootstrap.build_gateway(Settings(spatial_backend="memory", spatial_fixture_path=fixture_path))
        assert isinstance(gateway, InMemorySpatialGateway)

    def test_memory_gateway_requires_fixture(self):
        with pytest.raises(ValueError):
            bootstrap.build_gateway(Settings(spatial_backend="memory", spatial_fixture_path=None))

    def test_postgis_gateway(self):
        with patch.object(PostGISSpatialGateway, "from_settings") as from_settings:
            gateway = bootstrap.build_gateway(Settings(spatial_backend="postgis"))
        assert gateway is from_settings.return_value

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            bootstrap.build_gateway(Settings(spatial_backend="sqlite"))

    def test_routing_client_only_with_token(self):
        assert bootstrap.build_routing_client(Settings(mapbox_access_token=None)) is None
        client = bootstrap.build_routing_client(Settings(mapbox_access_token="pk.test"))
        assert isinstance(client, MapboxMatrixClient)

    def test_orchestrator_wiring(self):
        config = Settings(
            transit_radius_m=800,
            transit_limit=3,
            boundary_tie_break="first",
            walking_estimate_enabled=False,
            mapbox_access_token=None,
        )
        orchestrator = bootstrap.build_orchestrator(config, MagicMock())

        assert orchestrator.transit_radius_m == 800
        assert orchestrator.transit_limit == 3
        assert orchestrator.boundary_resolver.tie_break == TieBreak.FIRST
        assert orchestrator.transit_matcher.walking_estimator is None
        assert orchestrator.transit_matcher.routing_client is None


class TestMain:
    """Tests for the entry point"""

    def test_disabled_worker_exits_cleanly(self):
        disabled = Settings(worker_enabled=False)
        with patch.object(bootstrap, "settings", disabled), \
                patch.object(bootstrap, "build_gateway") as build_gateway:
            assert bootstrap.main([]) == 0
        build_gateway.assert_not_called()

    def test_unhealthy_gateway(self):
        gateway = MagicMock()
        gateway.health_check.return_value = False
        with patch.object(bootstrap, "build_gateway", return_value=gateway), \
                patch.object(bootstrap, "RedisStreamBroker") as broker_cls:
            assert bootstrap.main([]) == 1
        gateway.close.assert_called_once()
        broker_cls.from_url.assert_not_called()

    def test_runs_worker_and_closes_resources(self):
        gateway = MagicMock()
        with patch.object(bootstrap, "build_gateway", return_value=gateway), \
                patch.object(bootstrap, "RedisStreamBroker") as broker_cls, \
                patch.object(bootstrap, "LocationEnrichmentWorker") as worker_cls, \
                patch.object(bootstrap, "install_signal_handlers"):
            assert bootstrap.main(["--consumer-name", "replica-7", "--ack-policy", "strict"]) == 0

        config = worker_cls.call_args.args[2]
        assert config.consumer_name == "replica-7"
        assert config.ack_policy.value == "strict"
        worker_cls.return_value.run.assert_called_once()
        broker_cls.from_url.return_value.close.assert_called_once()
        gateway.close.assert_called_once()
