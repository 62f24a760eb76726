"""
Unit tests for walking routing
"""
from unittest.mock import MagicMock

import pytest
import requests

from src.geoenrich.exceptions import RoutingError
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.transit.routing import (
    MapboxMatrixClient,
    MatrixResult,
    RoutingClient,
    WalkingEstimator,
    partition_destinations,
)

ORIGIN = GeoPoint(41.3874, 2.1686)


def destinations(count):
    return [GeoPoint(41.38 + i * 0.001, 2.16) for i in range(count)]


class TestWalkingEstimator:
    """Tests for the straight-line heuristic"""

    def test_estimate(self):
        metrics = WalkingEstimator().estimate(139.0)
        assert metrics.distance_m == pytest.approx(166.8)
        assert metrics.duration_s == pytest.approx(120.0)

    @pytest.mark.parametrize("kwargs", [
        {"detour_factor": 0.9},
        {"speed_mps": 0},
    ])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            WalkingEstimator(**kwargs)


class TestPartitionDestinations:
    """Tests for matrix chunking"""

    def test_fits_in_one_chunk(self):
        assert len(partition_destinations(destinations(24), origin_count=1)) == 1

    def test_splits_on_limit(self):
        chunks = partition_destinations(destinations(50), origin_count=1, max_points=25)
        assert [len(c) for c in chunks] == [24, 24, 2]

    def test_no_room_for_destinations(self):
        with pytest.raises(RoutingError):
            partition_destinations(destinations(3), origin_count=25, max_points=25)


class DummyRouter(RoutingClient):
    """Router that answers from a fixed distance per destination"""

    max_points = 3

    def __init__(self):
        self.calls = []

    def walking_matrix(self, origins, destinations):
        self.calls.append(len(destinations))
        distances = [[100.0 * (len(self.calls)) for _ in destinations]]
        durations = [[None if d.lat > 41.3825 else 60.0 for d in destinations]]
        return MatrixResult(distances=distances, durations=durations)


class TestWalkingMetrics:
    """Tests for the chunked per-destination metrics"""

    def test_chunks_and_missing_routes(self):
        router = DummyRouter()
        metrics = router.walking_metrics(ORIGIN, destinations(4))

        assert router.calls == [2, 2]
        assert metrics[0].distance_m == 100.0
        assert metrics[2].distance_m == 200.0
        # Destinations north of 41.3825 have no route
        assert metrics[3] is None


class TestMapboxMatrixClient:
    """Tests for the Mapbox client"""

    def make_client(self, payload=None, error=None):
        session = MagicMock()
        response = MagicMock()
        response.json.return_value = payload
        if error is not None:
            session.get.side_effect = error
        else:
            session.get.return_value = response
        return MapboxMatrixClient(access_token="pk.test", session=session), session

    def test_requires_token(self):
        with pytest.raises(ValueError):
            MapboxMatrixClient(access_token="")

    def test_request_shape(self):
        client, session = self.make_client({
            "code": "Ok",
            "distances": [[120.0, 450.0]],
            "durations": [[90.0, 330.0]],
        })

        result = client.walking_matrix([ORIGIN], destinations(2))

        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        assert url.startswith("https://api.mapbox.com/directions-matrix/v1/mapbox/walking/")
        assert url.endswith("2.168600,41.387400;2.160000,41.380000;2.160000,41.381000")
        assert params["sources"] == "0"
        assert params["destinations"] == "1;2"
        assert params["annotations"] == "distance,duration"
        assert result.distances == [[120.0, 450.0]]

    def test_non_ok_code(self):
        client, _ = self.make_client({"code": "NoRoute"})
        with pytest.raises(RoutingError):
            client.walking_matrix([ORIGIN], destinations(1))

    def test_http_failure(self):
        client, _ = self.make_client(error=requests.ConnectionError("refused"))
        with pytest.raises(RoutingError):
            client.walking_matrix([ORIGIN], destinations(1))

    def test_too_many_points(self):
        client, session = self.make_client({"code": "Ok"})
        with pytest.raises(RoutingError):
            client.walking_matrix([ORIGIN], destinations(25))
        session.get.assert_not_called()

    def test_walking_metrics_through_mapbox(self):
        client, _ = self.make_client({
            "code": "Ok",
            "distances": [[120.0, None]],
            "durations": [[90.0, None]],
        })
        metrics = client.walking_metrics(ORIGIN, destinations(2))

        assert metrics[0].distance_m == 120.0
        assert metrics[0].duration_s == 90.0
        assert metrics[1] is None
