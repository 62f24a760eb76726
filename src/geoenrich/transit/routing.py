"""
Walking Routing

Walking distance and duration from a search point to its selected stops,
either from the Mapbox Matrix API or from a straight-line heuristic.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

import requests

from src.geoenrich.exceptions import RoutingError
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.utils.logger import get_logger

logger = get_logger(__name__)

MAX_MATRIX_POINTS = 25
DEFAULT_DETOUR_FACTOR = 1.2
DEFAULT_WALKING_SPEED_MPS = 1.39


@dataclass(frozen=True)
class WalkingMetrics:
    """Walking distance in meters and duration in seconds."""

    distance_m: float
    duration_s: float


@dataclass(frozen=True)
class MatrixResult:
    """
    Origin x destination matrices.

    Cells are None where the router found no route.
    """

    distances: List[List[Optional[float]]]
    durations: List[List[Optional[float]]]


class WalkingEstimator:
    """Straight-line walking estimate: linear distance times a detour factor."""

    def __init__(
        self,
        detour_factor: float = DEFAULT_DETOUR_FACTOR,
        speed_mps: float = DEFAULT_WALKING_SPEED_MPS,
    ):
        if detour_factor < 1.0:
            raise ValueError("Detour factor must be at least 1.0")
        if speed_mps <= 0:
            raise ValueError("Walking speed must be positive")
        self.detour_factor = detour_factor
        self.speed_mps = speed_mps

    def estimate(self, distance_m: float) -> WalkingMetrics:
        walk_m = distance_m * self.detour_factor
        return WalkingMetrics(
            distance_m=round(walk_m, 1),
            duration_s=round(walk_m / self.speed_mps, 1),
        )


class RoutingClient(ABC):
    """Walking router contract."""

    max_points: int = MAX_MATRIX_POINTS

    @abstractmethod
    def walking_matrix(self, origins: Sequence[GeoPoint], destinations: Sequence[GeoPoint]) -> MatrixResult:
        """
        Return the walking matrix between origins and destinations.

        Raises:
            RoutingError: On empty input, too many points, or router failure
        """

    def walking_metrics(self, origin: GeoPoint, destinations: Sequence[GeoPoint]) -> List[Optional[WalkingMetrics]]:
        """
        Walking metrics from one origin to each destination.

        Destinations are split into chunks so that every request stays within
        the router's point limit.

        Returns:
            One entry per destination, None where no route was found
        """
        results: List[Optional[WalkingMetrics]] = []
        for chunk in partition_destinations(destinations, origin_count=1, max_points=self.max_points):
            matrix = self.walking_matrix([origin], chunk)
            distances = matrix.distances[0] if matrix.distances else [None] * len(chunk)
            durations = matrix.durations[0] if matrix.durations else [None] * len(chunk)
            for distance, duration in zip(distances, durations):
                if distance is None or duration is None:
                    results.append(None)
                else:
                    results.append(WalkingMetrics(distance_m=float(distance), duration_s=float(duration)))
        return results


def partition_destinations(
    destinations: Sequence[GeoPoint],
    origin_count: int,
    max_points: int = MAX_MATRIX_POINTS,
) -> List[List[GeoPoint]]:
    """
    Split destinations so origins + destinations never exceed max_points.

    Args:
        destinations: Destination points
        origin_count: Number of origins sent with every chunk
        max_points: Router limit on total coordinates per request

    Returns:
        Destination chunks in original order

    Raises:
        RoutingError: If the origins alone leave no room for destinations
    """
    capacity = max_points - origin_count
    if origin_count <= 0 or capacity <= 0:
        raise RoutingError(
            f"Cannot fit {origin_count} origins within a {max_points}-point matrix"
        )
    destinations = list(destinations)
    return [destinations[i:i + capacity] for i in range(0, len(destinations), capacity)]


class MapboxMatrixClient(RoutingClient):
    """
    Client for the Mapbox Directions Matrix API.

    Coordinates are sent origins first, then destinations, and addressed by
    index through the `sources` and `destinations` query parameters.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://api.mapbox.com",
        profile: str = "mapbox/walking",
        timeout: int = 10,
        max_points: int = MAX_MATRIX_POINTS,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Mapbox client.

        Args:
            access_token: Mapbox access token
            base_url: API root URL
            profile: Routing profile
            timeout: Request timeout in seconds
            max_points: Coordinate limit per request
            session: Optional pre-configured requests session
        """
        if not access_token:
            raise ValueError("Mapbox access token is required")
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout = timeout
        self.max_points = max_points
        self.session = session or requests.Session()
        logger.info("mapbox_client_initialized", base_url=self.base_url, profile=self.profile)

    def walking_matrix(self, origins: Sequence[GeoPoint], destinations: Sequence[GeoPoint]) -> MatrixResult:
        if not origins or not destinations:
            raise RoutingError("Origins and destinations cannot be empty")
        if len(origins) + len(destinations) > self.max_points:
            raise RoutingError(
                f"Total coordinates exceed Mapbox limit of {self.max_points} points"
            )

        coordinates = ";".join(
            f"{point.lon:.6f},{point.lat:.6f}" for point in list(origins) + list(destinations)
        )
        url = f"{self.base_url}/directions-matrix/v1/{self.profile}/{coordinates}"
        params = {
            "sources": ";".join(str(i) for i in range(len(origins))),
            "destinations": ";".join(str(i + len(origins)) for i in range(len(destinations))),
            "annotations": "distance,duration",
            "access_token": self.access_token,
        }

        logger.debug(
            "mapbox_matrix_request",
            origins_count=len(origins),
            destinations_count=len(destinations),
        )

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.error(
                "mapbox_request_failed",
                error=str(e),
                error_type=type(e).__name__
            )
            raise RoutingError(f"Mapbox request failed: {e}") from e
        except ValueError as e:
            raise RoutingError(f"Mapbox returned invalid JSON: {e}") from e

        if payload.get("code") != "Ok":
            logger.error("mapbox_non_ok_code", code=payload.get("code"))
            raise RoutingError(f"Mapbox API returned code: {payload.get('code')}")

        return MatrixResult(
            distances=payload.get("distances") or [],
            durations=payload.get("durations") or [],
        )
