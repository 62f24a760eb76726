"""Pytest configuration and shared spatial fixtures."""
import sys
from pathlib import Path

import pytest
from shapely.geometry import LineString, box

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.geoenrich.gateway.memory import InMemorySpatialGateway
from src.geoenrich.models.boundary import AdminBoundary
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.models.transit import TransitLine, TransitMode, TransitStop


@pytest.fixture
def barcelona_point():
    """A point in the Eixample district of Barcelona."""
    return GeoPoint(41.3874, 2.1686)


@pytest.fixture
def ocean_point():
    """A point in the Atlantic, outside every boundary."""
    return GeoPoint(36.0, -20.0)


@pytest.fixture
def barcelona_boundaries():
    """Nested country / region / province / city / district boxes."""
    return [
        AdminBoundary(
            id=1311341, name="España", admin_level=2,
            names={"en": "Spain", "es": "España", "ca": "Espanya", "fr": ""},
            geometry=box(-9.5, 35.9, 3.4, 43.9),
        ),
        AdminBoundary(
            id=349053, name="Catalunya", admin_level=4,
            names={"en": "Catalonia", "es": "Cataluña", "ca": "Catalunya"},
            geometry=box(0.15, 40.5, 3.35, 42.9),
        ),
        AdminBoundary(
            id=349035, name="Barcelona", admin_level=6,
            geometry=box(1.35, 41.19, 2.78, 42.33),
        ),
        AdminBoundary(
            id=347950, name="Barcelona", admin_level=8,
            names={"en": "Barcelona"},
            geometry=box(2.05, 41.32, 2.23, 41.47),
        ),
        AdminBoundary(
            id=2417889, name="l'Eixample", admin_level=9,
            geometry=box(2.14, 41.38, 2.19, 41.40),
        ),
    ]


@pytest.fixture
def barcelona_stops():
    """Three metro stations, two bus stops and a ferry pier near the point."""
    return [
        TransitStop(id=201, name="Catalunya", mode=TransitMode.METRO, lat=41.3870, lon=2.1700,
                    names={"en": "Catalonia"}),
        TransitStop(id=202, name="Universitat", mode=TransitMode.METRO, lat=41.3860, lon=2.1640),
        TransitStop(id=203, name="Passeig de Gràcia", mode=TransitMode.METRO, lat=41.3917, lon=2.1650),
        TransitStop(id=204, name="Pl Catalunya - Rambla", mode=TransitMode.BUS, lat=41.3868, lon=2.1680),
        TransitStop(id=205, name="Pelai", mode=TransitMode.BUS, lat=41.3855, lon=2.1660),
        TransitStop(id=206, name="Moll de la Fusta", mode=TransitMode.FERRY, lat=41.3840, lon=2.1720),
    ]


@pytest.fixture
def barcelona_lines():
    """Lines: L3 twice (two directions), L1, bus V15 and a ferry route."""
    return [
        (TransitLine(id=301, name="Metro L3", ref="L3", mode=TransitMode.METRO, color="#1EB53A"),
         LineString([(2.1700, 41.3800), (2.1700, 41.3950)])),
        (TransitLine(id=305, name="Metro L3 (return)", ref="L3", mode=TransitMode.METRO, color="#1EB53A"),
         LineString([(2.1701, 41.3950), (2.1701, 41.3800)])),
        (TransitLine(id=302, name="Metro L1", ref="L1", mode=TransitMode.METRO, color="#E2001A"),
         LineString([(2.1600, 41.3860), (2.1640, 41.3860)])),
        (TransitLine(id=304, name="Bus V15", ref="V15", mode=TransitMode.BUS),
         LineString([(2.1680, 41.3800), (2.1680, 41.3950)])),
        (TransitLine(id=306, name="Ferry F1", ref="F1", mode=TransitMode.FERRY),
         LineString([(2.17005, 41.3800), (2.17005, 41.3950)])),
    ]


@pytest.fixture
def barcelona_gateway(barcelona_boundaries, barcelona_stops, barcelona_lines):
    """In-memory gateway loaded with the Barcelona fixtures."""
    return InMemorySpatialGateway(barcelona_boundaries, barcelona_stops, barcelona_lines)
