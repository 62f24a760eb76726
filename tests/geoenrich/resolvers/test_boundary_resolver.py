"""
Unit tests for BoundaryResolver
"""
from unittest.mock import MagicMock

import pytest
from shapely.geometry import box

from src.geoenrich.gateway.memory import InMemorySpatialGateway
from src.geoenrich.models.boundary import AdminBoundary, AdminLevel
from src.geoenrich.resolvers.boundary_resolver import BoundaryResolver, TieBreak


@pytest.fixture
def resolver(barcelona_gateway):
    return BoundaryResolver(barcelona_gateway)


class TestResolve:
    """Tests for single and batched resolution"""

    def test_resolve_one_fills_hierarchy(self, resolver, barcelona_point):
        location = resolver.resolve_one(barcelona_point)

        assert location.filled_slots() == ["country", "region", "province", "city", "district"]
        assert location.country.id == 1311341
        assert location.city.name == "Barcelona"
        assert location.district.name == "l'Eixample"
        assert location.is_address_visible is None

    def test_translations_drop_empty_values(self, resolver, barcelona_point):
        location = resolver.resolve_one(barcelona_point)

        assert location.country.translate_names == {"en": "Spain", "es": "España", "ca": "Espanya"}
        assert location.province.translate_names is None

    def test_point_outside_every_boundary(self, resolver, ocean_point):
        assert resolver.resolve_one(ocean_point) is None

    def test_batch_matches_single_calls(self, resolver, barcelona_point, ocean_point):
        points = [barcelona_point, ocean_point, barcelona_point]
        batch = resolver.resolve_batch(points)

        assert batch == [resolver.resolve_one(p) for p in points]
        assert batch[1] is None

    def test_batch_uses_one_gateway_call(self, barcelona_point, ocean_point):
        gateway = MagicMock()
        gateway.containing_boundaries_batch.return_value = [[], []]

        results = BoundaryResolver(gateway).resolve_batch([barcelona_point, ocean_point])

        assert results == [None, None]
        gateway.containing_boundaries_batch.assert_called_once()

    def test_empty_batch(self, barcelona_point):
        gateway = MagicMock()
        assert BoundaryResolver(gateway).resolve_batch([]) == []
        gateway.containing_boundaries_batch.assert_not_called()

    def test_misaligned_gateway_result_is_rejected(self, barcelona_point):
        gateway = MagicMock()
        gateway.containing_boundaries_batch.return_value = [[]]

        with pytest.raises(ValueError):
            BoundaryResolver(gateway).resolve_batch([barcelona_point, barcelona_point])


class TestTieBreak:
    """Tests for several boundaries at one level"""

    def boundaries(self):
        return [
            AdminBoundary(id=5, name="Metropolitan area", admin_level=8, area_sq_km=636.0),
            AdminBoundary(id=7, name="Municipality", admin_level=8, area_sq_km=101.4),
            AdminBoundary(id=3, name="Unknown area", admin_level=8),
        ]

    def test_smallest_area_wins(self):
        selected = BoundaryResolver(MagicMock()).select_per_level(self.boundaries())
        assert selected[AdminLevel.CITY].id == 7

    def test_equal_area_falls_back_to_lowest_id(self):
        boundaries = [
            AdminBoundary(id=9, name="b", admin_level=4, area_sq_km=10.0),
            AdminBoundary(id=2, name="a", admin_level=4, area_sq_km=10.0),
        ]
        selected = BoundaryResolver(MagicMock()).select_per_level(boundaries)
        assert selected[AdminLevel.REGION].id == 2

    def test_first_keeps_gateway_order(self):
        resolver = BoundaryResolver(MagicMock(), tie_break=TieBreak.FIRST)
        selected = resolver.select_per_level(self.boundaries())
        assert selected[AdminLevel.CITY].id == 5

    def test_tie_break_accepts_setting_value(self):
        assert BoundaryResolver(MagicMock(), tie_break="first").tie_break == TieBreak.FIRST

    def test_overlapping_cities_in_memory(self, barcelona_point):
        gateway = InMemorySpatialGateway([
            AdminBoundary(id=100, name="Large", admin_level=8, geometry=box(2.0, 41.0, 2.5, 41.6)),
            AdminBoundary(id=200, name="Small", admin_level=8, geometry=box(2.1, 41.3, 2.2, 41.4)),
        ])
        location = BoundaryResolver(gateway).resolve_one(barcelona_point)
        assert location.city.id == 200
