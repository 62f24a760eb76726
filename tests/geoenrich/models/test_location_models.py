"""
Unit tests for location event models
"""
import json
from uuid import UUID

import pytest
from pydantic import ValidationError

from src.geoenrich.models.boundary import AdminBoundary, AdminLevel
from src.geoenrich.models.location import (
    BoundaryInfo,
    EnrichedLocation,
    EnrichedLocationResult,
    LocationDoneEvent,
    LocationEvent,
    LocationInput,
)
from src.geoenrich.models.point import GeoPoint
from src.geoenrich.models.transit import NearestStop, TransitLine, TransitMode

PROPERTY_ID = "5b0e7c7e-2f47-4b8e-9a43-0f4c6d9a1e21"


def build_event(**overrides):
    data = {"property_id": PROPERTY_ID, "country": "Spain"}
    data.update(overrides)
    return LocationEvent(**data)


class TestLocationEvent:
    """Tests for the inbound event"""

    def test_parses_stream_json(self):
        payload = json.dumps({
            "property_id": PROPERTY_ID,
            "country": "Spain",
            "city": "Barcelona",
            "latitude": 41.3874,
            "longitude": 2.1686,
            "is_visible": True,
        })
        event = LocationEvent.model_validate_json(payload)
        assert event.property_id == UUID(PROPERTY_ID)
        assert event.city == "Barcelona"
        assert event.has_coordinates()

    def test_requires_property_id_and_country(self):
        with pytest.raises(ValidationError):
            LocationEvent.model_validate_json(json.dumps({"country": "Spain"}))
        with pytest.raises(ValidationError):
            LocationEvent.model_validate_json(json.dumps({"property_id": PROPERTY_ID}))

    def test_rejects_invalid_uuid(self):
        with pytest.raises(ValidationError):
            build_event(property_id="not-a-uuid")

    @pytest.mark.parametrize("street,house_number,expected", [
        ("Carrer de Mallorca", "401", True),
        ("Carrer de Mallorca", None, False),
        (None, "401", False),
        ("", "401", False),
        ("Carrer de Mallorca", "   ", False),
    ])
    def test_has_street_address(self, street, house_number, expected):
        event = build_event(street=street, house_number=house_number)
        assert event.has_street_address() is expected


class TestLocationInput:
    """Tests for batch items"""

    def test_from_event_copies_location_fields(self):
        event = build_event(city="Barcelona", latitude=41.3874, longitude=2.1686, is_visible=False)
        item = LocationInput.from_event(3, event)
        assert item.index == 3
        assert item.city == "Barcelona"
        assert item.point() == GeoPoint(41.3874, 2.1686)
        assert item.is_visible is False

    def test_out_of_range_coordinates_are_not_valid(self):
        item = LocationInput(index=0, latitude=95.0, longitude=2.0)
        assert item.has_coordinates()
        assert not item.has_valid_coordinates()

    def test_point_without_coordinates_raises(self):
        with pytest.raises(ValueError):
            LocationInput(index=0).point()


class TestBoundaryModels:
    """Tests for boundary helpers"""

    def test_translated_names_skip_empty_and_unsupported(self):
        boundary = AdminBoundary(
            id=1, name="España", admin_level=2,
            names={"en": "Spain", "fr": "", "zh": "西班牙", "ca": "Espanya"},
        )
        assert boundary.translated_names() == {"en": "Spain", "ca": "Espanya"}

    def test_level_mapping(self):
        assert AdminBoundary(id=1, name="x", admin_level=8).level == AdminLevel.CITY
        assert AdminBoundary(id=1, name="x", admin_level=5).level is None
        assert AdminLevel.SUBPROVINCE.slot == "subprovince"

    def test_enriched_location_filled_slots(self):
        location = EnrichedLocation(
            country=BoundaryInfo(id=1, name="España"),
            city=BoundaryInfo(id=8, name="Barcelona"),
        )
        assert location.filled_slots() == ["country", "city"]


class TestTransitModels:
    """Tests for transit helpers"""

    @pytest.mark.parametrize("tag,mode", [
        ("subway", TransitMode.METRO),
        ("light_rail", TransitMode.TRAM),
        ("train", TransitMode.TRAIN),
        ("Tram", TransitMode.TRAM),
        ("trolleybus", TransitMode.BUS),
        ("ferry", TransitMode.FERRY),
        ("funicular", TransitMode.OTHER),
        (None, TransitMode.OTHER),
    ])
    def test_mode_from_tag(self, tag, mode):
        assert TransitMode.from_tag(tag) == mode

    def test_line_dedup_key_prefers_ref(self):
        assert TransitLine(id=1, name="Metro L3", ref="L3", mode=TransitMode.METRO).dedup_key == "L3"
        assert TransitLine(id=1, name="Aerobús", ref="", mode=TransitMode.BUS).dedup_key == "Aerobús"


class TestLocationDoneEvent:
    """Tests for the outbound event"""

    def test_payload_omits_absent_values(self):
        result = EnrichedLocationResult(index=0, error="location has no coordinates")
        done = LocationDoneEvent.from_result(UUID(PROPERTY_ID), result)
        payload = json.loads(done.to_stream_payload())
        assert payload == {"property_id": PROPERTY_ID, "error": "location has no coordinates"}

    def test_payload_carries_enrichment(self):
        stop = NearestStop(
            station_id=201, name="Catalunya", type="metro", lat=41.387, lon=2.17,
            distance=125.0, priority=1,
        )
        result = EnrichedLocationResult(
            index=0,
            enriched_location=EnrichedLocation(
                city=BoundaryInfo(id=347950, name="Barcelona", translate_names={"en": "Barcelona"}),
                is_address_visible=True,
            ),
            nearest_transport=[stop],
        )
        payload = json.loads(LocationDoneEvent.from_result(UUID(PROPERTY_ID), result).to_stream_payload())

        assert payload["enriched_location"]["city"]["name"] == "Barcelona"
        assert payload["enriched_location"]["is_address_visible"] is True
        assert "country" not in payload["enriched_location"]
        assert payload["nearest_transport"][0]["station_id"] == 201
        assert payload["nearest_transport"][0]["lines"] == []
        assert "error" not in payload
