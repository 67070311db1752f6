"""Tests for the domain records."""

from datetime import timezone

import pytest
from pydantic import ValidationError

from waste_mcp.models import Contaminant, Facility, Inspection, Shipment


class TestDomainRecords:
    """Test parsing database documents."""

    def test_id_or_underscore_id(self):
        assert Facility.model_validate({"id": "f-1", "name": "A"}).id == "f-1"
        assert Facility.model_validate({"_id": "f-2", "name": "B"}).id == "f-2"

    def test_aliases_and_snake_case(self):
        by_alias = Facility.model_validate({"id": "f", "name": "A", "shortCode": "AA"})
        by_name = Facility(id="f", name="A", short_code="AA")
        assert by_alias == by_name

    def test_unknown_fields_ignored(self):
        facility = Facility.model_validate({"id": "f", "name": "A", "__v": 3, "manager": "Kim"})
        assert not hasattr(facility, "manager")

    def test_naive_timestamps_become_utc(self):
        inspection = Inspection.model_validate(
            {"id": "i", "facility_id": "f", "createdAt": "2024-05-01T10:00:00"}
        )
        assert inspection.created_at.tzinfo == timezone.utc

    def test_to_document(self):
        contaminant = Contaminant.model_validate(
            {"id": "c", "wasteItemDetected": "Battery", "facilityId": "f", "explosive_level": "high"}
        )

        assert contaminant.to_document() == {
            "id": "c",
            "wasteItemDetected": "Battery",
            "facilityId": "f",
            "explosive_level": "high",
        }

    def test_inspection_defaults(self):
        inspection = Inspection.model_validate({"id": "i", "facility_id": "f"})

        assert inspection.is_delivery_accepted is False
        assert inspection.does_delivery_meets_conditions is True
        assert inspection.selected_wastetypes == []

    def test_invalid_hazard_level(self):
        with pytest.raises(ValidationError):
            Contaminant.model_validate({"id": "c", "so2_level": "severe"})


class TestContaminant:
    """Test the high-risk rule."""

    @pytest.mark.parametrize(
        "levels, expected",
        [
            ({}, False),
            ({"explosive_level": "medium", "hcl_level": "low", "so2_level": "medium"}, False),
            ({"explosive_level": "high"}, True),
            ({"hcl_level": "high"}, True),
            ({"so2_level": "high"}, True),
        ],
    )
    def test_is_high_risk(self, levels, expected):
        assert Contaminant(id="c", **levels).is_high_risk is expected


class TestShipment:
    """Test the processing duration."""

    def test_duration_minutes(self):
        shipment = Shipment.model_validate(
            {"id": "s", "entry_timestamp": "2024-05-10T08:00:00Z", "exit_timestamp": "2024-05-10T08:45:20Z"}
        )
        assert shipment.duration_minutes == 45

    def test_duration_without_exit(self):
        assert Shipment(id="s", entry_timestamp="2024-05-10T08:00:00Z").duration_minutes is None
