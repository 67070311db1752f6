"""Pytest configuration and shared fixtures."""

import json
import os
from typing import Any, Dict, List

import pytest
from fastmcp import FastMCP

from waste_mcp.config import AppConfig
from waste_mcp.sampling.broker import SamplingBroker
from waste_mcp.sampling.helpers import SamplingHelpers
from waste_mcp.services.sampling_tools import SamplingToolService
from waste_mcp.storage import InMemoryRecordStore


def build_records() -> Dict[str, List[Dict[str, Any]]]:
    """Seed documents for three facilities.

    fac-north
        One accepted inspection, one high-risk contaminant, one shipment.
    fac-south
        Shipment shp-risk from "Acme Hauling" with two contaminants (one
        high-risk); four earlier Acme shipments carry eight contaminants.
    fac-east
        Sixteen recent contaminants, two accepted inspections.
    """
    facilities = [
        {"id": "fac-north", "name": "North Plant", "shortCode": "NP", "location": "Oslo"},
        {"_id": "fac-south", "name": "South Plant", "shortCode": "SP", "location": "Bergen"},
        {"id": "fac-east", "name": "East Plant", "shortCode": "EP", "location": "Trondheim"},
    ]

    inspections = [
        {
            "id": "ins-north-1",
            "facility_id": "fac-north",
            "is_delivery_accepted": True,
            "does_delivery_meets_conditions": True,
            "selected_wastetypes": [{"category": "plastic", "percentage": 60}, {"category": "paper", "percentage": 40}],
            "heating_value_calculation": 11.2,
            "createdAt": "2024-05-01T10:00:00Z",
        },
        {
            "id": "ins-east-1",
            "facility_id": "fac-east",
            "is_delivery_accepted": True,
            "createdAt": "2024-05-02T10:00:00Z",
        },
        {
            "id": "ins-east-2",
            "facility_id": "fac-east",
            "is_delivery_accepted": True,
            "createdAt": "2024-05-03T10:00:00Z",
        },
    ]

    contaminants = [
        {
            "id": "con-north-1",
            "wasteItemDetected": "Gas canister",
            "material": "metal",
            "facilityId": "fac-north",
            "detection_time": "2024-05-01T10:05:00Z",
            "explosive_level": "high",
            "hcl_level": "low",
            "so2_level": "low",
            "shipment_id": "shp-north-1",
        },
        {
            "id": "con-risk-1",
            "wasteItemDetected": "Battery",
            "material": "lithium",
            "facilityId": "fac-south",
            "detection_time": "2024-05-10T08:10:00Z",
            "explosive_level": "high",
            "hcl_level": "medium",
            "so2_level": "low",
            "shipment_id": "shp-risk",
        },
        {
            "id": "con-risk-2",
            "wasteItemDetected": "PVC pipe",
            "material": "plastic",
            "facilityId": "fac-south",
            "detection_time": "2024-05-10T08:12:00Z",
            "explosive_level": "low",
            "hcl_level": "medium",
            "so2_level": "low",
            "shipment_id": "shp-risk",
        },
    ]
    # Two low-risk contaminants in each earlier Acme shipment
    for n in range(1, 5):
        for k in range(2):
            contaminants.append(
                {
                    "id": f"con-hist-{n}-{k}",
                    "wasteItemDetected": "Paint can",
                    "material": "metal",
                    "facilityId": "fac-south",
                    "detection_time": f"2024-04-0{n}T09:0{k}:00Z",
                    "explosive_level": "low",
                    "hcl_level": "low",
                    "so2_level": "low",
                    "shipment_id": f"shp-hist-{n}",
                }
            )
    # Another source, never part of Acme's history
    contaminants.append(
        {
            "id": "con-other-1",
            "wasteItemDetected": "Tyre",
            "material": "rubber",
            "facilityId": "fac-south",
            "detection_time": "2024-04-20T09:00:00Z",
            "explosive_level": "high",
            "shipment_id": "shp-other",
        }
    )
    for n in range(16):
        contaminants.append(
            {
                "id": f"con-east-{n}",
                "wasteItemDetected": "Mattress",
                "material": "textile",
                "facilityId": "fac-east",
                "detection_time": f"2024-05-03T{n:02d}:00:00Z",
                "explosive_level": "low",
            }
        )

    shipments = [
        {
            "id": "shp-north-1",
            "facilityId": "fac-north",
            "source": "Nordic Waste",
            "license_plate": "NW-001",
            "entry_timestamp": "2024-05-01T09:50:00Z",
            "exit_timestamp": "2024-05-01T10:20:00Z",
        },
        {
            "id": "shp-risk",
            "facilityId": "fac-south",
            "source": "Acme Hauling",
            "license_plate": "AB-123",
            "entry_timestamp": "2024-05-10T08:00:00Z",
            "exit_timestamp": "2024-05-10T08:45:00Z",
        },
        {
            "id": "shp-other",
            "facilityId": "fac-south",
            "source": "Other Hauling",
            "license_plate": "OT-999",
            "entry_timestamp": "2024-04-20T08:50:00Z",
        },
        {
            "id": "shp-orphan",
            "license_plate": "NO-SRC",
            "entry_timestamp": "2024-05-11T08:00:00Z",
        },
        {
            "id": "shp-east-1",
            "facilityId": "fac-east",
            "source": "East Collect",
            "entry_timestamp": "2024-05-03T08:00:00Z",
            "exit_timestamp": "2024-05-03T08:44:30Z",
        },
    ]
    for n in range(1, 5):
        shipments.append(
            {
                "id": f"shp-hist-{n}",
                "facilityId": "fac-south",
                "source": "Acme Hauling",
                "license_plate": "AB-123",
                "entry_timestamp": f"2024-04-0{n}T08:50:00Z",
                "exit_timestamp": f"2024-04-0{n}T09:20:00Z",
            }
        )

    return {
        "facilities": facilities,
        "inspections": inspections,
        "contaminants": contaminants,
        "shipments": shipments,
    }


@pytest.fixture
def records() -> Dict[str, List[Dict[str, Any]]]:
    """Seed documents."""
    return build_records()


@pytest.fixture
def store(records) -> InMemoryRecordStore:
    """In-memory record store with the seed documents."""
    return InMemoryRecordStore(records)


@pytest.fixture
def seed_file(tmp_path, records):
    """Seed documents written to a JSON file."""
    path = tmp_path / "seed.json"
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


@pytest.fixture
def broker() -> SamplingBroker:
    """Broker without a responder and a short default timeout."""
    return SamplingBroker(default_timeout=1.0)


@pytest.fixture
def helpers(broker) -> SamplingHelpers:
    return SamplingHelpers(broker)


@pytest.fixture
def mcp_server() -> FastMCP:
    """A fresh server so tests never register tools on the module-level one."""
    return FastMCP("waste-test")


@pytest.fixture
def service(mcp_server, store, helpers) -> SamplingToolService:
    """Tool service over the seeded store."""
    return SamplingToolService(mcp=mcp_server, store=store, helpers=helpers)


@pytest.fixture
def read_envelope():
    """Decode the JSON text of a tool envelope."""

    def _read(envelope: Dict[str, Any]) -> Dict[str, Any]:
        return json.loads(envelope["content"][0]["text"])

    return _read


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every MCP_* variable so configuration falls back to defaults."""
    for name in list(os.environ):
        if name.startswith("MCP_"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def test_config() -> AppConfig:
    """Configuration without a sampling responder."""
    config = AppConfig()
    config.sampling.responder = "none"
    config.sampling.timeout_seconds = 1.0
    return config
