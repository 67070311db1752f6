"""Domain records of the waste-management database.

The records are read-only from the server's point of view. Field aliases keep
the document field names used by the database (``facilityId``,
``wasteItemDetected``, ``createdAt``...) while the Python attributes are snake
case. Records accept either ``id`` or ``_id`` as their identifier.

Timestamps without a timezone are taken as UTC so that records coming from
different backends sort together.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .constants import HIGH_RISK_LEVEL

HazardLevel = Literal["low", "medium", "high"]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DomainRecord(BaseModel):
    """Common base for database records."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., validation_alias=AliasChoices("id", "_id"), description="Record identifier")

    @field_validator("*")
    @classmethod
    def normalize_timestamps(cls, v):
        """Attach UTC to naive timestamps."""
        if isinstance(v, datetime):
            return _as_utc(v)
        return v

    def to_document(self) -> dict:
        """Serialize back to the database document shape."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class Facility(DomainRecord):
    """A waste-processing facility."""

    name: str = Field(..., description="Facility name")
    short_code: Optional[str] = Field(default=None, alias="shortCode")
    location: Optional[str] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class WasteType(BaseModel):
    """Share of one waste category in a delivery."""

    category: str
    percentage: float = Field(default=0, ge=0, le=100)


class Inspection(DomainRecord):
    """Inspection of one delivery at a facility."""

    facility_id: str = Field(..., description="Inspected facility")
    is_delivery_accepted: bool = Field(default=False)
    does_delivery_meets_conditions: bool = Field(default=True)
    selected_wastetypes: List[WasteType] = Field(default_factory=list)
    heating_value_calculation: Optional[float] = Field(default=None)
    waste_producer: Optional[str] = Field(default=None)
    contract_reference_id: Optional[str] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class Contaminant(DomainRecord):
    """A contaminant detected in a delivery."""

    waste_item_detected: Optional[str] = Field(default=None, alias="wasteItemDetected")
    material: Optional[str] = Field(default=None)
    facility_id: Optional[str] = Field(default=None, alias="facilityId")
    detection_time: Optional[datetime] = Field(default=None)
    explosive_level: Optional[HazardLevel] = Field(default=None)
    hcl_level: Optional[HazardLevel] = Field(default=None)
    so2_level: Optional[HazardLevel] = Field(default=None)
    estimated_size: Optional[float] = Field(default=None)
    shipment_id: Optional[str] = Field(default=None)

    @property
    def is_high_risk(self) -> bool:
        """Whether any of the three hazard levels is high."""
        return HIGH_RISK_LEVEL in (self.explosive_level, self.hcl_level, self.so2_level)


class Shipment(DomainRecord):
    """A truck delivery passing through a facility."""

    entry_timestamp: Optional[datetime] = Field(default=None)
    exit_timestamp: Optional[datetime] = Field(default=None)
    source: Optional[str] = Field(default=None)
    facility_id: Optional[str] = Field(default=None, alias="facilityId")
    license_plate: Optional[str] = Field(default=None)
    contract_reference_id: Optional[str] = Field(default=None)
    contract_id: Optional[str] = Field(default=None, alias="contractId")

    @property
    def duration_minutes(self) -> Optional[int]:
        """Whole minutes between entry and exit, rounded; None if either is missing."""
        if self.entry_timestamp is None or self.exit_timestamp is None:
            return None
        return round((self.exit_timestamp - self.entry_timestamp).total_seconds() / 60)
