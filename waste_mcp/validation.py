"""Input validation for the sampling-aware tools.

Tool arguments are validated with Pydantic request schemas before any record
is read. ``validate_tool_arguments`` turns schema failures into
``DomainValidationError`` carrying a per-field error list.

Classes
-------
FacilityReportRequest
    Arguments of ``generate_intelligent_facility_report``
ShipmentRiskRequest
    Arguments of ``analyze_shipment_risk``
InspectionQuestionsRequest
    Arguments of ``suggest_inspection_questions``

Functions
---------
validate_tool_arguments
    Validate raw tool arguments against a request schema

Examples
--------
    >>> request = validate_tool_arguments(ShipmentRiskRequest, {"shipmentId": "s-1"})
    >>> request.shipment_id
    's-1'
"""

from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import DomainValidationError

S = TypeVar("S", bound=BaseModel)

MAX_ID_LENGTH = 128


def _check_record_id(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Identifier cannot be empty")
    if len(value) > MAX_ID_LENGTH:
        raise ValueError(f"Identifier cannot exceed {MAX_ID_LENGTH} characters")
    return value


class FacilityReportRequest(BaseModel):
    """Arguments for the facility report."""

    model_config = ConfigDict(populate_by_name=True)

    facility_id: str = Field(..., alias="facilityId", description="Facility ID to generate report for")
    include_recommendations: bool = Field(
        default=False, alias="includeRecommendations", description="Whether to include AI recommendations"
    )

    @field_validator("facility_id")
    @classmethod
    def validate_facility_id(cls, v):
        return _check_record_id(v)


class ShipmentRiskRequest(BaseModel):
    """Arguments for the shipment risk assessment."""

    model_config = ConfigDict(populate_by_name=True)

    shipment_id: str = Field(..., alias="shipmentId", description="Shipment ID to analyze")

    @field_validator("shipment_id")
    @classmethod
    def validate_shipment_id(cls, v):
        return _check_record_id(v)


class InspectionQuestionsRequest(BaseModel):
    """Arguments for the inspection checklist."""

    model_config = ConfigDict(populate_by_name=True)

    facility_id: str = Field(
        ..., alias="facilityId", description="Facility ID to generate inspection questions for"
    )

    @field_validator("facility_id")
    @classmethod
    def validate_facility_id(cls, v):
        return _check_record_id(v)


def validate_tool_arguments(schema: Type[S], arguments: Dict[str, Any]) -> S:
    """Validate raw tool arguments.

    Parameters
    ----------
    schema : Type[BaseModel]
        Request schema
    arguments : Dict[str, Any]
        Arguments as received, camelCase or snake_case keys

    Returns
    -------
    BaseModel
        The validated request

    Raises
    ------
    DomainValidationError
        With ``details["errors"]`` listing each failing field and message
    """
    try:
        return schema.model_validate(arguments)
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]} for err in e.errors()
        ]
        raise DomainValidationError(
            f"Invalid arguments for {schema.__name__}", details={"errors": errors}, cause=e
        ) from e
