"""Result entities returned by the sampling-aware tools.

Each result carries its baseline metrics, which are always computed from the
database, and an AI section. The AI section holds generated content or an
``AINote`` naming the error kind and the reason no AI opinion was obtained.

Results serialize with camelCase keys (``to_payload``). Fields that are None
are left out.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ResultModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dictionary with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class AINote(ResultModel):
    """Why the AI section holds no generated content.

    Attributes
    ----------
    note : str
        Human-readable explanation
    error_kind : str
        SamplingUnavailableError, SamplingTimeoutError, SamplingParseError or
        ResponderError
    reason : str
        Message of the underlying error
    """

    note: str
    error_kind: str
    reason: str


class FallbackRiskNote(AINote):
    fallback_score: int = Field(..., ge=0, le=100)
    fallback_reasoning: str


class AIAnalysis(ResultModel):
    raw_analysis: str
    timestamp: datetime


class AIRiskScore(ResultModel):
    score: int = Field(..., ge=0, le=100)
    reasoning: str


# Facility report


class FacilitySummary(ResultModel):
    id: str
    name: str
    location: Optional[str] = None
    short_code: Optional[str] = None


class InspectionMetrics(ResultModel):
    total: int
    accepted: int
    acceptance_rate: str


class ContaminationMetrics(ResultModel):
    total: int
    high_risk: int
    risk_percentage: str


class ShipmentMetrics(ResultModel):
    total: int


class ReportMetrics(ResultModel):
    inspections: InspectionMetrics
    contamination: ContaminationMetrics
    shipments: ShipmentMetrics


class RawData(ResultModel):
    recent_contaminants: List[Dict[str, Any]] = Field(default_factory=list)
    recent_inspections: List[Dict[str, Any]] = Field(default_factory=list)
    recent_shipments: List[Dict[str, Any]] = Field(default_factory=list)


class FacilityReport(ResultModel):
    """Output of ``generate_intelligent_facility_report``."""

    report_id: str
    generated_at: datetime
    facility: FacilitySummary
    metrics: ReportMetrics
    ai_analysis: Union[AIAnalysis, AINote]
    raw_data: RawData


# Shipment risk assessment


class ShipmentSummary(ResultModel):
    source: Optional[str] = None
    license_plate: Optional[str] = None
    facility: Optional[str] = None
    duration: Optional[str] = None


class RiskIndicators(ResultModel):
    current_contaminants: int
    high_risk_contaminants: int
    source_history_contaminants: int
    source_history_shipments: int


class RiskAssessment(ResultModel):
    """Output of ``analyze_shipment_risk``."""

    shipment_id: str
    assessed_at: datetime
    shipment: ShipmentSummary
    risk_indicators: RiskIndicators
    ai_risk_score: Union[AIRiskScore, FallbackRiskNote]
    risk_factors: List[str]
    recommended_actions: List[str]
    detailed_contaminants: List[Dict[str, Any]] = Field(default_factory=list)


# Inspection checklist


class FacilityMetrics(ResultModel):
    recent_contaminants: int
    acceptance_rate: str
    avg_processing_time: str
    compliance_issues: int


class InspectionChecklist(ResultModel):
    """Output of ``suggest_inspection_questions``."""

    facility_id: str
    facility_name: str
    generated_at: datetime
    focus_area: str
    selection_method: str
    facility_metrics: FacilityMetrics
    inspection_questions: List[str]
    additional_notes: List[str]
    sampling_note: Optional[AINote] = None
