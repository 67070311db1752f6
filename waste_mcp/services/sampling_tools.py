"""Sampling-aware tools for the waste-management MCP server.

This module exposes three MCP tools that combine deterministic database
metrics with optional text generated by the connected client's language
model:

generate_intelligent_facility_report
    Facility metrics plus a free-text analysis
analyze_shipment_risk
    Shipment risk indicators plus a 0-100 risk score
suggest_inspection_questions
    Focus area elicited from the model, then a generated inspection checklist

Every tool follows the same shape: validate arguments, look the target
record up (a missing record ends the call with an error result and no
sampling), fetch related records concurrently, compute baseline metrics,
then ask for AI content only if a responder is registered. Any sampling
failure, including whatever a responder raises, becomes a structured note in
the result; it never fails the tool call.

Classes
-------
SamplingToolService
    Registers the tools and implements them

See Also
--------
waste_mcp.sampling.helpers : Prompt shaping and reply parsing
waste_mcp.utils : Baseline metrics and fallback policy
"""

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from .. import constants
from ..config import PolicyConfig
from ..exceptions import DomainNotFoundError, WasteMCPException, create_error_response
from ..models import Facility
from ..results import (
    AIAnalysis,
    AINote,
    AIRiskScore,
    ContaminationMetrics,
    FacilityMetrics,
    FacilityReport,
    FacilitySummary,
    FallbackRiskNote,
    InspectionChecklist,
    InspectionMetrics,
    RawData,
    ReportMetrics,
    ResultModel,
    RiskAssessment,
    RiskIndicators,
    ShipmentMetrics,
    ShipmentSummary,
)
from ..sampling.helpers import SamplingHelpers, parse_numbered_items
from ..storage import RecordStore
from ..utils import (
    acceptance_ratio,
    average_processing_minutes,
    build_additional_notes,
    classify_sampling_error,
    count_accepted,
    count_compliance_issues,
    count_high_risk,
    derive_recommended_actions,
    derive_risk_factors,
    fallback_risk_score,
    format_minutes,
    format_percentage,
    select_focus_area,
)
from ..validation import (
    FacilityReportRequest,
    InspectionQuestionsRequest,
    ShipmentRiskRequest,
    validate_tool_arguments,
)
from .base import ToolService

FOCUS_QUESTION = "Based on this facility's recent history, which area needs most attention for the next inspection?"
FALLBACK_RISK_REASONING = "Calculated based on contamination count and severity levels"
NO_RESPONDER_REASON = "No sampling responder registered"

Envelope = Dict[str, Any]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SamplingToolService(ToolService):
    """Service implementing the sampling-aware tools.

    Parameters
    ----------
    mcp : FastMCP
        Server the tools are registered on
    store : RecordStore
        Read-only record store
    helpers : SamplingHelpers
        Sampling helpers bound to the application broker
    policy : PolicyConfig, optional
        Fetch limits and focus thresholds (default: values from ``waste_mcp.constants``)

    Notes
    -----
    Each ``_*_impl`` method returns an envelope
    ``{"content": [{"type": "text", "text": <json>}], "isError": True?}``.
    The registered tool functions return the text, or raise ``ToolError``
    for error envelopes so that FastMCP flags the result as an error.
    """

    def __init__(
        self,
        mcp: FastMCP,
        store: RecordStore,
        helpers: SamplingHelpers,
        policy: Optional[PolicyConfig] = None,
    ):
        self.store = store
        self.helpers = helpers
        self.policy = policy or PolicyConfig()
        super().__init__(name="sampling_tools", mcp=mcp)

    def _register_tools(self) -> None:
        """Register the sampling-aware tools with the MCP server."""

        @self._mcp.tool
        async def generate_intelligent_facility_report(facilityId: str, includeRecommendations: bool = False) -> str:
            """Generate an intelligent facility report with AI-powered analysis.

            The report always contains inspection, contamination and shipment
            metrics. When the client supports sampling it also contains an
            AI analysis with a health score, top concerns and a compliance
            risk level.

            Parameters
            ----------
            facilityId : str
                Facility ID to generate report for
            includeRecommendations : bool, default=False
                Whether to include AI recommendations

            Returns
            -------
            str
                JSON report
            """
            return self._unwrap(
                await self._generate_report_impl(facility_id=facilityId, include_recommendations=includeRecommendations)
            )

        @self._mcp.tool
        async def analyze_shipment_risk(shipmentId: str) -> str:
            """Analyze shipment risk from its contaminants and its source's history.

            Parameters
            ----------
            shipmentId : str
                Shipment ID to analyze

            Returns
            -------
            str
                JSON risk assessment with an AI risk score, or a fallback
                score when no AI score could be obtained
            """
            return self._unwrap(await self._analyze_shipment_risk_impl(shipment_id=shipmentId))

        @self._mcp.tool
        async def suggest_inspection_questions(facilityId: str) -> str:
            """Generate customized inspection questions based on facility history.

            Parameters
            ----------
            facilityId : str
                Facility ID to generate inspection questions for

            Returns
            -------
            str
                JSON checklist with the focus area, how it was selected and
                the inspection questions
            """
            return self._unwrap(await self._suggest_questions_impl(facility_id=facilityId))

    # Envelopes

    @staticmethod
    def _success(result: ResultModel) -> Envelope:
        return {"content": [{"type": "text", "text": json.dumps(result.to_payload(), indent=2)}]}

    @staticmethod
    def _failure(error: Exception, action: str) -> Envelope:
        body = create_error_response(error)
        if not isinstance(error, WasteMCPException):
            body["error"] = f"Error {action}: {body['error']}"
        return {"content": [{"type": "text", "text": json.dumps(body, indent=2, default=str)}], "isError": True}

    @staticmethod
    def _unwrap(envelope: Envelope) -> str:
        text = envelope["content"][0]["text"]
        if envelope.get("isError"):
            raise ToolError(text)
        return text

    # Notes

    @staticmethod
    def _unavailable_note(note: str) -> AINote:
        return AINote(note=note, error_kind="SamplingUnavailableError", reason=NO_RESPONDER_REASON)

    @staticmethod
    def _failure_note(note: str, error: Exception) -> AINote:
        reason = error.message if isinstance(error, WasteMCPException) else (str(error) or type(error).__name__)
        return AINote(note=note, error_kind=classify_sampling_error(error), reason=reason)

    async def _require_facility(self, facility_id: str) -> Facility:
        facility = await self.store.get_facility(facility_id)
        if facility is None:
            raise DomainNotFoundError("Facility not found", details={"facility_id": facility_id})
        return facility

    # generate_intelligent_facility_report

    async def _generate_report_impl(self, facility_id: str, include_recommendations: bool = False) -> Envelope:
        """Build the facility report.

        Parameters
        ----------
        facility_id : str
            Facility to report on
        include_recommendations : bool, optional
            Ask the model for three recommendations as well

        Returns
        -------
        Envelope
            Report envelope, or an error envelope for invalid arguments or an
            unknown facility
        """
        try:
            async with self._operation_context("generate_intelligent_facility_report", facility_id=facility_id):
                request = validate_tool_arguments(
                    FacilityReportRequest,
                    {"facilityId": facility_id, "includeRecommendations": include_recommendations},
                )
                facility = await self._require_facility(request.facility_id)

                inspections, contaminants, shipments = await asyncio.gather(
                    self.store.find_inspections(facility.id, limit=self.policy.report_inspection_limit),
                    self.store.find_contaminants(facility_id=facility.id, limit=self.policy.report_contaminant_limit),
                    self.store.find_shipments(facility_id=facility.id, limit=self.policy.report_shipment_limit),
                )

                accepted = count_accepted(inspections)
                high_risk = count_high_risk(contaminants)
                acceptance_rate = format_percentage(accepted, len(inspections))
                metrics = ReportMetrics(
                    inspections=InspectionMetrics(
                        total=len(inspections), accepted=accepted, acceptance_rate=acceptance_rate
                    ),
                    contamination=ContaminationMetrics(
                        total=len(contaminants),
                        high_risk=high_risk,
                        risk_percentage=format_percentage(high_risk, len(contaminants)),
                    ),
                    shipments=ShipmentMetrics(total=len(shipments)),
                )

                sample = constants.REPORT_PROMPT_SAMPLE_SIZE
                analysis_data = {
                    "facility": {"name": facility.name, "location": facility.location, "shortCode": facility.short_code},
                    "metrics": {
                        "totalInspections": len(inspections),
                        "acceptanceRate": acceptance_rate,
                        "totalContaminants": len(contaminants),
                        "highRiskContaminants": high_risk,
                        "totalShipments": len(shipments),
                    },
                    "recentContaminants": [
                        {
                            "type": c.waste_item_detected,
                            "material": c.material,
                            "explosive_level": c.explosive_level,
                            "hcl_level": c.hcl_level,
                            "so2_level": c.so2_level,
                            "detection_time": c.detection_time,
                        }
                        for c in contaminants[:sample]
                    ],
                    "recentInspections": [
                        {
                            "accepted": i.is_delivery_accepted,
                            "meetsConditions": i.does_delivery_meets_conditions,
                            "heatingValue": i.heating_value_calculation,
                            "wasteTypes": [w.model_dump() for w in i.selected_wastetypes],
                            "date": i.created_at,
                        }
                        for i in inspections[:sample]
                    ],
                }

                ai_analysis = await self._facility_analysis(analysis_data, include_recommendations)

                raw = constants.REPORT_RAW_DATA_LIMIT
                report = FacilityReport(
                    report_id=f"RPT-{int(time.time() * 1000)}",
                    generated_at=_now(),
                    facility=FacilitySummary(
                        id=facility.id, name=facility.name, location=facility.location, short_code=facility.short_code
                    ),
                    metrics=metrics,
                    ai_analysis=ai_analysis,
                    raw_data=RawData(
                        recent_contaminants=[c.to_document() for c in contaminants[:raw]],
                        recent_inspections=[i.to_document() for i in inspections[:raw]],
                        recent_shipments=[s.to_document() for s in shipments[:raw]],
                    ),
                )
                return self._success(report)
        except Exception as e:
            return self._failure(e, "generating report")

    async def _facility_analysis(self, analysis_data: Dict[str, Any], include_recommendations: bool):
        if not self.helpers.is_available():
            return self._unavailable_note("Sampling not available - AI analysis skipped")

        prompt = (
            "Analyze this waste management facility and provide:\n"
            "1. Overall health score (0-100, where 100 is excellent)\n"
            "2. Top 3 concerns (bullet points)\n"
            "3. Compliance risk level (low/medium/high)\n"
        )
        if include_recommendations:
            prompt += "4. 3 actionable recommendations for improvement\n"
        prompt += "\nProvide a structured analysis based on the facility data."

        try:
            text = await self.helpers.request_analysis(prompt, analysis_data)
        except Exception as e:
            self.logger.warning("AI analysis failed, returning baseline metrics", extra={"error": str(e)})
            return self._failure_note("AI analysis failed - baseline metrics only", e)
        return AIAnalysis(raw_analysis=text, timestamp=_now())

    # analyze_shipment_risk

    async def _analyze_shipment_risk_impl(self, shipment_id: str) -> Envelope:
        """Build the shipment risk assessment.

        The fallback score is always computed. It is reported in the AI
        section whenever no AI score was obtained, including when the reply
        held no readable score.
        """
        try:
            async with self._operation_context("analyze_shipment_risk", shipment_id=shipment_id):
                request = validate_tool_arguments(ShipmentRiskRequest, {"shipmentId": shipment_id})
                shipment = await self.store.get_shipment(request.shipment_id)
                if shipment is None:
                    raise DomainNotFoundError("Shipment not found", details={"shipment_id": request.shipment_id})

                async def no_facility():
                    return None

                async def no_history():
                    return []

                facility, contaminants, source_shipments = await asyncio.gather(
                    self.store.get_facility(shipment.facility_id) if shipment.facility_id else no_facility(),
                    self.store.find_contaminants(shipment_ids=[shipment.id]),
                    self.store.find_shipments(
                        source=shipment.source, exclude_id=shipment.id, limit=self.policy.source_history_limit
                    )
                    if shipment.source
                    else no_history(),
                )
                history = await self.store.find_contaminants(shipment_ids=[s.id for s in source_shipments])

                high_risk = count_high_risk(contaminants)
                fallback = fallback_risk_score(len(contaminants), high_risk, len(history))

                if contaminants:
                    contaminant_lines = "\n".join(
                        f"  - {c.waste_item_detected} ({c.material}): explosive={c.explosive_level}, "
                        f"HCl={c.hcl_level}, SO2={c.so2_level}"
                        for c in contaminants
                    )
                else:
                    contaminant_lines = "  None"
                risk_context = (
                    "Shipment Information:\n"
                    f"- ID: {shipment.id}\n"
                    f"- Source: {shipment.source}\n"
                    f"- Facility: {facility.name if facility else 'Unknown'}\n"
                    f"- License Plate: {shipment.license_plate}\n"
                    f"- Entry: {shipment.entry_timestamp}\n"
                    f"- Exit: {shipment.exit_timestamp}\n\n"
                    "Current Shipment Contaminants:\n"
                    f"- Total detected: {len(contaminants)}\n"
                    f"- High risk: {high_risk}\n"
                    f"{contaminant_lines}\n\n"
                    f"Source History ({shipment.source}):\n"
                    f"- Previous shipments: {len(source_shipments)}\n"
                    f"- Historical contaminants: {len(history)}\n"
                    f"- Historical high risk: {count_high_risk(history)}\n"
                )

                ai_risk_score = await self._risk_score(risk_context, fallback)

                duration = shipment.duration_minutes
                assessment = RiskAssessment(
                    shipment_id=shipment.id,
                    assessed_at=_now(),
                    shipment=ShipmentSummary(
                        source=shipment.source,
                        license_plate=shipment.license_plate,
                        facility=facility.name if facility else None,
                        duration=f"{duration} minutes" if duration is not None else None,
                    ),
                    risk_indicators=RiskIndicators(
                        current_contaminants=len(contaminants),
                        high_risk_contaminants=high_risk,
                        source_history_contaminants=len(history),
                        source_history_shipments=len(source_shipments),
                    ),
                    ai_risk_score=ai_risk_score,
                    risk_factors=derive_risk_factors(len(contaminants), high_risk, len(history), len(source_shipments)),
                    recommended_actions=derive_recommended_actions(len(contaminants), high_risk, len(history)),
                    detailed_contaminants=[c.to_document() for c in contaminants],
                )
                return self._success(assessment)
        except Exception as e:
            return self._failure(e, "analyzing shipment")

    async def _risk_score(self, risk_context: str, fallback: int):
        def fallback_note(note: AINote) -> FallbackRiskNote:
            return FallbackRiskNote(
                **note.model_dump(), fallback_score=fallback, fallback_reasoning=FALLBACK_RISK_REASONING
            )

        if not self.helpers.is_available():
            return fallback_note(self._unavailable_note("Sampling not available - AI risk scoring skipped"))

        try:
            score = await self.helpers.request_risk_score(risk_context)
        except Exception as e:
            self.logger.warning("AI risk scoring failed, using fallback score", extra={"error": str(e)})
            return fallback_note(self._failure_note("AI risk scoring failed - using fallback score", e))

        if score.parse_error:
            return fallback_note(
                AINote(
                    note="AI risk score could not be read - using fallback score",
                    error_kind="SamplingParseError",
                    reason=score.parse_error,
                )
            )
        return AIRiskScore(score=score.score, reasoning=score.reasoning)

    # suggest_inspection_questions

    async def _suggest_questions_impl(self, facility_id: str) -> Envelope:
        """Build the inspection checklist.

        Phase 1 elicits the focus area. If that did not produce a usable
        answer the metric rule picks it and the checklist is marked
        metric-based. Phase 2 generates questions only after an AI-assisted
        phase 1; when it yields none the static question bank is used.
        """
        try:
            async with self._operation_context("suggest_inspection_questions", facility_id=facility_id):
                request = validate_tool_arguments(InspectionQuestionsRequest, {"facilityId": facility_id})
                facility = await self._require_facility(request.facility_id)

                inspections, contaminants, shipments = await asyncio.gather(
                    self.store.find_inspections(facility.id, limit=self.policy.checklist_inspection_limit),
                    self.store.find_contaminants(
                        facility_id=facility.id, limit=self.policy.checklist_contaminant_limit
                    ),
                    self.store.find_shipments(facility_id=facility.id, limit=self.policy.checklist_shipment_limit),
                )

                contaminant_count = len(contaminants)
                acceptance = acceptance_ratio(inspections)
                avg_minutes = average_processing_minutes(shipments)
                compliance_issues = count_compliance_issues(inspections)

                focus_area, sampling_note = await self._select_focus(contaminant_count, acceptance, compliance_issues)
                ai_assisted = sampling_note is None

                facility_metrics = FacilityMetrics(
                    recent_contaminants=contaminant_count,
                    acceptance_rate=f"{acceptance * 100:.1f}%",
                    avg_processing_time=format_minutes(avg_minutes),
                    compliance_issues=compliance_issues,
                )

                questions = []
                if ai_assisted:
                    questions = await self._generate_questions(focus_area, facility_metrics)
                if not questions:
                    questions = list(
                        constants.QUESTION_BANK.get(focus_area, constants.QUESTION_BANK[constants.FOCUS_CONTAMINATION])
                    )

                checklist = InspectionChecklist(
                    facility_id=facility.id,
                    facility_name=facility.name,
                    generated_at=_now(),
                    focus_area=focus_area,
                    selection_method=constants.SELECTION_AI if ai_assisted else constants.SELECTION_METRIC,
                    facility_metrics=facility_metrics,
                    inspection_questions=questions,
                    additional_notes=build_additional_notes(contaminant_count, acceptance, compliance_issues),
                    sampling_note=sampling_note,
                )
                return self._success(checklist)
        except Exception as e:
            return self._failure(e, "generating questions")

    async def _select_focus(self, contaminant_count: int, acceptance: float, compliance_issues: int):
        """Focus area and, when the metric rule had to be used, the note saying why."""
        note = None
        if not self.helpers.is_available():
            note = self._unavailable_note("Sampling not available - using metric-based focus selection")
        else:
            try:
                choice = await self.helpers.elicit_choice(FOCUS_QUESTION, constants.FOCUS_AREAS)
            except Exception as e:
                self.logger.warning("Focus area elicitation failed, using metric rule", extra={"error": str(e)})
                note = self._failure_note("Focus area elicitation failed - using metric-based focus selection", e)
            else:
                if not choice.fallback:
                    return choice.selected, None
                note = AINote(
                    note="Focus area reply matched no option - using metric-based focus selection",
                    error_kind="SamplingParseError",
                    reason="Reply did not name any of the offered focus areas",
                )

        focus = select_focus_area(
            contaminant_count,
            acceptance,
            compliance_issues,
            contamination_threshold=self.policy.contamination_focus_threshold,
            acceptance_threshold=self.policy.acceptance_focus_threshold,
            compliance_threshold=self.policy.compliance_focus_threshold,
        )
        return focus, note

    async def _generate_questions(self, focus_area: str, metrics: FacilityMetrics):
        prompt = (
            f'Generate a checklist of 5-7 specific inspection questions focused on "{focus_area}" '
            "for a waste management facility with the following characteristics:\n"
            f"- Recent contaminants detected: {metrics.recent_contaminants}\n"
            f"- Acceptance rate: {metrics.acceptance_rate}\n"
            f"- Compliance issues: {metrics.compliance_issues}\n"
            f"- Average processing time: {metrics.avg_processing_time}\n\n"
            "Return only the numbered questions, one per line."
        )
        data = {
            "focusArea": focus_area,
            "facilityMetrics": {
                "contaminants": metrics.recent_contaminants,
                "acceptanceRate": metrics.acceptance_rate,
                "complianceIssues": metrics.compliance_issues,
                "avgProcessingTime": metrics.avg_processing_time,
            },
        }
        try:
            text = await self.helpers.request_analysis(prompt, data)
        except Exception as e:
            self.logger.warning("Question generation failed, using question bank", extra={"error": str(e)})
            return []
        return parse_numbered_items(text, limit=constants.MAX_GENERATED_QUESTIONS)
