"""Baseline metrics and fallback policy for the sampling-aware tools.

Everything here is a pure function of the records fetched for one tool call.
These values are always part of a tool result, whether or not a language
model contributed anything.

Functions
---------
format_percentage
    Render a ratio as a percentage string
format_minutes
    Render a duration in whole minutes
count_accepted, count_high_risk, count_compliance_issues
    Record counts used by several tools
acceptance_ratio
    Share of accepted deliveries
average_processing_minutes
    Mean time between shipment entry and exit
fallback_risk_score
    Deterministic shipment risk score
derive_risk_factors, derive_recommended_actions
    Rule-based lists for the risk assessment
select_focus_area
    Metric rule choosing the inspection focus area
build_additional_notes
    Warnings attached to the inspection checklist
classify_sampling_error
    Map an exception to the error kind reported in notes

Notes
-----
Thresholds and weights default to the values in ``waste_mcp.constants``.
They are tunable policy; the focus thresholds can be set through
``PolicyConfig``.
"""

import math
from typing import Dict, List, Optional, Sequence

from . import constants
from .exceptions import SamplingError
from .models import Contaminant, Inspection, Shipment


def format_percentage(numerator: float, denominator: float, digits: int = 2) -> str:
    """Render ``numerator / denominator`` as a percentage.

    Examples
    --------
        >>> format_percentage(1, 1)
        '100.00%'
        >>> format_percentage(0, 0)
        '0%'
        >>> format_percentage(2, 3, digits=1)
        '66.7%'
    """
    if not denominator:
        return "0%"
    return f"{numerator / denominator * 100:.{digits}f}%"


def format_minutes(minutes: float) -> str:
    """Render a duration rounded half up to whole minutes, e.g. ``'45 minutes'``."""
    return f"{math.floor(minutes + 0.5)} minutes"


def count_accepted(inspections: Sequence[Inspection]) -> int:
    return sum(1 for i in inspections if i.is_delivery_accepted)


def count_high_risk(contaminants: Sequence[Contaminant]) -> int:
    return sum(1 for c in contaminants if c.is_high_risk)


def count_compliance_issues(inspections: Sequence[Inspection]) -> int:
    """Deliveries that did not meet the contract conditions."""
    return sum(1 for i in inspections if not i.does_delivery_meets_conditions)


def acceptance_ratio(inspections: Sequence[Inspection], default: float = 1.0) -> float:
    """Share of accepted deliveries, ``default`` when there are no inspections."""
    if not inspections:
        return default
    return count_accepted(inspections) / len(inspections)


def average_processing_minutes(shipments: Sequence[Shipment]) -> float:
    """Mean entry-to-exit time in minutes over shipments that have both timestamps."""
    durations = [
        (s.exit_timestamp - s.entry_timestamp).total_seconds() / 60
        for s in shipments
        if s.entry_timestamp is not None and s.exit_timestamp is not None
    ]
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


def fallback_risk_score(
    contaminant_count: int,
    high_risk_count: int,
    history_contaminant_count: int,
    weights: Optional[Dict[str, int]] = None,
) -> int:
    """Deterministic shipment risk score.

    ``min(100, contaminants*10 + high_risk*25 + history*2)`` with the default
    weights.

    Examples
    --------
        >>> fallback_risk_score(2, 1, 8)
        61
        >>> fallback_risk_score(10, 5, 0)
        100
    """
    weights = weights or constants.RISK_SCORE_WEIGHTS
    score = (
        contaminant_count * weights["contaminant"]
        + high_risk_count * weights["high_risk_contaminant"]
        + history_contaminant_count * weights["source_history_contaminant"]
    )
    return min(constants.MAX_RISK_SCORE, score)


def derive_risk_factors(
    contaminant_count: int, high_risk_count: int, history_contaminant_count: int, history_shipment_count: int
) -> List[str]:
    factors = []
    if contaminant_count > 0:
        factors.append("Contaminants detected in current shipment")
    if high_risk_count > 0:
        factors.append("High-risk contaminants present")
    if history_contaminant_count > constants.SOURCE_HISTORY_CONCERN_THRESHOLD:
        factors.append("Source has contamination history")
    if history_shipment_count < constants.LIMITED_HISTORY_THRESHOLD:
        factors.append("Limited history from this source")
    return factors


def derive_recommended_actions(
    contaminant_count: int, high_risk_count: int, history_contaminant_count: int
) -> List[str]:
    """Actions for the risk assessment. Never empty: documenting findings always applies."""
    actions = []
    if high_risk_count > 0:
        actions.append("Immediate inspection required")
    if contaminant_count > 0:
        actions.append("Enhanced monitoring for future shipments from this source")
    if history_contaminant_count > constants.SOURCE_HISTORY_CONCERN_THRESHOLD:
        actions.append("Consider source evaluation")
    actions.append("Document all findings in compliance report")
    return actions


def select_focus_area(
    contaminant_count: int,
    acceptance: float,
    compliance_issues: int,
    contamination_threshold: int = constants.CONTAMINATION_FOCUS_THRESHOLD,
    acceptance_threshold: float = constants.ACCEPTANCE_FOCUS_THRESHOLD,
    compliance_threshold: int = constants.COMPLIANCE_FOCUS_THRESHOLD,
) -> str:
    """Pick the inspection focus area from facility metrics.

    Rules are checked in order: many recent contaminants, then a low
    acceptance ratio, then many compliance issues; otherwise processing
    times.
    """
    if contaminant_count > contamination_threshold:
        return constants.FOCUS_CONTAMINATION
    if acceptance < acceptance_threshold:
        return constants.FOCUS_ACCEPTANCE
    if compliance_issues > compliance_threshold:
        return constants.FOCUS_COMPLIANCE
    return constants.FOCUS_PROCESSING


def build_additional_notes(contaminant_count: int, acceptance: float, compliance_issues: int) -> List[str]:
    notes = []
    if contaminant_count > constants.HIGH_CONTAMINATION_NOTE_THRESHOLD:
        notes.append("High contamination activity - extra vigilance required")
    if acceptance < constants.LOW_ACCEPTANCE_NOTE_THRESHOLD:
        notes.append("Low acceptance rate - investigate root causes")
    if compliance_issues > constants.COMPLIANCE_NOTE_THRESHOLD:
        notes.append("Significant compliance concerns - detailed review needed")
    return notes


def classify_sampling_error(error: Exception) -> str:
    """Error kind reported in AI notes.

    Sampling errors report their own class name. Anything else came out of
    the responder and is reported as ``ResponderError``.
    """
    if isinstance(error, SamplingError):
        return type(error).__name__
    return "ResponderError"
