"""Server-initiated sampling: broker, responders and typed helpers."""

from .broker import SamplingBroker, SamplingKind, SamplingPayload, SamplingRequest, SamplingStatus
from .helpers import ChoiceResult, RiskScore, SamplingHelpers, match_choice, parse_numbered_items, parse_risk_score
from .responders import ClientSamplingResponder, PlaceholderResponder, SamplingResponder, create_responder

__all__ = [
    "SamplingBroker",
    "SamplingKind",
    "SamplingPayload",
    "SamplingRequest",
    "SamplingStatus",
    "SamplingHelpers",
    "RiskScore",
    "ChoiceResult",
    "match_choice",
    "parse_numbered_items",
    "parse_risk_score",
    "SamplingResponder",
    "PlaceholderResponder",
    "ClientSamplingResponder",
    "create_responder",
]
