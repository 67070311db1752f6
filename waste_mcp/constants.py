"""Waste Management MCP Server Constants.

This module contains the constants shared across the server: application
identity, sampling defaults, the default fallback policy for the
sampling-aware tools and the static inspection question bank.

Constants
---------
APP_NAME : str
    Application name identifier
DEFAULT_SAMPLING_TIMEOUT : float
    Seconds a sampling request may stay pending
RISK_SCORE_WEIGHTS : dict
    Weights of the deterministic shipment risk formula
FOCUS_AREAS : list
    Options offered when eliciting the inspection focus area
QUESTION_BANK : dict
    Static inspection questions keyed by focus area

Notes
-----
The fetch limits, weights and thresholds are heuristics. Most of them can be
overridden through ``waste_mcp.config.PolicyConfig``.
"""

# Application identification constants
APP_NAME = "mcp-waste-management"
"""str: Application name identifier for logging and health output."""

APP_VERSION = "1.0.0"
"""str: Application version reported by the server."""

SERVER_NAME = "Waste Management MCP Server"
"""str: Display name of the FastMCP server."""

# Sampling defaults
DEFAULT_SAMPLING_TIMEOUT = 30.0
"""float: Seconds to wait for a sampling reply before giving up."""

REQUEST_ID_PREFIX = "sampling-"
"""str: Prefix of broker-generated correlation ids."""

ANALYSIS_MAX_TOKENS = 1500
ANALYSIS_TEMPERATURE = 0.7
RISK_SCORE_MAX_TOKENS = 500
RISK_SCORE_TEMPERATURE = 0.5
CHOICE_MAX_TOKENS = 300
CHOICE_TEMPERATURE = 0.3

MODEL_PREFERENCES = {
    "intelligence_priority": 0.8,
    "speed_priority": 0.5,
    "cost_priority": 0.3,
}
"""dict: Model selection hints forwarded to the client with every request."""

NEUTRAL_RISK_SCORE = 50
"""int: Score reported alongside a parse failure when no number was found."""

# Contaminant hazard levels
HIGH_RISK_LEVEL = "high"

# Fetch limits (most recent first)
REPORT_INSPECTION_LIMIT = 20
REPORT_CONTAMINANT_LIMIT = 50
REPORT_SHIPMENT_LIMIT = 30
REPORT_RAW_DATA_LIMIT = 10
REPORT_PROMPT_SAMPLE_SIZE = 5
SOURCE_HISTORY_LIMIT = 10
CHECKLIST_INSPECTION_LIMIT = 10
CHECKLIST_CONTAMINANT_LIMIT = 20
CHECKLIST_SHIPMENT_LIMIT = 15

# Shipment risk fallback formula
RISK_SCORE_WEIGHTS = {
    "contaminant": 10,
    "high_risk_contaminant": 25,
    "source_history_contaminant": 2,
}
"""dict: Weights of ``min(100, c*10 + h*25 + s*2)``.

Keys
----
contaminant : int
    Weight per contaminant found in the shipment
high_risk_contaminant : int
    Extra weight per high-risk contaminant in the shipment
source_history_contaminant : int
    Weight per contaminant found in earlier shipments from the same source
"""

MAX_RISK_SCORE = 100
MIN_RISK_SCORE = 0

SOURCE_HISTORY_CONCERN_THRESHOLD = 5
"""int: Historical contaminants above which a source is flagged."""

LIMITED_HISTORY_THRESHOLD = 3
"""int: Fewer earlier shipments than this means limited source history."""

# Inspection focus selection
FOCUS_CONTAMINATION = "Contamination levels"
FOCUS_ACCEPTANCE = "Acceptance rates"
FOCUS_PROCESSING = "Processing times"
FOCUS_COMPLIANCE = "Waste type compliance"

FOCUS_AREAS = [FOCUS_CONTAMINATION, FOCUS_ACCEPTANCE, FOCUS_PROCESSING, FOCUS_COMPLIANCE]
"""list: Options offered to the client when eliciting the focus area."""

CONTAMINATION_FOCUS_THRESHOLD = 10
ACCEPTANCE_FOCUS_THRESHOLD = 0.7
COMPLIANCE_FOCUS_THRESHOLD = 3

HIGH_CONTAMINATION_NOTE_THRESHOLD = 15
LOW_ACCEPTANCE_NOTE_THRESHOLD = 0.5
COMPLIANCE_NOTE_THRESHOLD = 5

MIN_GENERATED_QUESTIONS = 5
MAX_GENERATED_QUESTIONS = 7

SELECTION_AI = "AI-assisted"
SELECTION_METRIC = "metric-based"

QUESTION_BANK = {
    FOCUS_CONTAMINATION: [
        "Are contamination detection systems functioning properly?",
        "What protocols are in place for high-risk contamination events?",
        "Review recent contamination logs - are patterns emerging?",
        "Are staff trained on latest contamination identification procedures?",
        "Verify segregation procedures for contaminated waste streams",
    ],
    FOCUS_ACCEPTANCE: [
        "Review rejection reasons for the past 30 days",
        "Are acceptance criteria clearly communicated to suppliers?",
        "Check if supplier education programs are effective",
        "Verify pre-arrival notification system is working",
        "Assess if acceptance criteria need adjustment",
    ],
    FOCUS_PROCESSING: [
        "Identify bottlenecks in the receiving process",
        "Are processing bays optimally utilized?",
        "Review staffing levels during peak hours",
        "Check equipment maintenance schedules",
        "Evaluate digital workflow systems",
    ],
    FOCUS_COMPLIANCE: [
        "Verify waste classification procedures",
        "Check that heating value calculations are accurate",
        "Review waste type percentage distributions",
        "Ensure contract-specified waste types match deliveries",
        "Validate waste producer documentation",
    ],
}
"""dict: Static checklist used when no questions could be generated."""
