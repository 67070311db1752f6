"""Tests for the typed sampling helpers and reply parsing."""

import asyncio
import json

import pytest

from waste_mcp import constants
from waste_mcp.exceptions import SamplingTimeoutError, SamplingUnavailableError
from waste_mcp.sampling.broker import SamplingBroker, SamplingKind
from waste_mcp.sampling.helpers import (
    SamplingHelpers,
    clamp_score,
    match_choice,
    parse_numbered_items,
    parse_risk_score,
)


class RecordingResponder:
    """Replies with a fixed text and keeps every request it saw."""

    def __init__(self, reply):
        self.reply = reply
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.reply


class TestParseRiskScore:
    """Test reading risk scores from replies."""

    def test_json_reply(self):
        result = parse_risk_score('{"score": 72, "reasoning": "Two high-risk batteries"}')
        assert result.score == 72
        assert result.reasoning == "Two high-risk batteries"
        assert result.parse_error is None

    def test_json_embedded_in_prose(self):
        reply = 'Here is my assessment:\n```json\n{"score": "35", "reasoning": "Minor issues"}\n```'
        result = parse_risk_score(reply)
        assert result.score == 35
        assert result.reasoning == "Minor issues"

    def test_json_score_is_clamped(self):
        assert parse_risk_score('{"score": 180, "reasoning": "x"}').score == 100
        assert parse_risk_score('{"score": -5, "reasoning": "x"}').score == 0

    def test_json_without_reasoning_keeps_reply(self):
        result = parse_risk_score('{"score": 40}')
        assert result.score == 40
        assert result.reasoning == '{"score": 40}'

    def test_plain_number_with_reasoning(self):
        result = parse_risk_score("Risk: 85 - multiple explosive contaminants detected")
        assert result.score == 85
        assert result.reasoning == "multiple explosive contaminants detected"

    def test_plain_number_is_clamped(self):
        assert parse_risk_score("I would say 250").score == 100

    def test_boolean_score_is_not_a_number(self):
        result = parse_risk_score('{"score": true, "reasoning": "yes"}')
        assert result.parse_error is not None
        assert result.score == constants.NEUTRAL_RISK_SCORE

    @pytest.mark.parametrize(
        "reply",
        [
            '{"score": NaN, "reasoning": "x"}',
            '{"score": Infinity}',
            '{"score": -Infinity, "reasoning": "x"}',
            '{"score": "nan", "reasoning": "x"}',
            '{"score": "inf"}',
        ],
    )
    def test_non_finite_score_is_flagged(self, reply):
        result = parse_risk_score(reply)
        assert result.score == constants.NEUTRAL_RISK_SCORE
        assert result.parse_error == "No risk score found in reply"

    def test_non_finite_json_score_falls_back_to_integer_scan(self):
        result = parse_risk_score('Score 64. {"score": NaN}')
        assert result.score == 64
        assert result.parse_error is None

    def test_oversized_numbers(self):
        assert parse_risk_score('{"score": 1' + "0" * 400 + "}").score == 50
        assert parse_risk_score("9" * 5000).parse_error is not None

    def test_reply_without_number(self):
        result = parse_risk_score("The shipment looks concerning.")
        assert result.score == 50
        assert result.parse_error == "No risk score found in reply"
        assert result.reasoning == "The shipment looks concerning."

    def test_clamp_score_rounds(self):
        assert clamp_score(49.6) == 50
        assert clamp_score(101) == 100


class TestMatchChoice:
    """Test matching replies against offered options."""

    OPTIONS = constants.FOCUS_AREAS

    def test_exact_match_ignores_case(self):
        result = match_choice("  acceptance RATES ", self.OPTIONS)
        assert result.selected == "Acceptance rates"
        assert result.method == "exact"
        assert result.fallback is False

    def test_substring_match(self):
        result = match_choice("I think Processing times need the most attention.", self.OPTIONS)
        assert result.selected == "Processing times"
        assert result.method == "substring"

    def test_first_option_wins_substring_tie(self):
        result = match_choice("Waste type compliance and Contamination levels", self.OPTIONS)
        assert result.selected == "Contamination levels"

    @pytest.mark.parametrize(
        "reply, expected",
        [
            ("B", "Acceptance rates"),
            ("C) because trucks wait too long", "Processing times"),
            ("(D) paperwork", "Waste type compliance"),
            ("A. many detections", "Contamination levels"),
            ("b) because deliveries keep getting rejected", "Acceptance rates"),
            ("(d) paperwork", "Waste type compliance"),
        ],
    )
    def test_letter_match(self, reply, expected):
        result = match_choice(reply, self.OPTIONS)
        assert result.selected == expected
        assert result.method == "letter"

    def test_letter_out_of_range_falls_back(self):
        result = match_choice("Z) none of these", self.OPTIONS)
        assert result.selected == self.OPTIONS[0]
        assert result.fallback is True

    def test_unmatched_reply_falls_back_to_first_option(self):
        result = match_choice("no idea", self.OPTIONS)
        assert result.selected == "Contamination levels"
        assert result.fallback is True
        assert result.method == "fallback"

    def test_empty_options_rejected(self):
        with pytest.raises(ValueError):
            match_choice("A", [])


class TestParseNumberedItems:
    """Test numbered list extraction."""

    def test_extracts_and_strips_prefixes(self):
        text = "Here you go:\n1. First question?\n2) Second question?\n\n3.   Third question?\nThanks"
        assert parse_numbered_items(text) == ["First question?", "Second question?", "Third question?"]

    def test_drops_empty_items(self):
        assert parse_numbered_items("1.\n2. Kept") == ["Kept"]

    def test_limit(self):
        text = "\n".join(f"{n}. Q{n}" for n in range(1, 11))
        assert parse_numbered_items(text, limit=7) == [f"Q{n}" for n in range(1, 8)]

    def test_no_numbered_lines(self):
        assert parse_numbered_items("- bullet\n* another") == []


class TestSamplingHelpers:
    """Test the helpers against a broker with a recording responder."""

    @pytest.mark.asyncio
    async def test_request_analysis_prompt_and_hints(self, broker, helpers):
        responder = RecordingResponder("Looks healthy")
        broker.register_responder(responder)

        reply = await helpers.request_analysis("Analyze this facility", {"facility": "North Plant", "count": 3})

        assert reply == "Looks healthy"
        request = responder.requests[0]
        assert request.kind == SamplingKind.FREE_TEXT
        assert request.payload.prompt.startswith("Analyze this facility\n\nData to analyze:\n")
        assert json.dumps({"facility": "North Plant", "count": 3}, indent=2) in request.payload.prompt
        assert request.payload.max_tokens == 1500
        assert request.payload.temperature == 0.7

    @pytest.mark.asyncio
    async def test_request_risk_score(self, broker, helpers):
        responder = RecordingResponder('{"score": 61, "reasoning": "High-risk battery"}')
        broker.register_responder(responder)

        result = await helpers.request_risk_score("Shipment Information:\n- ID: shp-1")

        assert result.score == 61
        assert result.reasoning == "High-risk battery"
        request = responder.requests[0]
        assert request.kind == SamplingKind.STRUCTURED_SCORE
        assert "Context:\nShipment Information:\n- ID: shp-1" in request.payload.prompt
        assert '"score" (0-100' in request.payload.prompt
        assert request.payload.max_tokens == 500
        assert request.payload.temperature == 0.5

    @pytest.mark.asyncio
    async def test_request_risk_score_unparseable_reply(self, broker, helpers):
        broker.register_responder(RecordingResponder("cannot say"))

        result = await helpers.request_risk_score("context")

        assert result.score == 50
        assert result.parse_error

    @pytest.mark.asyncio
    async def test_elicit_choice(self, broker, helpers):
        responder = RecordingResponder("B) acceptance has dropped recently")
        broker.register_responder(responder)

        result = await helpers.elicit_choice("Which area?", constants.FOCUS_AREAS)

        assert result.selected == "Acceptance rates"
        request = responder.requests[0]
        assert request.kind == SamplingKind.CHOICE
        assert "A) Contamination levels\nB) Acceptance rates\nC) Processing times\nD) Waste type compliance" in (
            request.payload.prompt
        )
        assert request.payload.max_tokens == 300
        assert request.payload.temperature == 0.3

    @pytest.mark.asyncio
    async def test_elicit_choice_empty_options_sends_nothing(self, broker, helpers):
        responder = RecordingResponder("A")
        broker.register_responder(responder)

        with pytest.raises(ValueError):
            await helpers.elicit_choice("Which?", [])
        assert responder.requests == []
        assert broker.stats["created"] == 0

    @pytest.mark.asyncio
    async def test_unavailable_propagates(self, helpers):
        assert helpers.is_available() is False
        with pytest.raises(SamplingUnavailableError):
            await helpers.request_analysis("Analyze", {})

    @pytest.mark.asyncio
    async def test_helper_timeout(self):
        broker = SamplingBroker(default_timeout=30)
        broker.register_responder(lambda request: None)
        helpers = SamplingHelpers(broker, timeout=0.05)

        with pytest.raises(SamplingTimeoutError):
            await helpers.request_risk_score("context")

    @pytest.mark.asyncio
    async def test_each_helper_sends_one_request(self, broker, helpers):
        responder = RecordingResponder("A")
        broker.register_responder(responder)

        await asyncio.gather(
            helpers.request_analysis("x", {}),
            helpers.request_risk_score("y"),
            helpers.elicit_choice("z", ["one", "two"]),
        )

        assert len(responder.requests) == 3
        assert broker.stats["resolved"] == 3
