"""Typed helpers over the sampling broker.

Each helper shapes one prompt, makes exactly one ``broker.send`` call and turns
the reply into a typed result. Broker errors (unavailable, timeout, responder
failure) propagate unchanged; the callers decide how to degrade. Reply parsing
never raises: an uninterpretable risk score is flagged on the result, and an
unmatched choice falls back to the first option.
"""

import json
import math
import re
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, Field

from .. import constants
from ..exceptions import SamplingParseError
from ..logging_config import get_logger
from .broker import SamplingBroker, SamplingKind, SamplingPayload

logger = get_logger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_FIRST_INTEGER = re.compile(r"\b(\d{1,12})\b")
_LEADING_LETTER = re.compile(r"^\s*\(?([A-Z])(?:[).:\-]|\s|$)", re.IGNORECASE)
_NUMBERED_LINE = re.compile(r"^\d+[.)]\s*(.*)$")


class RiskScore(BaseModel):
    """Risk score parsed from a model reply.

    Attributes
    ----------
    score : int
        Risk from 0 (none) to 100 (critical)
    reasoning : str
        Explanation given with the score
    parse_error : str, optional
        Set when no score could be read from the reply; ``score`` is then the
        neutral value 50
    """

    score: int = Field(..., ge=0, le=100)
    reasoning: str = ""
    parse_error: Optional[str] = None


class ChoiceResult(BaseModel):
    """Option picked from a model reply.

    Attributes
    ----------
    selected : str
        Always one of the offered options
    fallback : bool
        True when the reply matched nothing and the first option was used
    method : str
        How the reply was matched: exact, substring, letter or fallback
    """

    selected: str
    fallback: bool = False
    method: str = "exact"


def clamp_score(value: float) -> int:
    return int(max(constants.MIN_RISK_SCORE, min(constants.MAX_RISK_SCORE, round(value))))


def _numeric(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def parse_risk_score(text: str) -> RiskScore:
    """Read a risk score from a reply.

    A JSON object carrying a numeric ``score`` wins. Otherwise the first
    integer in the text is the score and whatever follows it is the
    reasoning. With no integer at all the result is flagged and scored 50.
    """
    match = _JSON_OBJECT.search(text)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.warning("Risk score reply is not valid JSON, scanning for a number")
            parsed = None
        if isinstance(parsed, dict):
            score = _numeric(parsed.get("score"))
            if score is not None:
                reasoning = parsed.get("reasoning")
                return RiskScore(
                    score=clamp_score(score), reasoning=str(reasoning) if reasoning else text.strip()
                )

    number = _FIRST_INTEGER.search(text)
    if number:
        reasoning = text[number.end() :].lstrip(" \t\n:-/.,)%").strip()
        return RiskScore(score=clamp_score(int(number.group(1))), reasoning=reasoning or text.strip())

    error = SamplingParseError("No risk score found in reply", details={"reply_preview": text[:100]})
    logger.warning("Risk score reply could not be parsed, using neutral score")
    return RiskScore(score=constants.NEUTRAL_RISK_SCORE, reasoning=text.strip(), parse_error=error.message)


def match_choice(text: str, options: Sequence[str]) -> ChoiceResult:
    """Match a reply against the offered options.

    Tried in order: the whole reply equals an option (ignoring case and
    surrounding space); an option appears in the reply (first option wins);
    the reply starts with a choice letter in either case (``A``, ``b)``,
    ``(C)``...).
    Anything else selects the first option with ``fallback=True``.

    Raises
    ------
    ValueError
        If ``options`` is empty
    """
    if not options:
        raise ValueError("options must not be empty")

    reply = text.strip()
    folded = reply.casefold()

    for option in options:
        if folded == option.strip().casefold():
            return ChoiceResult(selected=option, method="exact")

    for option in options:
        if option.strip().casefold() in folded:
            return ChoiceResult(selected=option, method="substring")

    letter = _LEADING_LETTER.match(reply)
    if letter:
        index = ord(letter.group(1).upper()) - ord("A")
        if index < len(options):
            return ChoiceResult(selected=options[index], method="letter")

    logger.warning("Could not match choice reply, using first option", extra={"reply_preview": reply[:100]})
    return ChoiceResult(selected=options[0], fallback=True, method="fallback")


def parse_numbered_items(text: str, limit: Optional[int] = None) -> List[str]:
    """Extract ``1. item`` / ``2) item`` lines, prefixes stripped, empties dropped."""
    items = []
    for line in text.splitlines():
        match = _NUMBERED_LINE.match(line.strip())
        if match and match.group(1).strip():
            items.append(match.group(1).strip())
    return items if limit is None else items[:limit]


class SamplingHelpers:
    """Prompt-shaping adapters bound to one broker.

    Parameters
    ----------
    broker : SamplingBroker
        Broker every request goes through
    timeout : float, optional
        Per-request timeout; the broker default when omitted
    """

    def __init__(self, broker: SamplingBroker, timeout: Optional[float] = None):
        self.broker = broker
        self.timeout = timeout

    def is_available(self) -> bool:
        return self.broker.is_available()

    async def request_analysis(self, prompt_text: str, context_data: Any) -> str:
        """Ask for a free-text analysis of ``context_data``.

        Parameters
        ----------
        prompt_text : str
            Instructions for the model
        context_data : Any
            JSON-serializable data appended under "Data to analyze:"

        Returns
        -------
        str
            The reply, unmodified
        """
        prompt = f"{prompt_text}\n\nData to analyze:\n{json.dumps(context_data, indent=2, default=str)}"
        payload = SamplingPayload(
            prompt=prompt,
            context=context_data,
            max_tokens=constants.ANALYSIS_MAX_TOKENS,
            temperature=constants.ANALYSIS_TEMPERATURE,
        )
        return await self.broker.send(payload, kind=SamplingKind.FREE_TEXT, timeout=self.timeout)

    async def request_risk_score(self, context_text: str) -> RiskScore:
        """Ask for a 0-100 risk score with reasoning.

        The returned score is always within [0, 100]. A reply without any
        number yields ``parse_error`` and the neutral score instead of an
        exception.
        """
        prompt = (
            "Assess the risk level based on the following context. Provide your response in JSON format "
            'with "score" (0-100, where 0 is no risk and 100 is critical risk) and "reasoning" '
            "(brief explanation).\n\n"
            f"Context:\n{context_text}\n\n"
            "Response format:\n"
            '{\n  "score": <number 0-100>,\n  "reasoning": "<explanation>"\n}'
        )
        payload = SamplingPayload(
            prompt=prompt,
            context=context_text,
            max_tokens=constants.RISK_SCORE_MAX_TOKENS,
            temperature=constants.RISK_SCORE_TEMPERATURE,
        )
        reply = await self.broker.send(payload, kind=SamplingKind.STRUCTURED_SCORE, timeout=self.timeout)
        return parse_risk_score(reply)

    async def elicit_choice(self, question: str, options: Sequence[str]) -> ChoiceResult:
        """Ask the model to pick one of ``options``.

        Raises
        ------
        ValueError
            If ``options`` is empty; nothing is sent
        """
        if not options:
            raise ValueError("options must not be empty")

        options_text = "\n".join(f"{chr(ord('A') + i)}) {option}" for i, option in enumerate(options))
        prompt = (
            f"{question}\n\nOptions:\n{options_text}\n\n"
            "Please select one option by responding with just the letter (A, B, C, etc.) "
            "followed by a brief explanation of why."
        )
        payload = SamplingPayload(
            prompt=prompt,
            context={"options": list(options)},
            max_tokens=constants.CHOICE_MAX_TOKENS,
            temperature=constants.CHOICE_TEMPERATURE,
        )
        reply = await self.broker.send(payload, kind=SamplingKind.CHOICE, timeout=self.timeout)
        result = match_choice(reply, options)
        logger.info("Choice selected", extra={"selected": result.selected, "method": result.method})
        return result
