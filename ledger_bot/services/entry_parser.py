"""
Entry parser: free text in, ParsedEntry out.

The classifier is treated as a best-effort oracle:
1. One call per user submission, bounded by a timeout, no retries
2. Whatever it returns is stripped of code fences and stray prose
   before JSON decoding
3. The decoded object is validated into a ParsedEntry
4. The confidence gate decides whether the entry may be offered
   to the user for confirmation

Outcomes:
    ParsedEntry            actionable, show it for confirmation
    LowConfidenceError     understood poorly, ask the user to rephrase
    MalformedResponse      reply was not the JSON we asked for
    ClassifierUnavailable  transport failure or timeout, user may resend
"""

import json
import re
from datetime import date
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError

from ledger_bot.errors import (
    ClassifierUnavailable,
    LowConfidenceError,
    MalformedResponse,
    ServiceUnavailable,
    ValidationError,
)
from ledger_bot.logging_config import get_logger
from ledger_bot.schemas.entry import ParsedEntry
from ledger_bot.services.classifier import Classifier
from ledger_bot.utils import bounded

log = get_logger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.6

PROMPT_TEMPLATE = """\
You are a ledger entry processor. Analyze the following entry text and extract \
structured data for a financial ledger. Return ONLY valid JSON (no markdown, \
no code blocks, no additional text).

Entry Text: "{text}"

Respond with a JSON object containing:
{{
  "isValid": boolean,       // true if this looks like a valid financial entry
  "date": "DD-MM-YYYY",     // the date mentioned in the text, or today's date
  "vchName": "string",      // voucher type, e.g. "Payment", "Receipt", "Purchase", "Sale"
  "description": "string",  // clean description of the transaction
  "debit": number,          // amount if money is going out (payment, expense)
  "credit": number,         // amount if money is coming in (receipt, income)
  "partyName": "string",    // person or entity involved
  "confidence": number,     // 0-1, how sure you are of this parsing
  "reasoning": "string"     // brief explanation of your parsing
}}

Rules:
1. Exactly ONE of debit or credit has a value, the other is 0
2. "paid", "spent", "bought" usually mean a debit
3. "received", "earned", "sold" usually mean a credit
4. Amounts may be written as "200", "₹200", "Rs.200" or "200 rupees"; return plain numbers
5. Use today's date if no date is mentioned
6. Be conservative: if you are not sure, set isValid to false

Today's date: {today}

Respond with ONLY the JSON object.
"""

_FENCE = re.compile(r"```[a-zA-Z]*\n?")


def build_prompt(text: str, today: date) -> str:
    safe_text = text.replace('"', "'")
    return PROMPT_TEMPLATE.format(text=safe_text, today=today.strftime("%d-%m-%Y"))


def strip_wrapping(raw: str) -> str:
    """
    Remove code fences, backticks and any prose around the JSON object.

    Returns the substring from the first '{' to the last '}' when
    both exist; otherwise whatever is left after the cleanup.
    """
    text = _FENCE.sub("", raw or "")
    text = text.replace("`", "").strip()
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        text = text[start:end + 1]
    return text


def decode_response(raw: str) -> dict[str, Any]:
    """Turn the classifier's raw reply into a dict, or raise MalformedResponse."""
    cleaned = strip_wrapping(raw)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedResponse("AI reply was not valid JSON") from exc
    if not isinstance(payload, dict):
        raise MalformedResponse("AI reply was not a JSON object")
    return payload


class EntryParser:

    def __init__(
        self,
        classifier: Classifier,
        threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        timeout: float = 25.0,
        today: Callable[[], date] = date.today,
    ):
        self.classifier = classifier
        self.threshold = threshold
        self.timeout = timeout
        self._today = today

    async def parse(self, text: str) -> ParsedEntry:
        """
        Parse one free-text entry.

        Raises ValidationError for empty text, and the parse outcomes
        listed in the module docstring otherwise.
        """
        text = (text or "").strip()
        if not text:
            raise ValidationError("Entry text must not be empty")

        prompt = build_prompt(text, self._today())
        try:
            raw = await bounded(
                self.classifier.classify(prompt), self.timeout, "AI classifier"
            )
        except ClassifierUnavailable:
            raise
        except ServiceUnavailable as exc:
            raise ClassifierUnavailable(str(exc)) from exc

        payload = decode_response(raw)
        try:
            entry = ParsedEntry.model_validate(payload)
        except PydanticValidationError as exc:
            log.info("entry_schema_mismatch", errors=exc.error_count())
            raise MalformedResponse("AI reply did not match the entry schema") from exc

        if not entry.is_actionable(self.threshold):
            log.info(
                "entry_below_confidence_gate",
                is_valid=entry.is_valid,
                confidence=entry.confidence,
                side=entry.side.value if entry.side else None,
            )
            raise LowConfidenceError(entry)

        log.info(
            "entry_parsed",
            confidence=entry.confidence,
            side=entry.side.value,
        )
        return entry
