"""
Recovery of the reply body and follow-up questions from raw model output.

The answer prompt asks the model to end its HTML reply with a JSON fragment
``{"followUps": ["...?", "...?"]}``. The model is an unstructured text
source, so the fragment is located positionally (last balanced ``{...}``)
and every failure degrades to "no follow-ups" with the body left intact.
"""

import json
import re
from typing import Any, List, Optional, Tuple

import structlog

from api.schemas.agent_state import GenerationResult

logger = structlog.get_logger(__name__)

FOLLOW_UP_KEYS = ("followUps", "followUpQuestions", "follow_ups")
EXPECTED_FOLLOW_UPS = 2

_FENCE_RE = re.compile(r"```[A-Za-z]*[ \t]*\n?")


def strip_code_fences(text: str) -> str:
    """Remove ```html / ```json style fences the model wraps around output."""
    return _FENCE_RE.sub("", text or "")


_DECODER = json.JSONDecoder()


def _last_decodable_object(text: str) -> Optional[Tuple[int, int]]:
    # Outermost JSON object that starts at the right-most decodable "{"
    best = None
    start = text.rfind("{")
    while start != -1:
        try:
            payload, end = _DECODER.raw_decode(text, start)
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            if best is None or end >= best[1]:
                best = (start, end)
            elif end <= best[0]:
                break
        start = text.rfind("{", 0, start)
    return best


def find_last_json_span(text: str) -> Optional[Tuple[int, int]]:
    """Return (start, end) of the last ``{...}`` span, scanning from the end.

    Spans that decode as JSON objects win, so braces inside JSON strings do
    not shift the span. Otherwise the last brace-balanced span is returned.
    """
    decoded = _last_decodable_object(text)
    if decoded is not None:
        return decoded

    end = text.rfind("}")
    if end == -1:
        return None

    depth = 0
    for i in range(end, -1, -1):
        ch = text[i]
        if ch == "}":
            depth += 1
        elif ch == "{":
            depth -= 1
            if depth == 0:
                return i, end + 1
    return None


def load_json_object(text: str) -> Optional[dict]:
    """Decode a JSON object from model output that should contain only JSON.

    Tolerates code fences and prose around the object. Returns None when no
    object can be decoded.
    """
    cleaned = strip_code_fences(text).strip()
    candidates = [cleaned]
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        candidates.append(cleaned[start : end + 1])

    for candidate in candidates:
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload
    return None


def _extract_follow_ups(payload: Any) -> Tuple[bool, List[str]]:
    """(is_follow_up_fragment, questions) for a decoded JSON payload."""
    if not isinstance(payload, dict):
        return False, []

    for key in FOLLOW_UP_KEYS:
        if key in payload:
            value = payload[key]
            if (
                isinstance(value, list)
                and len(value) == EXPECTED_FOLLOW_UPS
                and all(isinstance(q, str) and q.strip() for q in value)
            ):
                return True, [q.strip() for q in value]
            logger.warning("Malformed follow-up payload", key=key, value_type=type(value).__name__)
            return True, []
    return False, []


def parse_model_output(raw_text: str) -> GenerationResult:
    """Split raw generation text into reply body and follow-up questions.

    On success the JSON fragment is removed from the body. When no fragment
    can be decoded the body is returned unchanged (minus fences) and the
    follow-up list is empty. Never raises.
    """
    text = strip_code_fences(raw_text).strip()

    span = find_last_json_span(text)
    if span is None:
        logger.info("No follow-up fragment found in model output")
        return GenerationResult(reply_body=text)

    start, end = span
    try:
        payload = json.loads(text[start:end])
    except json.JSONDecodeError as e:
        logger.warning("Follow-up fragment is not valid JSON", error=str(e))
        return GenerationResult(reply_body=text)

    is_fragment, follow_ups = _extract_follow_ups(payload)
    if not is_fragment:
        logger.info("Trailing JSON span carries no follow-ups, leaving reply intact")
        return GenerationResult(reply_body=text)

    body = (text[:start] + text[end:]).strip()
    return GenerationResult(
        reply_body=body,
        follow_up_questions=follow_ups,
        follow_ups_recovered=bool(follow_ups),
    )
