"""Model output parsing.

Two stages, each a pure function:

1. parse_structured(): find a JSON object in the text and read
   label/confidence/reasons from it. Returns None when that fails.
2. parse_fallback(): keyword scan of the whole text. Always succeeds.

parse() chains them and never raises.
"""

import json
import logging
import math
import re
from typing import Any, Optional

from ..models import MAX_REASONS, Label, Verdict

logger = logging.getLogger("commentguard.classifier.parser")

__all__ = [
    "FALLBACK_REASON",
    "parse",
    "parse_fallback",
    "parse_structured",
]

FALLBACK_REASON = "fallback parse"
DEFAULT_CONFIDENCE = 0.5

_CODE_BLOCK = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_LABEL_OBJECT = re.compile(r'\{[^{}]*"label"[^{}]*\}', re.DOTALL)
_OUTER_BRACES = re.compile(r"\{.*\}", re.DOTALL)


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_CONFIDENCE
    if math.isnan(confidence):
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, confidence))


def _coerce_reasons(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(reason) for reason in value[:MAX_REASONS]]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def _load_object(candidate: str) -> Optional[dict]:
    try:
        result = json.loads(candidate)
    except (ValueError, RecursionError):
        return None
    return result if isinstance(result, dict) else None


def parse_structured(raw_text: str) -> Optional[Verdict]:
    """Extract a verdict from a JSON object embedded in model output.

    Tries, in order: the whole text, a fenced code block, a flat object
    containing "label", and the span from the first ``{`` to the last ``}``.

    Returns:
        Verdict, or None if no object with a ``label`` key was found.
    """
    text = (raw_text or "").strip()
    if not text:
        return None

    candidates = [text]
    for pattern in (_CODE_BLOCK, _LABEL_OBJECT, _OUTER_BRACES):
        match = pattern.search(text)
        if match:
            candidates.append(match.group(1) if pattern is _CODE_BLOCK else match.group(0))

    for candidate in candidates:
        data = _load_object(candidate)
        if data is None or "label" not in data:
            continue
        label = Label.SPAM if str(data["label"]).strip().lower() == "spam" else Label.VALID
        return Verdict(
            label=label,
            confidence=_coerce_confidence(data.get("confidence", DEFAULT_CONFIDENCE)),
            reasons=_coerce_reasons(data.get("reasons")),
        )
    return None


def parse_fallback(raw_text: str) -> Verdict:
    """Keyword fallback: "spam" without "valid" means spam at 0.85."""
    lowered = (raw_text or "").lower()
    if "spam" in lowered and "valid" not in lowered:
        return Verdict(label=Label.SPAM, confidence=0.85, reasons=[FALLBACK_REASON])
    return Verdict(label=Label.VALID, confidence=0.55, reasons=[FALLBACK_REASON])


def parse(raw_text: str) -> Verdict:
    """Parse model output into a Verdict. Never raises.

    Examples:
        >>> parse('{"label":"SPAM","confidence":0.93,"reasons":["seo"]}').label
        <Label.SPAM: 'spam'>
        >>> parse("I think this is valid").reasons
        ['fallback parse']
    """
    if not isinstance(raw_text, str):
        raw_text = "" if raw_text is None else str(raw_text)
    verdict = parse_structured(raw_text)
    if verdict is not None:
        return verdict
    logger.debug("structured_parse_failed", extra={"response_preview": raw_text[:200]})
    return parse_fallback(raw_text)
