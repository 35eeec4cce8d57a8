"""Extract a structured plan (or plain recommendations) from raw model text."""
import json
import logging
import re
from typing import Any, Optional

from study_planner.models.ai_response import (
    EmptyResponse,
    ParsedResponse,
    StructuredResponse,
    TextOnlyResponse,
)

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 5
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")
HEADING_MARKER = "#"
# Keys holding the text of a recommendation given as an object
RECOMMENDATION_KEYS = ("title", "description", "text")


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def _list_recommendations(items: list) -> list[str]:
    """Strings, or objects with a title/description/text, from a JSON array."""
    recommendations = []
    for item in items:
        if isinstance(item, dict):
            item = next((item[k] for k in RECOMMENDATION_KEYS if isinstance(item.get(k), str)), None)
        if isinstance(item, str) and item.strip():
            recommendations.append(item.strip())
    return recommendations[:MAX_RECOMMENDATIONS]


def _from_json(data: Any) -> Optional[ParsedResponse]:
    """Structured for an object, TextOnly for a usable array, otherwise None."""
    if isinstance(data, dict):
        return StructuredResponse(plan=data)
    if isinstance(data, list):
        recommendations = _list_recommendations(data)
        if recommendations:
            return TextOnlyResponse(recommendations=recommendations)
    return None


def _recommendation_lines(text: str) -> list[str]:
    """Non-blank, non-heading lines without JSON debris, capped."""
    lines = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(HEADING_MARKER):
            continue
        # Half-formed JSON is not a recommendation
        if "{" in line or "}" in line:
            continue
        lines.append(line)
        if len(lines) == MAX_RECOMMENDATIONS:
            break
    return lines


def parse_ai_response(raw: Optional[str]) -> ParsedResponse:
    """
    Parse a model reply in three tiers.

    1. The whole text as JSON.
    2. The embedded span from the first '{' to the last '}' (or '[' to ']',
       whichever opens first) as JSON.
    3. Plain-text lines as recommendations.

    A JSON object is a plan; a JSON array is a list of recommendations.
    Never raises: malformed output degrades to TextOnly or Empty.

    Args:
        raw: Model reply text (may be None or empty)

    Returns:
        StructuredResponse, TextOnlyResponse or EmptyResponse
    """
    if not raw or not raw.strip():
        logger.debug("Empty model reply")
        return EmptyResponse()

    text = raw.strip()

    parsed = _from_json(_load_json(text))
    if parsed is not None:
        return parsed

    spans = [m for m in (JSON_OBJECT_PATTERN.search(text), JSON_ARRAY_PATTERN.search(text)) if m]
    for match in sorted(spans, key=lambda m: m.start()):
        parsed = _from_json(_load_json(match.group(0)))
        if parsed is not None:
            logger.debug(f"Recovered JSON {parsed.kind} reply embedded in surrounding text")
            return parsed

    recommendations = _recommendation_lines(text)
    if recommendations:
        logger.info(f"No JSON in model reply; salvaged {len(recommendations)} recommendation line(s)")
        return TextOnlyResponse(recommendations=recommendations)

    logger.info("Model reply had no usable content")
    return EmptyResponse()
