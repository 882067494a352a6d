"""
Model Response Parser

Turns free-text model output into structured data. Strict JSON is tried
first (with markdown code fences removed); a regex search for an embedded
JSON object is only the fallback.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


logger = logging.getLogger(__name__)


_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_HASHTAG_RE = re.compile(r"#\w+", re.UNICODE)


@dataclass(frozen=True)
class ParsedResponse:
    """A JSON object recovered from model output."""
    data: Dict[str, Any]
    strategy: str  # "json" or "regex"


@dataclass(frozen=True)
class ParseFailure:
    """Model output that holds no JSON object."""
    reason: str
    raw_text: str = ""


ParseResult = Union[ParsedResponse, ParseFailure]


def _strip_fences(text: str) -> str:
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text


def _load_object(text: str) -> Dict[str, Any]:
    value = json.loads(text)
    if not isinstance(value, dict):
        raise ValueError(f"expected a JSON object, got {type(value).__name__}")
    return value


def parse_generation_response(response_text: str) -> ParseResult:
    """
    Parse a JSON object out of a model response.

    Args:
        response_text: Raw ``response.text`` from the model

    Returns:
        ParsedResponse, or ParseFailure when neither strategy finds an object
    """
    if not response_text or not response_text.strip():
        return ParseFailure(reason="Empty response", raw_text=response_text or "")

    text = _strip_fences(response_text.strip())

    try:
        return ParsedResponse(data=_load_object(text), strategy="json")
    except (json.JSONDecodeError, ValueError):
        pass

    match = _OBJECT_RE.search(text)
    if match:
        try:
            return ParsedResponse(data=_load_object(match.group(0)), strategy="regex")
        except (json.JSONDecodeError, ValueError) as e:
            logger.debug(f"Embedded JSON candidate rejected: {e}")

    logger.warning("Response was not valid JSON")
    return ParseFailure(reason="No JSON object found", raw_text=response_text)


def extract_hashtags(text: str) -> List[str]:
    """Hashtags in order of appearance, without duplicates."""
    seen: List[str] = []
    for tag in _HASHTAG_RE.findall(text or ""):
        if tag not in seen:
            seen.append(tag)
    return seen
