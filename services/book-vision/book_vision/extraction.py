"""Extraction pipeline: validate upload, resolve key, call Gemini, parse.

normalize() and sanitize() never raise. A model reply that is not valid
JSON becomes a low-confidence empty record instead of an error.
"""

import asyncio
import json
import logging
import math
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from book_vision.credentials import CredentialResolver
from book_vision.gemini_client import GeminiClient
from book_vision.intake import validate_upload
from book_vision.models import BOOK_FIELDS, ExtractedBookInfo

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5
FALLBACK_CONFIDENCE = 0.1
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0

PARSE_ERROR_MARKER = "AI response parsing failed"

# Keys as the model returns them (camelCase, matching the prompt)
_SOURCE_KEYS = {"grade_level": "gradeLevel"}

_OPEN_FENCE = re.compile(r"^```(?:json)?\n?")
_CLOSE_FENCE = re.compile(r"\n?```$")


@dataclass(frozen=True)
class Parsed:
    data: dict[str, Any]


@dataclass(frozen=True)
class Fallback:
    data: dict[str, Any] = field(default_factory=lambda: {
        **{_SOURCE_KEYS.get(name, name): None for name in BOOK_FIELDS},
        "confidence": FALLBACK_CONFIDENCE,
        "extractedByAI": True,
        "error": PARSE_ERROR_MARKER,
    })


@dataclass(frozen=True)
class ExtractionOutcome:
    book: ExtractedBookInfo
    parsed: bool
    processing_time_ms: int


def strip_fences(raw: str) -> str:
    """Trim and remove a surrounding ```json (or bare ```) fence."""
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = _OPEN_FENCE.sub("", cleaned, count=1)
        cleaned = _CLOSE_FENCE.sub("", cleaned, count=1)
    return cleaned


def normalize(raw: str) -> Parsed | Fallback:
    """Parse the model reply into a key/value structure, or fall back."""
    cleaned = strip_fences(raw or "")
    try:
        result = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("Could not parse JSON from model response (%s): %s", e, cleaned[:200])
        return Fallback()

    if not isinstance(result, dict):
        logger.warning("Model response is JSON but not an object: %s", cleaned[:200])
        return Fallback()

    return Parsed(result)


def sanitize(result: Parsed | Fallback) -> ExtractedBookInfo:
    """Map a parsed or fallback structure onto ExtractedBookInfo."""
    data = result.data
    values = {name: _text_or_none(data.get(_SOURCE_KEYS.get(name, name))) for name in BOOK_FIELDS}

    error = data.get("error") if isinstance(result, Fallback) else None

    return ExtractedBookInfo(
        **values,
        confidence=clamp_confidence(data.get("confidence")),
        extracted_by_ai=True,
        error=error,
    )


def clamp_confidence(value: Any) -> float:
    """Clamp to [0.1, 1.0]; absent or non-numeric values count as 0.5."""
    confidence = _number_or_none(value)
    if confidence is None:
        confidence = DEFAULT_CONFIDENCE
    return min(max(confidence, MIN_CONFIDENCE), MAX_CONFIDENCE)


def _text_or_none(value: Any) -> str | None:
    if isinstance(value, str):
        return value if value.strip() else None
    # ISBNs occasionally come back as bare integers
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return str(value)
    return None


def _number_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


async def extract_book_info(
    image_bytes: bytes,
    mime_type: str | None,
    resolver: CredentialResolver,
    client_factory: Callable[[str], GeminiClient] = GeminiClient,
) -> ExtractionOutcome:
    """Run the pipeline: validate -> resolve key -> request -> normalize -> sanitize.

    Raises InvalidUpload, CredentialMissing or ExtractionFailure; a reply
    that cannot be parsed still returns an outcome (parsed=False).
    """
    start = time.monotonic()

    validate_upload(len(image_bytes), mime_type)
    # Config store lookups are blocking sqlite calls
    api_key = await asyncio.to_thread(resolver.resolve)

    client = client_factory(api_key)
    raw = await client.extract(image_bytes, mime_type)

    result = normalize(raw.text)
    book = sanitize(result)
    elapsed_ms = int((time.monotonic() - start) * 1000)

    logger.info(
        "Book extraction finished in %dms: parsed=%s confidence=%.2f",
        elapsed_ms, isinstance(result, Parsed), book.confidence,
    )
    return ExtractionOutcome(
        book=book,
        parsed=isinstance(result, Parsed),
        processing_time_ms=elapsed_ms,
    )
