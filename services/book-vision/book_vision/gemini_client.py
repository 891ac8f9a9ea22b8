"""Async client for the Gemini generative model.

Each call is a single attempt raced against a timer: whichever settles
first wins. A timer win cancels the in-flight request without waiting
for it. Errors are mapped to ExtractionFailure with a coarse reason taken
from the error text; retrying is left to the caller.
"""

import asyncio
import logging
from collections.abc import Awaitable
from enum import Enum
from typing import TypeVar

from google import genai
from google.genai import types

from book_vision.config import settings
from book_vision.models import RawModelResponse
from book_vision.prompts import BOOK_COVER_PROMPT

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FailureReason(str, Enum):
    INVALID_KEY = "invalid_key"
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    UNCLASSIFIED = "unclassified"


# Substring markers checked in order against the error text
_REASON_MARKERS = (
    ("API_KEY_INVALID", FailureReason.INVALID_KEY),
    ("PERMISSION_DENIED", FailureReason.PERMISSION_DENIED),
    ("timeout", FailureReason.TIMEOUT),
)


class ExtractionFailure(Exception):
    """Model call failed (transport error, rejected key, quota, timeout)."""

    def __init__(self, reason: FailureReason, detail: str = ""):
        super().__init__(detail or reason.value)
        self.reason = reason
        self.detail = detail


def classify_error(error: BaseException) -> FailureReason:
    text = str(error)
    for marker, reason in _REASON_MARKERS:
        if marker in text:
            return reason
    return FailureReason.UNCLASSIFIED


def _discard(task: asyncio.Future) -> None:
    # Consume the loser's outcome so it is never reported as unhandled
    if not task.cancelled():
        task.exception()


async def first_settled(awaitable: Awaitable[T], timeout: float) -> T:
    """Await `awaitable`, or raise a timeout failure if the timer settles first."""
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()

    task.add_done_callback(_discard)
    task.cancel()
    raise ExtractionFailure(
        FailureReason.TIMEOUT, f"Model call did not settle within {timeout:g}s"
    )


class GeminiClient:
    """Gemini client bound to one API key."""

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        validation_model: str | None = None,
        extraction_timeout: float | None = None,
        validation_timeout: float | None = None,
    ):
        self._model = model or settings.GEMINI_MODEL
        self._validation_model = validation_model or settings.GEMINI_VALIDATION_MODEL
        self._extraction_timeout = (
            extraction_timeout if extraction_timeout is not None else settings.EXTRACTION_TIMEOUT_SECONDS
        )
        self._validation_timeout = (
            validation_timeout if validation_timeout is not None else settings.VALIDATION_TIMEOUT_SECONDS
        )
        self._client = genai.Client(api_key=api_key)

    async def extract(self, image_bytes: bytes, mime_type: str) -> RawModelResponse:
        """Send the book-cover prompt with the inlined image.

        Raises ExtractionFailure on timeout or any model/transport error.
        """
        contents = [
            BOOK_COVER_PROMPT,
            types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
        ]
        text = await self._generate(self._model, contents, self._extraction_timeout)
        logger.info("Gemini extraction returned %d chars", len(text))
        return RawModelResponse(text=text)

    async def ping(self, prompt: str) -> str:
        """Short text-only call used to check that the key works."""
        return await self._generate(self._validation_model, prompt, self._validation_timeout)

    async def _generate(self, model: str, contents, timeout: float) -> str:
        try:
            response = await first_settled(
                self._client.aio.models.generate_content(model=model, contents=contents),
                timeout,
            )
        except ExtractionFailure as e:
            logger.warning("Gemini call to %s timed out: %s", model, e)
            raise
        except Exception as e:
            reason = classify_error(e)
            logger.error("Gemini call to %s failed (%s): %s", model, reason.value, e)
            raise ExtractionFailure(reason, str(e)) from e

        return response.text or ""
