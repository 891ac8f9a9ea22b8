"""Tests for the Gemini client timeout race and error classification."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from book_vision.gemini_client import (
    ExtractionFailure,
    FailureReason,
    GeminiClient,
    classify_error,
    first_settled,
)
from book_vision.prompts import BOOK_COVER_PROMPT


@pytest.fixture
def gemini_client():
    """Gemini client with the SDK replaced by a mock and short timeouts."""
    with patch("book_vision.gemini_client.genai.Client") as client_cls:
        client_cls.return_value = MagicMock()
        client = GeminiClient(
            api_key="test-key",
            model="test-model",
            validation_model="test-validation-model",
            extraction_timeout=0.5,
            validation_timeout=0.1,
        )
    yield client


def _reply(text: str) -> MagicMock:
    response = MagicMock()
    response.text = text
    return response


class TestClassifyError:
    @pytest.mark.parametrize(
        ("message", "reason"),
        [
            ("400 INVALID_ARGUMENT API_KEY_INVALID: API key not valid", FailureReason.INVALID_KEY),
            ("403 PERMISSION_DENIED: caller lacks permission", FailureReason.PERMISSION_DENIED),
            ("Request timeout", FailureReason.TIMEOUT),
            ("429 RESOURCE_EXHAUSTED: quota exceeded", FailureReason.UNCLASSIFIED),
            ("", FailureReason.UNCLASSIFIED),
        ],
    )
    def test_reason_from_message(self, message: str, reason: FailureReason):
        assert classify_error(RuntimeError(message)) is reason


class TestFirstSettled:
    def test_call_wins(self):
        async def fast():
            return "done"

        assert asyncio.run(first_settled(fast(), timeout=1.0)) == "done"

    def test_timer_wins(self):
        async def slow():
            await asyncio.sleep(5)
            return "too late"

        async def run():
            started = asyncio.get_running_loop().time()
            with pytest.raises(ExtractionFailure) as exc_info:
                await first_settled(slow(), timeout=0.05)
            return exc_info.value, asyncio.get_running_loop().time() - started

        failure, elapsed = asyncio.run(run())
        assert failure.reason is FailureReason.TIMEOUT
        assert elapsed < 1.0

    def test_call_error_propagates(self):
        async def broken():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            asyncio.run(first_settled(broken(), timeout=1.0))


class TestExtract:
    def test_successful_extraction(self, gemini_client: GeminiClient):
        generate = AsyncMock(return_value=_reply('{"title": "Holes"}'))
        gemini_client._client.aio.models.generate_content = generate

        raw = asyncio.run(gemini_client.extract(b"image-bytes", "image/png"))

        assert raw.text == '{"title": "Holes"}'
        kwargs = generate.call_args.kwargs
        assert kwargs["model"] == "test-model"
        prompt, image_part = kwargs["contents"]
        assert prompt == BOOK_COVER_PROMPT
        assert image_part.inline_data.data == b"image-bytes"
        assert image_part.inline_data.mime_type == "image/png"

    def test_empty_reply_text(self, gemini_client: GeminiClient):
        gemini_client._client.aio.models.generate_content = AsyncMock(return_value=_reply(None))
        raw = asyncio.run(gemini_client.extract(b"image-bytes", "image/png"))
        assert raw.text == ""

    def test_slow_model_times_out(self, gemini_client: GeminiClient):
        async def hang(**kwargs):
            await asyncio.sleep(5)

        gemini_client._client.aio.models.generate_content = hang

        with pytest.raises(ExtractionFailure) as exc_info:
            asyncio.run(gemini_client.extract(b"image-bytes", "image/png"))
        assert exc_info.value.reason is FailureReason.TIMEOUT

    def test_invalid_key_is_classified(self, gemini_client: GeminiClient):
        gemini_client._client.aio.models.generate_content = AsyncMock(
            side_effect=RuntimeError("API_KEY_INVALID: API key not valid"),
        )
        with pytest.raises(ExtractionFailure) as exc_info:
            asyncio.run(gemini_client.extract(b"image-bytes", "image/png"))
        assert exc_info.value.reason is FailureReason.INVALID_KEY
        assert "API key not valid" in exc_info.value.detail

    def test_single_attempt_only(self, gemini_client: GeminiClient):
        generate = AsyncMock(side_effect=RuntimeError("503 UNAVAILABLE"))
        gemini_client._client.aio.models.generate_content = generate

        with pytest.raises(ExtractionFailure) as exc_info:
            asyncio.run(gemini_client.extract(b"image-bytes", "image/png"))
        assert exc_info.value.reason is FailureReason.UNCLASSIFIED
        assert generate.await_count == 1


class TestPing:
    def test_uses_validation_model(self, gemini_client: GeminiClient):
        generate = AsyncMock(return_value=_reply("OK"))
        gemini_client._client.aio.models.generate_content = generate

        assert asyncio.run(gemini_client.ping("say OK")) == "OK"
        assert generate.call_args.kwargs == {"model": "test-validation-model", "contents": "say OK"}

    def test_validation_budget_is_shorter(self, gemini_client: GeminiClient):
        async def slow(**kwargs):
            # Longer than the validation budget, shorter than the extraction one
            await asyncio.sleep(0.15)
            return _reply("OK")

        gemini_client._client.aio.models.generate_content = slow

        with pytest.raises(ExtractionFailure) as exc_info:
            asyncio.run(gemini_client.ping("say OK"))
        assert exc_info.value.reason is FailureReason.TIMEOUT

        raw = asyncio.run(gemini_client.extract(b"image-bytes", "image/png"))
        assert raw.text == "OK"
