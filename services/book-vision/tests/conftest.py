"""Shared test fixtures for book vision tests."""

import json
import sys
from pathlib import Path

import pytest

# Add parent directory to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from book_vision.config_store import ConfigStore  # noqa: E402
from book_vision.models import RawModelResponse  # noqa: E402


class FakeGeminiClient:
    """Stands in for GeminiClient; records calls and replays a canned reply."""

    def __init__(self, text: str = "", error: Exception | None = None):
        self.text = text
        self.error = error
        self.api_keys: list[str] = []
        self.extract_calls: list[tuple[bytes, str]] = []
        self.ping_calls: list[str] = []

    def __call__(self, api_key: str) -> "FakeGeminiClient":
        self.api_keys.append(api_key)
        return self

    async def extract(self, image_bytes: bytes, mime_type: str) -> RawModelResponse:
        self.extract_calls.append((image_bytes, mime_type))
        if self.error is not None:
            raise self.error
        return RawModelResponse(text=self.text)

    async def ping(self, prompt: str) -> str:
        self.ping_calls.append(prompt)
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def sample_image_bytes() -> bytes:
    """A PNG signature followed by filler; only size and mime type are inspected."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 256


@pytest.fixture
def config_store(tmp_path: Path) -> ConfigStore:
    return ConfigStore(str(tmp_path / "config.db"))


@pytest.fixture
def mock_book_response() -> str:
    """Mock Gemini reply for a readable book cover."""
    return json.dumps({
        "title": "Charlotte's Web",
        "author": "E. B. White",
        "gradeLevel": "3-5",
        "subject": "Fiction",
        "series": None,
        "publisher": "Harper & Brothers",
        "isbn": "9780064400558",
        "description": "A pig named Wilbur and his friendship with a spider.",
        "confidence": 0.9,
    })


@pytest.fixture
def mock_fenced_response() -> str:
    """Mock Gemini reply wrapped in a markdown code fence."""
    return '```json\n{"title": "Holes", "author": "Louis Sachar", "confidence": 0.85}\n```'


@pytest.fixture
def fake_client_factory():
    return FakeGeminiClient
