"""FastAPI book vision service: AI-assisted book metadata extraction.

Reads a book cover photo, asks Gemini for the bibliographic fields and
returns a sanitized draft record for human review. Also stores the
Gemini API key and lets the settings page check it.
Uploads are processed in memory only; logs carry byte counts, never image content.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse

from book_vision.config import settings
from book_vision.config_store import ConfigStore
from book_vision.credentials import CredentialMissing, CredentialResolver
from book_vision.extraction import extract_book_info
from book_vision.gemini_client import ExtractionFailure, FailureReason, GeminiClient
from book_vision.intake import FILE_TOO_LARGE, NO_IMAGE, InvalidUpload
from book_vision.models import ApiKeyTestRequest, ConfigValueRequest
from book_vision.prompts import API_KEY_TEST_PROMPT, CONNECTION_TEST_PROMPT

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Gemini API key not configured. Please configure it in Settings."
EXTRACTION_FAILED_MESSAGE = "Failed to extract book information. Please check your API key and try again."
PARSE_FAILED_MESSAGE = "Could not parse AI response. Please try again or enter book details manually."

API_KEY_TEST_MESSAGES = {
    FailureReason.INVALID_KEY: "Invalid API key provided",
    FailureReason.PERMISSION_DENIED: "API key does not have required permissions",
    FailureReason.TIMEOUT: "Request timeout - please check your connection",
}
API_KEY_TEST_DEFAULT_MESSAGE = "Invalid API key or service unavailable"

_store: ConfigStore | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the config store on startup."""
    global _store

    logger.info("Opening config store at %s", settings.CONFIG_DB_PATH)
    _store = ConfigStore(settings.CONFIG_DB_PATH)

    if CredentialResolver(_store).is_configured():
        logger.info("Gemini API key configured, AI extraction enabled")
    else:
        logger.warning("No Gemini API key configured; extraction will fail until one is set")

    yield


app = FastAPI(title="Book Vision", version="1.0.0", lifespan=lifespan)


def get_store() -> ConfigStore | None:
    return _store


def get_resolver(store: ConfigStore | None = Depends(get_store)) -> CredentialResolver:
    return CredentialResolver(store)


def get_client_factory():
    return GeminiClient


def _failure(status_code: int, message: str, error: Exception | None = None, **extra) -> JSONResponse:
    content = {"success": False, "message": message, **extra}
    if error is not None and settings.is_development:
        content["error"] = str(error)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(InvalidUpload)
async def invalid_upload_handler(request: Request, exc: InvalidUpload):
    status_code = 413 if exc.reason == FILE_TOO_LARGE else 400
    return _failure(status_code, exc.reason)


@app.exception_handler(CredentialMissing)
async def credential_missing_handler(request: Request, exc: CredentialMissing):
    return _failure(400, MISSING_KEY_MESSAGE)


@app.exception_handler(ExtractionFailure)
async def extraction_failure_handler(request: Request, exc: ExtractionFailure):
    return _failure(500, EXTRACTION_FAILED_MESSAGE, exc, reason=exc.reason.value)


@app.post("/api/ai/extract-book-info")
async def extract(
    image: UploadFile | None = File(None),
    resolver: CredentialResolver = Depends(get_resolver),
    client_factory=Depends(get_client_factory),
):
    """Extract book metadata from a cover image."""
    if image is None:
        raise InvalidUpload(NO_IMAGE)

    # Read one byte past the limit so oversized uploads are rejected without loading them whole
    image_bytes = await image.read(settings.MAX_UPLOAD_BYTES + 1)
    if not image_bytes:
        raise InvalidUpload(NO_IMAGE)

    logger.info(
        "Processing book extraction: type=%s size=%d bytes",
        image.content_type,
        len(image_bytes),
    )

    outcome = await extract_book_info(image_bytes, image.content_type, resolver, client_factory)

    if not outcome.parsed:
        return {
            "success": False,
            "message": PARSE_FAILED_MESSAGE,
            "data": outcome.book.to_payload(),
            "processingTimeMs": outcome.processing_time_ms,
        }
    return {
        "success": True,
        "data": outcome.book.to_payload(),
        "processingTimeMs": outcome.processing_time_ms,
    }


@app.post("/api/ai/test")
async def test_connection(
    resolver: CredentialResolver = Depends(get_resolver),
    client_factory=Depends(get_client_factory),
):
    """Send a short prompt with the configured key to check connectivity."""
    try:
        api_key = await asyncio.to_thread(resolver.resolve)
    except CredentialMissing:
        return _failure(400, "Gemini API key not configured")

    try:
        text = await client_factory(api_key).ping(CONNECTION_TEST_PROMPT)
    except ExtractionFailure as e:
        return _failure(500, "AI test failed. Please check your API key.", e, reason=e.reason.value)

    return {
        "success": True,
        "message": "AI connection successful",
        "response": text,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/api/ai/status")
def ai_status(resolver: CredentialResolver = Depends(get_resolver)):
    """Report whether a key is configured and which model is used."""
    return {
        "success": True,
        "status": {
            "apiKeyConfigured": resolver.is_configured(),
            "service": "Google Gemini AI",
            "model": settings.GEMINI_MODEL,
            "features": ["Image Analysis", "Text Extraction", "Book Information Extraction"],
        },
    }


@app.post("/api/config/test-api-key")
async def test_api_key(body: ApiKeyTestRequest, client_factory=Depends(get_client_factory)):
    """Validate a candidate API key without storing it."""
    api_key = body.api_key.strip()
    if not api_key:
        return _failure(400, "API key is required and must be a non-empty string", valid=False)

    try:
        text = await client_factory(api_key).ping(API_KEY_TEST_PROMPT)
    except ExtractionFailure as e:
        message = API_KEY_TEST_MESSAGES.get(e.reason, API_KEY_TEST_DEFAULT_MESSAGE)
        return _failure(200, message, e, valid=False)

    if not text:
        return _failure(200, "API key test failed - no valid response received", valid=False)

    return {
        "success": True,
        "valid": True,
        "message": "API key is valid and working",
        "testResponse": text,
    }


@app.get("/api/config/{key}")
def get_config(key: str, store: ConfigStore | None = Depends(get_store)):
    """Report whether a config value exists. The value itself is never returned."""
    record = store.get(key) if store is not None else None
    if record is None:
        return _failure(404, "Configuration not found", hasValue=False)

    return {
        "success": True,
        "hasValue": bool(record.value),
        "key": key,
        "encrypted": record.encrypted,
        "updatedAt": record.updated_at.isoformat() if record.updated_at else None,
    }


@app.post("/api/config/{key}")
def set_config(key: str, body: ConfigValueRequest, store: ConfigStore | None = Depends(get_store)):
    """Create or replace a config value."""
    if not body.value:
        return _failure(400, "Configuration value is required")
    if store is None:
        return _failure(503, "Configuration store is not available")

    record = store.set(key, body.value, body.encrypted)
    return {
        "success": True,
        "message": "Configuration saved successfully",
        "key": key,
        "encrypted": record.encrypted,
    }


@app.delete("/api/config/{key}")
def delete_config(key: str, store: ConfigStore | None = Depends(get_store)):
    if store is None or not store.delete(key):
        return _failure(404, "Configuration not found")

    return {
        "success": True,
        "message": "Configuration deleted successfully",
        "key": key,
    }


@app.get("/health")
def health(resolver: CredentialResolver = Depends(get_resolver)):
    """Return service status and whether a Gemini key is available."""
    return {
        "status": "healthy",
        "config_store": _store is not None,
        "api_key_configured": resolver.is_configured(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
