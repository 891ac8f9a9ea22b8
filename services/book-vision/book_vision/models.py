"""Pydantic models for extracted book metadata and stored configuration."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

BOOK_FIELDS = (
    "title",
    "author",
    "grade_level",
    "subject",
    "series",
    "publisher",
    "isbn",
    "description",
)


class ExtractedBookInfo(BaseModel):
    """Book metadata read from a cover image, ready for human review."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str | None = None
    author: str | None = None
    grade_level: str | None = Field(default=None, alias="gradeLevel")
    subject: str | None = None
    series: str | None = None
    publisher: str | None = None
    isbn: str | None = None
    description: str | None = None
    confidence: float = Field(ge=0.1, le=1.0)
    extracted_by_ai: bool = Field(default=True, alias="extractedByAI")
    error: str | None = None

    def to_payload(self) -> dict:
        """Serialise with camelCase keys; `error` only appears when set."""
        payload = self.model_dump(by_alias=True)
        if payload["error"] is None:
            del payload["error"]
        return payload


class RawModelResponse(BaseModel):
    text: str


class CredentialRecord(BaseModel):
    key: str
    value: str
    encrypted: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ConfigValueRequest(BaseModel):
    value: str = ""
    encrypted: bool = False


class ApiKeyTestRequest(BaseModel):
    api_key: str = Field(default="", alias="apiKey")
