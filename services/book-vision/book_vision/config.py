"""Environment-based configuration for the book vision service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Book vision settings, loaded from environment variables."""

    # Server
    PORT: int = 8092
    ENVIRONMENT: str = "production"

    # Gemini (empty key = fall back to the config store only)
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_VALIDATION_MODEL: str = "gemini-2.0-flash"

    # Model call budgets
    EXTRACTION_TIMEOUT_SECONDS: float = 60.0
    VALIDATION_TIMEOUT_SECONDS: float = 10.0

    # Upload limits
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10MB

    # Persisted configuration (API keys etc.)
    CONFIG_DB_PATH: str = "book_vision_config.db"

    model_config = {"env_prefix": "", "case_sensitive": True}

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


settings = Settings()
