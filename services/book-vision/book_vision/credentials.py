"""Gemini API key lookup: persisted config first, then the environment."""

import logging
from collections.abc import Callable

from book_vision.config import settings
from book_vision.config_store import ConfigStore

logger = logging.getLogger(__name__)

GEMINI_API_KEY_CONFIG = "gemini_api_key"


class CredentialMissing(Exception):
    """No Gemini API key in the config store or the environment."""


def environment_api_key() -> str | None:
    return settings.GEMINI_API_KEY or None


class CredentialResolver:
    """Resolves the API key from a config store with an environment fallback.

    Store failures never reach the caller: they are logged and treated as
    "not found" so the environment value still applies.
    """

    def __init__(
        self,
        store: ConfigStore | None,
        env_reader: Callable[[], str | None] = environment_api_key,
        key: str = GEMINI_API_KEY_CONFIG,
    ):
        self._store = store
        self._env_reader = env_reader
        self._key = key

    def resolve(self) -> str:
        value = self._from_store()
        if value:
            return value

        value = self._env_reader()
        if value:
            logger.debug("Using %s from environment", self._key)
            return value

        raise CredentialMissing(f"No value configured for {self._key}")

    def is_configured(self) -> bool:
        try:
            self.resolve()
        except CredentialMissing:
            return False
        return True

    def _from_store(self) -> str | None:
        if self._store is None:
            return None
        try:
            record = self._store.get(self._key)
        except Exception as e:
            logger.error("Config store lookup for %s failed: %s", self._key, e)
            return None
        if record is None:
            return None
        return record.value or None
