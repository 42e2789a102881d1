"""Service settings.

All values are read from the environment (or a local ``.env`` file) once, at
import time, and shared through the ``settings`` singleton.
"""

from __future__ import annotations

from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the pipeline and its ASGI host."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    HOST: str = "0.0.0.0"
    PORT: int = 8080
    PYTHON_LOG_LEVEL: str = "INFO"

    REQUEST_LOGGING_ENABLED: bool = True
    REQUEST_LOG_HEADERS: bool = False

    PROTECTED_PATHS: List[str] = ["/dashboard", "/account"]
    LOGIN_PATH: str = "/login"
    HOME_PATH: str = "/"
    SESSION_COOKIE: str = "session_token"

    LOCALES: List[str] = ["en", "de"]
    DEFAULT_LOCALE: str = "en"
    LOCALE_COOKIE: str = "locale"
    LOCALE_IGNORED_PREFIXES: List[str] = ["/api", "/health"]

    @field_validator("PYTHON_LOG_LEVEL")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("DEFAULT_LOCALE")
    @classmethod
    def _lower_locale(cls, value: str) -> str:
        return value.lower()


settings = Settings()
