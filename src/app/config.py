from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    APP_ENV: str = "local"
    PORT: int = 8080
    FRONTEND_CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:4200", "http://localhost:8080"],
    )

    # Origin bridge: requests under the prefix are forwarded to the auth backend.
    AUTH_BACKEND_URL: AnyHttpUrl = Field(
        default="http://localhost:5000",
        validate_default=True,
        validation_alias=AliasChoices("AUTH_BACKEND_URL", "FLASK_BACKEND_URL"),
    )
    AUTH_PROXY_PREFIX: str = "/api/auth"
    AUTH_PROXY_CONNECT_TIMEOUT_SECONDS: float = 5.0
    AUTH_PROXY_READ_TIMEOUT_SECONDS: float = 30.0

    # Client side: where the identity resolver reaches the auth endpoints.
    AUTH_API_BASE: str = "http://localhost:8080"
    AUTH_CHECK_TIMEOUT_SECONDS: float = 5.0

    GEMINI_API_KEY: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "VITE_GEMINI_API_KEY", "VITE_API_KEY"),
    )
    GEMINI_RECIPE_MODEL: str = "gemini-2.5-flash"
    GEMINI_IMAGE_MODEL: str = "imagen-4.0-generate-001"

    # Client side: how long the CLI waits on /api/recipe and /api/image.
    GENERATION_TIMEOUT_SECONDS: float = 60.0

    RATE_LIMIT_ENABLED: bool = True
    API_RATE_LIMIT: str = "100 per 15 minutes"
    GENERATION_RATE_LIMIT: str = "20 per hour"

    STATIC_DIR: str = "dist"
    SESSION_STORAGE_DIR: str = ".kitchen"
    SESSION_STORAGE_KEY: str = "vegan_genius_session"

    @property
    def auth_backend_origin(self) -> str:
        return str(self.AUTH_BACKEND_URL).rstrip("/")

    @property
    def gemini_api_key(self) -> Optional[str]:
        return self.GEMINI_API_KEY.get_secret_value() if self.GEMINI_API_KEY else None


settings = Settings()
