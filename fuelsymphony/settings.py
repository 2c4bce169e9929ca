from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    supabase_url: str
    supabase_anon_key: str
    jwt_secret: str
    backend: Literal["rest", "sql"] = "rest"
    database_url: str | None = None
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    jwt_issuer: str = "fuel-symphony"
    jwt_audience: str = "fuel-symphony-dashboard"
    access_token_minutes: int = Field(default=60, ge=1)
    app_name: str = "Fuel Symphony"
    cors_allow_origins: str = "http://127.0.0.1:5173,http://localhost:5173"
    log_level: str = "INFO"
    test_users_function: str = "create-test-users"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("supabase_url", "supabase_anon_key", "jwt_secret")
    @classmethod
    def _require_value(cls, value: str) -> str:
        value = (value or "").strip()
        # Common deployment copy/paste issue: quoted env values.
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1].strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("supabase_url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.hostname:
            raise ValueError("must be an http(s) URL")
        return value.rstrip("/")

    @model_validator(mode="after")
    def _require_database_url_for_sql(self) -> "Settings":
        if self.backend == "sql" and not (self.database_url or "").strip():
            raise ValueError("DATABASE_URL is required when BACKEND=sql")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def get_cors_origins(settings: Settings) -> list[str]:
    raw = settings.cors_allow_origins
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
