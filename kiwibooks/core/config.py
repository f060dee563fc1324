from __future__ import annotations

import os
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseAppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "KiwiBooks"
    ENV: str = "dev"
    DATABASE_URL: str | None = None

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "plain"

    # Tax defaults used when a user has no configuration yet (NZ GST since 1 Oct 2010)
    DEFAULT_COUNTRY_CODE: str = "NZ"
    DEFAULT_TAX_TYPE: str = "GST"
    DEFAULT_TAX_RATE: float = 0.15
    DEFAULT_TAX_NAME: str = "GST"
    DEFAULT_TAX_EFFECTIVE_FROM: str = "2010-10-01"

    # IRD gateway (simulated until myIR gateway services access is granted)
    IRD_API_URL: str | None = None
    IRD_API_KEY: str | None = None
    IRD_SUBMISSION_ENABLED: bool = False

    CORS_ALLOW_ORIGINS: list[str] = ["*"]
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True

    @field_validator("DEFAULT_TAX_RATE")
    @classmethod
    def _rate_is_fraction(cls, v: float) -> float:
        if v < 0 or v > 1:
            raise ValueError("DEFAULT_TAX_RATE must be between 0 and 1")
        return v

    @model_validator(mode="after")
    def _validate_required_fields(self) -> BaseAppSettings:
        if self.DATABASE_URL and self.DATABASE_URL.startswith("postgres://"):
            self.DATABASE_URL = self.DATABASE_URL.replace("postgres://", "postgresql://", 1)

        if self.ENV.lower() == "prod":
            missing = [name for name in ("DATABASE_URL",) if not getattr(self, name)]
            if missing:
                raise ValueError(f"Missing required production settings: {', '.join(missing)}")
            if self.IRD_SUBMISSION_ENABLED and not (self.IRD_API_URL and self.IRD_API_KEY):
                raise ValueError("IRD_SUBMISSION_ENABLED requires IRD_API_URL and IRD_API_KEY")
        return self


class DevSettings(BaseAppSettings):
    ENV: str = "dev"
    DATABASE_URL: str = "sqlite:///./storage/dev.db"


class TestSettings(BaseAppSettings):
    ENV: str = "test"
    DATABASE_URL: str = "sqlite:///:memory:"


class ProdSettings(BaseAppSettings):
    ENV: str = "prod"
    CORS_ALLOW_ORIGINS: list[str] = [
        "https://kiwibooks.co.nz",
        "https://app.kiwibooks.co.nz",
    ]
    LOG_FORMAT: str = "json"


_ENV_TO_SETTINGS: dict[str, type[BaseAppSettings]] = {
    "dev": DevSettings,
    "development": DevSettings,
    "test": TestSettings,
    "testing": TestSettings,
    "prod": ProdSettings,
    "production": ProdSettings,
}


@lru_cache
def get_settings() -> BaseAppSettings:
    env_name = os.getenv("APP_ENV") or os.getenv("ENV") or "dev"
    env = env_name.lower()
    settings_cls = _ENV_TO_SETTINGS.get(env, DevSettings)
    return settings_cls()


settings = get_settings()
