# src/dealengine/adapters/config.py
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    # App & logging
    ENV: str = Field(default="dev")
    LOG_LEVEL: str = Field(default="INFO")

    # -----------------------------
    # Comp cache
    # -----------------------------
    # Freshness governs reuse; storage is how long the backing store keeps it.
    COMPS_CACHE_FRESHNESS_TTL_S: int = Field(default=24 * 60 * 60)
    COMPS_CACHE_STORAGE_TTL_S: int = Field(default=6 * 60 * 60)
    COMPS_CACHE_MAX_BYTES: int = Field(default=100_000)
    COMPS_CACHE_TRUNCATE_TO: int = Field(default=10)

    # -----------------------------
    # Provider retry policy
    # -----------------------------
    RETRY_MAX_ATTEMPTS: int = Field(default=3)
    RETRY_INITIAL_DELAY_S: float = Field(default=1.0)
    PROVIDER_TIMEOUT_S: float = Field(default=20.0)

    # -----------------------------
    # Comp providers
    # -----------------------------
    BRIDGE_API_KEY: str | None = Field(default=None)
    BRIDGE_BASE_URL: str = Field(default="https://api.bridgedataoutput.com")

    OPENAI_API_KEY: str | None = Field(default=None)
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini")

    GEMINI_API_KEY: str | None = Field(default=None)
    GEMINI_BASE_URL: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    GEMINI_MODEL: str = Field(default="gemini-1.5-flash")

    # -----------------------------
    # Analysis defaults
    # -----------------------------
    DEFAULT_DISCOUNT_RATE: float = Field(default=0.10)
    DEFAULT_PROJECTION_YEARS: int = Field(default=10)

    model_config = SettingsConfigDict(
        env_prefix="DEALENGINE_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("DEFAULT_DISCOUNT_RATE", mode="before")
    @classmethod
    def _to_non_negative_fraction(cls, v: Any) -> Any:
        if v is None:
            return v
        if isinstance(v, str):
            v = v.strip().replace("%", "")
        try:
            f = float(v)
        except Exception as err:
            raise ValueError("rate must be numeric or percent-like") from err
        if f > 1.0:
            f = f / 100.0
        if f < 0:
            raise ValueError("rate must be non-negative")
        return f

    @field_validator(
        "COMPS_CACHE_FRESHNESS_TTL_S",
        "COMPS_CACHE_STORAGE_TTL_S",
        "RETRY_MAX_ATTEMPTS",
        "DEFAULT_PROJECTION_YEARS",
        mode="before",
    )
    @classmethod
    def _positive_int(cls, v: Any) -> Any:
        i = int(float(v))
        if i <= 0:
            raise ValueError("value must be > 0")
        return i

    @field_validator("RETRY_INITIAL_DELAY_S", "PROVIDER_TIMEOUT_S", mode="before")
    @classmethod
    def _non_negative_seconds(cls, v: Any) -> Any:
        f = float(v)
        if f < 0:
            raise ValueError("seconds must be non-negative")
        return f


config = AppConfig()
