"""Centralised configuration for the points advisor services."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings shared across the search and recommender services."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    amadeus_base_url: HttpUrl = Field(
        "https://test.api.amadeus.com",
        description="Amadeus Self-Service base URL (test or production).",
    )
    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""

    seats_aero_base_url: HttpUrl = Field(
        "https://seats.aero/partnerapi",
        description="seats.aero partner API root.",
    )
    seats_aero_api_key: str = Field(
        ...,
        description="Partner-Authorization key for seats.aero award searches.",
    )

    cad_to_usd: float = Field(0.73, gt=0.0)
    missing_cash_policy: Literal["drop", "synthesize"] = "drop"
    tax_cap_fraction: float | None = Field(0.1, gt=0.0, le=1.0)
    max_recommendations: int = Field(5, ge=1, le=20)
    apply_preference_filter: bool = True

    cash_retry_with_connections: bool = True
    cash_split_round_trip: bool = True
    award_take: int = Field(10, ge=1, le=1000)
    cash_max_results: int = Field(10, ge=1, le=250)

    points_sources: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["Amex", "Chase"])
    primary_partner_programs: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["aeroplan"])
    primary_partner_airlines: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["BA", "IB"])

    http_timeout_seconds: float = Field(20.0, gt=0.0)
    max_workers: int = Field(8, ge=1, le=64)
    token_refresh_margin_seconds: int = Field(60, ge=0)
    log_level: str = "INFO"

    @field_validator("tax_cap_fraction", mode="before")
    @classmethod
    def _disable_tax_cap(cls, value):
        if isinstance(value, str) and value.strip().lower() in {"", "none", "null", "off"}:
            return None
        return value

    @field_validator(
        "points_sources",
        "primary_partner_programs",
        "primary_partner_airlines",
        mode="before",
    )
    @classmethod
    def _split_csv(cls, value):
        if isinstance(value, str):
            if value.strip().startswith("["):
                return json.loads(value)
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
