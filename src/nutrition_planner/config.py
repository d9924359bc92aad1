"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    openai_api_key: str
    openai_model: str = "gpt-5.2"
    openai_reasoning_effort: str = "medium"
    openai_store: bool = False
    recommendation_timeout_seconds: float = 45.0
    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_basic_price_id: str | None = None
    stripe_premium_price_id: str | None = None
    stripe_base_url: str = "https://api.stripe.com/v1"
    billing_timeout_seconds: float = 15.0
    billing_portal_return_url: str | None = None
    edamam_app_id: str
    edamam_app_key: str
    edamam_base_url: str = "https://api.edamam.com/api"
    catalog_timeout_seconds: float = 10.0
    recipe_protein_share: float = 0.15
    recipe_carbs_share: float = 0.50
    recipe_fat_share: float = 0.35
    recipe_cook_time_offset_minutes: int = 10
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
