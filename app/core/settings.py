# app/core/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "crm-pricing"
    APP_VERSION: str = "0.1.0"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"

    # --- Pricing rules ---
    PRODUCT_RULES_PATH: str = "app/verticals/product_rules/rules/rule_sets/default.yaml"
    CURRENCY: str = "CLP"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()  # reads .env
