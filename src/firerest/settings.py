"""Settings for the firerest client."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class FireRestSettings(BaseSettings):
    """firerest configuration settings."""

    # Firestore project
    FIRESTORE_PROJECT_ID: Optional[str] = None
    FIRESTORE_DATABASE: str = "(default)"
    FIRESTORE_API_VERSION: str = "v1"
    FIRESTORE_HOST: str = "https://firestore.googleapis.com"

    # Transactions
    TRANSACTION_MAX_RETRIES: int = 5
    TRANSACTION_BACKOFF_BASE_MS: int = 1000
    TRANSACTION_BACKOFF_MAX_MS: int = 10000

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = FireRestSettings()
