"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Back office settings, read from the environment or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://backoffice:backoffice_dev_password@db:5432/backoffice"

    # SKU generation
    sku_max_attempts: int = 5
    sku_placeholders: list[str] = ["-VAN-50g", "-CHO-250g"]

    # Inventory
    low_stock_threshold: int = 5

    # Blob storage
    blob_store_backend: str = "memory"  # "memory" or "http"
    blob_store_url: str = "http://blob-store:9000/catalog"
    blob_public_base_url: str = "http://localhost:9000/catalog"
    blob_store_timeout: float = 10.0

    # Logging
    log_level: str = "INFO"


settings = Settings()
