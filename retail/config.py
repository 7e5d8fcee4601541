"""
Configuration and settings for the retail service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Table, blob, queue and file-share account
    azure_storage_connection_string: Optional[str] = Field(default=None)
    customer_table_name: str = Field(default="Customers")
    product_table_name: str = Field(default="Products")
    order_table_name: str = Field(default="Orders")
    blob_container_name: str = Field(default="product-images")
    queue_name: str = Field(default="retail-notifications")
    file_share_name: str = Field(default="contracts")

    # Relational database; leaving it unset disables the SQL routes.
    sql_database_url: Optional[str] = Field(default=None)
    sql_max_retries: int = Field(default=5)
    sql_max_retry_delay: float = Field(default=30.0)
    sql_seed_data: bool = Field(default=True)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="RETAIL_USE_IN_MEMORY_BACKENDS"
    )

    # Queue (Redis) in place of the storage-account queue
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="retail:notifications")

    # S3-compatible object storage in place of the blob container
    s3_bucket: Optional[str] = Field(default=None)
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
