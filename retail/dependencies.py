"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import HTTPException

from retail.config import Settings, get_settings
from retail.db import SqlDataService
from retail.gateway import StorageGateway
from retail.queue import (
    AzureMessageQueue,
    InMemoryMessageQueue,
    MessageQueue,
    RedisMessageQueue,
)
from retail.storage import (
    AzureBlobStore,
    AzureFileShare,
    BlobStore,
    FileShare,
    InMemoryBlobStore,
    InMemoryFileShare,
    S3BlobStore,
)
from retail.tables import AzureTableStore, InMemoryTableStore, TableStore

logger = logging.getLogger(__name__)

_gateway: StorageGateway | None = None
_sql_service: SqlDataService | None = None


def _use_in_memory(settings: Settings) -> bool:
    return settings.use_in_memory_backends or not settings.azure_storage_connection_string


def _table(settings: Settings, name: str) -> TableStore:
    if _use_in_memory(settings):
        return InMemoryTableStore(name=name)
    return AzureTableStore(settings.azure_storage_connection_string, name)


def _blob_store(settings: Settings) -> BlobStore:
    if settings.s3_bucket and not settings.use_in_memory_backends:
        return S3BlobStore(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    if _use_in_memory(settings):
        return InMemoryBlobStore(container=settings.blob_container_name)
    return AzureBlobStore(
        settings.azure_storage_connection_string, settings.blob_container_name
    )


def _message_queue(settings: Settings) -> MessageQueue:
    if settings.redis_url and not settings.use_in_memory_backends:
        return RedisMessageQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    if _use_in_memory(settings):
        return InMemoryMessageQueue()
    return AzureMessageQueue(
        settings.azure_storage_connection_string, settings.queue_name
    )


def _file_share(settings: Settings) -> FileShare:
    if _use_in_memory(settings):
        return InMemoryFileShare()
    return AzureFileShare(
        settings.azure_storage_connection_string, settings.file_share_name
    )


def build_gateway(settings: Settings) -> StorageGateway:
    return StorageGateway(
        customers=_table(settings, settings.customer_table_name),
        products=_table(settings, settings.product_table_name),
        orders=_table(settings, settings.order_table_name),
        images=_blob_store(settings),
        queue=_message_queue(settings),
        files=_file_share(settings),
    )


def get_gateway() -> StorageGateway:
    """
    Return a singleton gateway; backends are created on first use.
    """
    global _gateway
    if _gateway:
        return _gateway

    gateway = build_gateway(get_settings())
    if not gateway.initialize():
        logger.warning("Storage initialized with errors; continuing")
    _gateway = gateway
    return _gateway


def get_optional_sql_service() -> Optional[SqlDataService]:
    """
    Return the relational service, or ``None`` when no database is configured.
    """
    global _sql_service
    if _sql_service:
        return _sql_service

    settings = get_settings()
    if not settings.sql_database_url:
        return None
    _sql_service = SqlDataService(
        settings.sql_database_url,
        max_retries=settings.sql_max_retries,
        max_retry_delay=settings.sql_max_retry_delay,
        seed=settings.sql_seed_data,
    )
    return _sql_service


def get_sql_service() -> SqlDataService:
    service = get_optional_sql_service()
    if service is None:
        raise HTTPException(
            status_code=503, detail="SQL database is not configured"
        )
    return service
