"""
Binary storage abstractions: a blob container for product images and a file
share for contract documents.

Blob backends: Azure Blob Storage, S3-compatible object storage and an
in-memory test double. File-share backends: Azure Files and an in-memory
test double.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol
from urllib.parse import quote, urlsplit

import boto3
from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings
from azure.storage.fileshare import ShareServiceClient
from botocore.config import Config

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class BlobInfo:
    name: str
    size: int = 0
    content_type: Optional[str] = None
    last_modified: Optional[datetime] = None

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "size": self.size,
            "content_type": self.content_type,
            "last_modified": self.last_modified,
        }


class BlobStore(Protocol):
    """Defines the operations the gateway needs from object storage."""

    def ensure_exists(self) -> None:
        ...

    def upload(self, name: str, data: bytes, content_type: str) -> str:
        ...

    def list(self) -> list[BlobInfo]:
        ...

    def download(self, name: str) -> bytes:
        ...

    def delete(self, name: str) -> None:
        ...

    def url_for(self, name: str) -> str:
        ...


class FileShare(Protocol):
    """Defines the operations the gateway needs from a file share."""

    def ensure_exists(self) -> None:
        ...

    def upload(self, name: str, data: bytes) -> None:
        ...

    def list(self) -> list[str]:
        ...

    def download(self, name: str) -> bytes:
        ...

    def delete(self, name: str) -> None:
        ...


@dataclass
class InMemoryBlobStore:
    """Test double for blob interactions."""

    base_url: str = "https://example.test/storage"
    container: str = "product-images"
    stored_objects: Dict[str, tuple[bytes, str, datetime]] = field(
        default_factory=dict
    )

    def ensure_exists(self) -> None:
        return None

    def upload(self, name: str, data: bytes, content_type: str) -> str:
        self.stored_objects[name] = (
            bytes(data),
            content_type or DEFAULT_CONTENT_TYPE,
            datetime.now(timezone.utc),
        )
        return self.url_for(name)

    def list(self) -> list[BlobInfo]:
        return [
            BlobInfo(
                name=name,
                size=len(data),
                content_type=content_type,
                last_modified=modified,
            )
            for name, (data, content_type, modified) in sorted(
                self.stored_objects.items()
            )
        ]

    def download(self, name: str) -> bytes:
        stored = self.stored_objects.get(name)
        if stored is None:
            raise ResourceNotFoundError(f"Blob not found: {name}")
        return stored[0]

    def delete(self, name: str) -> None:
        self.stored_objects.pop(name, None)

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/{self.container}/{quote(name)}"

    def reset(self) -> None:
        self.stored_objects.clear()


class AzureBlobStore:
    """
    Azure Blob Storage implementation for a single container.
    """

    def __init__(self, connection_string: str, container_name: str):
        if not connection_string:
            raise ValueError("A storage connection string is required")
        self.container_name = container_name
        self.blob_service = BlobServiceClient.from_connection_string(
            connection_string
        )
        self._container = self.blob_service.get_container_client(container_name)

    def ensure_exists(self) -> None:
        try:
            self._container.create_container()
            logger.info(f"Created blob container: {self.container_name}")
        except ResourceExistsError:
            logger.debug(f"Blob container already exists: {self.container_name}")

    def upload(self, name: str, data: bytes, content_type: str) -> str:
        blob_client = self._container.get_blob_client(name)
        blob_client.upload_blob(
            data,
            overwrite=True,
            content_settings=ContentSettings(
                content_type=content_type or DEFAULT_CONTENT_TYPE
            ),
        )
        return blob_client.url

    def list(self) -> list[BlobInfo]:
        items: list[BlobInfo] = []
        for blob in self._container.list_blobs():
            settings = blob.content_settings
            items.append(
                BlobInfo(
                    name=blob.name,
                    size=blob.size or 0,
                    content_type=settings.content_type if settings else None,
                    last_modified=blob.last_modified,
                )
            )
        return items

    def download(self, name: str) -> bytes:
        blob_client = self._container.get_blob_client(name)
        return blob_client.download_blob().readall()

    def delete(self, name: str) -> None:
        try:
            self._container.delete_blob(name, delete_snapshots="include")
        except ResourceNotFoundError:
            logger.debug(f"Blob already absent: {name}")

    def url_for(self, name: str) -> str:
        return self._container.get_blob_client(name).url


@dataclass
class S3BlobStore:
    """
    S3-compatible object storage for images (AWS S3, Tencent COS, MinIO).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def ensure_exists(self) -> None:
        self._client.head_bucket(Bucket=self.bucket)

    def upload(self, name: str, data: bytes, content_type: str) -> str:
        self._client.put_object(
            Bucket=self.bucket,
            Key=name,
            Body=data,
            ContentType=content_type or DEFAULT_CONTENT_TYPE,
        )
        return self.url_for(name)

    def list(self) -> list[BlobInfo]:
        items: list[BlobInfo] = []
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket):
            for obj in page.get("Contents", []):
                items.append(
                    BlobInfo(
                        name=obj["Key"],
                        size=obj.get("Size", 0),
                        last_modified=obj.get("LastModified"),
                    )
                )
        return items

    def download(self, name: str) -> bytes:
        response = self._client.get_object(Bucket=self.bucket, Key=name)
        return response["Body"].read()

    def delete(self, name: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=name)

    def url_for(self, name: str) -> str:
        endpoint = self.endpoint or f"https://s3.{self.region}.amazonaws.com"
        parts = urlsplit(endpoint)
        return f"{parts.scheme}://{self.bucket}.{parts.netloc}/{quote(name)}"


@dataclass
class InMemoryFileShare:
    """Test double for a file share root directory."""

    files: Dict[str, bytes] = field(default_factory=dict)

    def ensure_exists(self) -> None:
        return None

    def upload(self, name: str, data: bytes) -> None:
        self.files[name] = bytes(data)

    def list(self) -> list[str]:
        return sorted(self.files)

    def download(self, name: str) -> bytes:
        data = self.files.get(name)
        if data is None:
            raise ResourceNotFoundError(f"File not found: {name}")
        return data

    def delete(self, name: str) -> None:
        self.files.pop(name, None)

    def reset(self) -> None:
        self.files.clear()


class AzureFileShare:
    """
    Azure Files implementation operating on the share's root directory.
    """

    def __init__(self, connection_string: str, share_name: str):
        if not connection_string:
            raise ValueError("A storage connection string is required")
        self.share_name = share_name
        self.share_service = ShareServiceClient.from_connection_string(
            connection_string
        )
        self._share = self.share_service.get_share_client(share_name)
        self._root = self._share.get_directory_client()

    def ensure_exists(self) -> None:
        try:
            self._share.create_share()
            logger.info(f"Created file share: {self.share_name}")
        except ResourceExistsError:
            logger.debug(f"File share already exists: {self.share_name}")

    def upload(self, name: str, data: bytes) -> None:
        file_client = self._root.get_file_client(name)
        # Azure Files needs the final size when the file is created.
        file_client.create_file(size=len(data))
        if data:
            file_client.upload_range(data, offset=0, length=len(data))

    def list(self) -> list[str]:
        return [
            item["name"]
            for item in self._root.list_directories_and_files()
            if not item["is_directory"]
        ]

    def download(self, name: str) -> bytes:
        file_client = self._root.get_file_client(name)
        return file_client.download_file().readall()

    def delete(self, name: str) -> None:
        try:
            self._root.get_file_client(name).delete_file()
        except ResourceNotFoundError:
            logger.debug(f"File already absent: {name}")
