"""
Row storage abstraction for Azure Table Storage and in-memory testing.

Both implementations raise the ``azure.core`` exception types, so callers
handle a missing row, a duplicate key or a stale ETag the same way
whichever backend is configured.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Protocol

from azure.core import MatchConditions
from azure.core.exceptions import (
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)
from azure.data.tables import TableServiceClient, UpdateMode

logger = logging.getLogger(__name__)


@dataclass
class StoredRow:
    """A row as returned by the store, with its concurrency token."""

    properties: Dict[str, Any]
    etag: Optional[str] = None
    timestamp: Optional[datetime] = None


class TableStore(Protocol):
    """Defines the row operations the gateway needs from a table."""

    def ensure_exists(self) -> None:
        ...

    def create(self, entity: Dict[str, Any]) -> StoredRow:
        ...

    def get(self, partition_key: str, row_key: str) -> StoredRow:
        ...

    def list(self) -> Iterator[StoredRow]:
        ...

    def replace(self, entity: Dict[str, Any], etag: str) -> StoredRow:
        ...

    def delete(self, partition_key: str, row_key: str) -> None:
        ...


@dataclass
class InMemoryTableStore:
    """Test double for a single table."""

    name: str = "table"
    rows: Dict[tuple[str, str], StoredRow] = field(default_factory=dict)

    @staticmethod
    def _new_etag(now: datetime) -> str:
        return f'W/"datetime\'{now.isoformat()}\'-{uuid.uuid4().hex[:8]}"'

    @staticmethod
    def _key(entity: Dict[str, Any]) -> tuple[str, str]:
        return entity["PartitionKey"], entity["RowKey"]

    def _stamp(self, entity: Dict[str, Any]) -> StoredRow:
        now = datetime.now(timezone.utc)
        return StoredRow(
            properties=copy.deepcopy(entity),
            etag=self._new_etag(now),
            timestamp=now,
        )

    def _copy(self, row: StoredRow) -> StoredRow:
        return StoredRow(
            properties=copy.deepcopy(row.properties),
            etag=row.etag,
            timestamp=row.timestamp,
        )

    def ensure_exists(self) -> None:
        return None

    def create(self, entity: Dict[str, Any]) -> StoredRow:
        key = self._key(entity)
        if key in self.rows:
            raise ResourceExistsError(f"Entity {key} already exists in {self.name}")
        self.rows[key] = self._stamp(entity)
        return self._copy(self.rows[key])

    def get(self, partition_key: str, row_key: str) -> StoredRow:
        row = self.rows.get((partition_key, row_key))
        if row is None:
            raise ResourceNotFoundError(
                f"Entity ({partition_key}, {row_key}) not found in {self.name}"
            )
        return self._copy(row)

    def list(self) -> Iterator[StoredRow]:
        for row in list(self.rows.values()):
            yield self._copy(row)

    def replace(self, entity: Dict[str, Any], etag: str) -> StoredRow:
        key = self._key(entity)
        current = self.rows.get(key)
        if current is None:
            raise ResourceNotFoundError(f"Entity {key} not found in {self.name}")
        if current.etag != etag:
            raise ResourceModifiedError(
                f"ETag mismatch for {key} in {self.name}"
            )
        self.rows[key] = self._stamp(entity)
        return self._copy(self.rows[key])

    def delete(self, partition_key: str, row_key: str) -> None:
        self.rows.pop((partition_key, row_key), None)

    def reset(self) -> None:
        """Clear all stored rows (useful in tests)."""
        self.rows.clear()


class AzureTableStore:
    """
    Azure Table Storage implementation for one table.
    """

    def __init__(self, connection_string: str, table_name: str):
        if not connection_string:
            raise ValueError("A storage connection string is required")
        self.table_name = table_name
        self.table_service = TableServiceClient.from_connection_string(
            connection_string
        )
        self._client = self.table_service.get_table_client(table_name)

    def ensure_exists(self) -> None:
        try:
            self._client.create_table()
            logger.info(f"Created table: {self.table_name}")
        except ResourceExistsError:
            logger.debug(f"Table already exists: {self.table_name}")

    @staticmethod
    def _to_row(entity) -> StoredRow:
        metadata = getattr(entity, "metadata", {}) or {}
        return StoredRow(
            properties=dict(entity),
            etag=metadata.get("etag"),
            timestamp=metadata.get("timestamp"),
        )

    def create(self, entity: Dict[str, Any]) -> StoredRow:
        metadata = self._client.create_entity(entity=entity)
        return StoredRow(
            properties=dict(entity),
            etag=metadata.get("etag"),
            timestamp=metadata.get("date"),
        )

    def get(self, partition_key: str, row_key: str) -> StoredRow:
        entity = self._client.get_entity(
            partition_key=partition_key, row_key=row_key
        )
        return self._to_row(entity)

    def list(self) -> Iterator[StoredRow]:
        for entity in self._client.list_entities():
            yield self._to_row(entity)

    def replace(self, entity: Dict[str, Any], etag: str) -> StoredRow:
        metadata = self._client.update_entity(
            entity=entity,
            mode=UpdateMode.REPLACE,
            etag=etag,
            match_condition=MatchConditions.IfNotModified,
        )
        return StoredRow(
            properties=dict(entity),
            etag=metadata.get("etag"),
            timestamp=metadata.get("date"),
        )

    def delete(self, partition_key: str, row_key: str) -> None:
        self._client.delete_entity(partition_key=partition_key, row_key=row_key)
