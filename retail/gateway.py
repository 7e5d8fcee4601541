"""
Storage gateway over the row, blob, queue and file-share backends.

Every backend error is caught here, logged and turned into a falsy result:
``False``, ``None``, an empty list, ``""`` or ``EMPTY_STREAM``. Callers
cannot tell "not found" from "backend unavailable"; no exception escapes.

Successful mutations send a notification string to the queue. A failed
notification is logged and never changes the mutation's result.
"""

from __future__ import annotations

import logging
import uuid
from typing import BinaryIO, Optional, Type, TypeVar, Union

from azure.core.exceptions import ResourceNotFoundError

from retail.entities import CustomerProfile, Order, Product, TableEntity
from retail.queue import DEFAULT_PEEK_COUNT, MessageQueue
from retail.storage import BlobInfo, BlobStore, FileShare
from retail.tables import StoredRow, TableStore

logger = logging.getLogger(__name__)

# Returned by downloads when the object is absent or cannot be read.
EMPTY_STREAM = b""

EntityT = TypeVar("EntityT", bound=TableEntity)
Payload = Union[bytes, bytearray, BinaryIO]


def _read_payload(data: Payload) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    return data.read()


def _hydrate(cls: Type[EntityT], row: StoredRow) -> EntityT:
    return cls.from_entity(row.properties, etag=row.etag, timestamp=row.timestamp)


class StorageGateway:
    """CRUD facade over the table-storage path and its binary stores."""

    def __init__(
        self,
        *,
        customers: TableStore,
        products: TableStore,
        orders: TableStore,
        images: BlobStore,
        queue: MessageQueue,
        files: FileShare,
    ):
        self.customers = customers
        self.products = products
        self.orders = orders
        self.images = images
        self.queue = queue
        self.files = files

    def initialize(self) -> bool:
        """
        Create tables, container, queue and share when missing.

        Failures are logged and reported through the return value only, so
        the application still starts against a partially available account.
        """
        ok = True
        backends = (
            self.customers,
            self.products,
            self.orders,
            self.images,
            self.queue,
            self.files,
        )
        for backend in backends:
            try:
                backend.ensure_exists()
            except Exception:
                logger.exception(
                    "Error initializing storage backend %s",
                    backend.__class__.__name__,
                )
                ok = False
        return ok

    # Row helpers

    def _add(self, table: TableStore, entity: TableEntity, kind: str) -> bool:
        try:
            entity.partition_key = entity.PARTITION
            entity.row_key = str(uuid.uuid4())
            row = table.create(entity.to_entity())
            entity.etag = row.etag
            entity.timestamp = row.timestamp
            logger.info(f"Added {kind} {entity.row_key}")
            return True
        except Exception:
            logger.exception(f"Error adding {kind}")
            return False

    def _get(
        self, table: TableStore, cls: Type[EntityT], partition_key: str, row_key: str
    ) -> Optional[EntityT]:
        try:
            return _hydrate(cls, table.get(partition_key, row_key))
        except ResourceNotFoundError:
            logger.warning(
                f"{cls.__name__} not found: ({partition_key}, {row_key})"
            )
            return None
        except Exception:
            logger.exception(
                f"Error getting {cls.__name__} ({partition_key}, {row_key})"
            )
            return None

    def _list(self, table: TableStore, cls: Type[EntityT]) -> list[EntityT]:
        try:
            return [_hydrate(cls, row) for row in table.list()]
        except Exception:
            logger.exception(f"Error listing {cls.__name__} rows")
            return []

    def _update(self, table: TableStore, entity: TableEntity, kind: str) -> bool:
        if not entity.etag:
            logger.error(
                f"Refusing to update {kind} {entity.row_key} without an ETag"
            )
            return False
        try:
            row = table.replace(entity.to_entity(), entity.etag)
            entity.etag = row.etag
            entity.timestamp = row.timestamp
            logger.info(f"Updated {kind} {entity.row_key}")
            return True
        except Exception:
            logger.exception(f"Error updating {kind} {entity.row_key}")
            return False

    def _delete(
        self, table: TableStore, partition_key: str, row_key: str, kind: str
    ) -> bool:
        try:
            table.delete(partition_key, row_key)
            logger.info(f"Deleted {kind} ({partition_key}, {row_key})")
            return True
        except Exception:
            logger.exception(f"Error deleting {kind} ({partition_key}, {row_key})")
            return False

    def _notify(self, message: str) -> None:
        if not self.send_message(message):
            logger.warning("Notification not delivered: %s", message)

    # Customers

    def add_customer(self, customer: CustomerProfile) -> bool:
        if not self._add(self.customers, customer, "customer"):
            return False
        self._notify(
            f"[CUSTOMER_CREATED] #{customer.row_key} '{customer.full_name}'"
        )
        return True

    def get_customer(
        self, partition_key: str, row_key: str
    ) -> Optional[CustomerProfile]:
        return self._get(self.customers, CustomerProfile, partition_key, row_key)

    def list_customers(self) -> list[CustomerProfile]:
        return self._list(self.customers, CustomerProfile)

    def update_customer(self, customer: CustomerProfile) -> bool:
        if not self._update(self.customers, customer, "customer"):
            return False
        self._notify(
            f"[CUSTOMER_UPDATED] #{customer.row_key} '{customer.full_name}'"
        )
        return True

    def delete_customer(self, partition_key: str, row_key: str) -> bool:
        if not self._delete(self.customers, partition_key, row_key, "customer"):
            return False
        self._notify(f"[CUSTOMER_DELETED] #{row_key}")
        return True

    # Products

    def add_product(self, product: Product) -> bool:
        if not self._add(self.products, product, "product"):
            return False
        self._notify(f"[PRODUCT_CREATED] #{product.row_key} '{product.name}'")
        return True

    def get_product(self, partition_key: str, row_key: str) -> Optional[Product]:
        return self._get(self.products, Product, partition_key, row_key)

    def list_products(self) -> list[Product]:
        return self._list(self.products, Product)

    def update_product(self, product: Product) -> bool:
        if not self._update(self.products, product, "product"):
            return False
        self._notify(f"[PRODUCT_UPDATED] #{product.row_key} '{product.name}'")
        return True

    def delete_product(self, partition_key: str, row_key: str) -> bool:
        if not self._delete(self.products, partition_key, row_key, "product"):
            return False
        self._notify(f"[PRODUCT_DELETED] #{row_key}")
        return True

    # Orders

    def add_order(self, order: Order) -> bool:
        order.recompute_total()
        if not self._add(self.orders, order, "order"):
            return False
        self._notify(
            f"[ORDER_CREATED] #{order.row_key} for '{order.customer_name}'"
            f" - {order.quantity} x '{order.product_name}'"
            f" @ {order.unit_price:.2f} = {order.total_amount:.2f}"
        )
        return True

    def get_order(self, partition_key: str, row_key: str) -> Optional[Order]:
        return self._get(self.orders, Order, partition_key, row_key)

    def list_orders(self) -> list[Order]:
        return self._list(self.orders, Order)

    def update_order(self, order: Order) -> bool:
        order.recompute_total()
        if not self._update(self.orders, order, "order"):
            return False
        self._notify(
            f"[ORDER_UPDATED] #{order.row_key} status '{order.status}'"
            f" total {order.total_amount:.2f}"
        )
        return True

    def delete_order(self, partition_key: str, row_key: str) -> bool:
        if not self._delete(self.orders, partition_key, row_key, "order"):
            return False
        self._notify(f"[ORDER_DELETED] #{row_key}")
        return True

    # Images (blob container)

    def upload_image(self, data: Payload, file_name: str, content_type: str) -> str:
        try:
            url = self.images.upload(file_name, _read_payload(data), content_type)
            logger.info(f"Uploaded image {file_name}")
        except Exception:
            logger.exception(f"Error uploading image {file_name}")
            return ""
        self._notify(f"[IMAGE_UPLOADED] {file_name}")
        return url

    def list_images(self) -> list[BlobInfo]:
        try:
            return self.images.list()
        except Exception:
            logger.exception("Error listing images")
            return []

    def download_image(self, file_name: str) -> bytes:
        try:
            return self.images.download(file_name)
        except ResourceNotFoundError:
            logger.warning(f"Image not found: {file_name}")
            return EMPTY_STREAM
        except Exception:
            logger.exception(f"Error downloading image {file_name}")
            return EMPTY_STREAM

    def delete_image(self, file_name: str) -> bool:
        try:
            self.images.delete(file_name)
            logger.info(f"Deleted image {file_name}")
        except Exception:
            logger.exception(f"Error deleting image {file_name}")
            return False
        self._notify(f"[IMAGE_DELETED] {file_name}")
        return True

    def get_image_url(self, file_name: str) -> str:
        try:
            return self.images.url_for(file_name)
        except Exception:
            logger.exception(f"Error resolving image URL for {file_name}")
            return ""

    # Queue

    def send_message(self, message: str) -> bool:
        try:
            self.queue.send(message)
            return True
        except Exception:
            logger.exception("Error sending message")
            return False

    def receive_message(self) -> Optional[str]:
        try:
            return self.queue.receive()
        except Exception:
            logger.exception("Error receiving message")
            return None

    def peek_messages(self, max_messages: int = DEFAULT_PEEK_COUNT) -> list[str]:
        try:
            return self.queue.peek(max_messages)
        except Exception:
            logger.exception("Error peeking messages")
            return []

    # Contracts (file share)

    def upload_file(self, data: Payload, file_name: str) -> bool:
        try:
            self.files.upload(file_name, _read_payload(data))
            logger.info(f"Uploaded contract {file_name}")
        except Exception:
            logger.exception(f"Error uploading contract {file_name}")
            return False
        self._notify(f"[CONTRACT_UPLOADED] {file_name}")
        return True

    def list_files(self) -> list[str]:
        try:
            return self.files.list()
        except Exception:
            logger.exception("Error listing contracts")
            return []

    def download_file(self, file_name: str) -> bytes:
        try:
            return self.files.download(file_name)
        except ResourceNotFoundError:
            logger.warning(f"Contract not found: {file_name}")
            return EMPTY_STREAM
        except Exception:
            logger.exception(f"Error downloading contract {file_name}")
            return EMPTY_STREAM

    def delete_file(self, file_name: str) -> bool:
        try:
            self.files.delete(file_name)
            logger.info(f"Deleted contract {file_name}")
        except Exception:
            logger.exception(f"Error deleting contract {file_name}")
            return False
        self._notify(f"[CONTRACT_DELETED] {file_name}")
        return True
