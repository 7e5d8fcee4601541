"""
Row entities for the table-storage path.

Each entity lives in a fixed partition and is addressed by a generated row
key. Stored property names are PascalCase so rows stay readable by other
clients of the same tables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Optional

CUSTOMER_PARTITION = "Customer"
PRODUCT_PARTITION = "Product"
ORDER_PARTITION = "Order"

ORDER_STATUS_NEW = "New"
ORDER_STATUS_PROCESSING = "Processing"
ORDER_STATUS_COMPLETED = "Completed"
ORDER_STATUS_CANCELLED = "Cancelled"
# Known values only; nothing enforces transitions between them.
ORDER_STATUSES = (
    ORDER_STATUS_NEW,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _pascal(name: str) -> str:
    return "".join(part.capitalize() for part in name.split("_"))


@dataclass
class TableEntity:
    """Base for partition/row-key addressed rows."""

    PARTITION: ClassVar[str] = ""
    # Attribute names that are persisted as row properties.
    PROPERTIES: ClassVar[tuple[str, ...]] = ()

    partition_key: str = ""
    row_key: str = ""
    etag: Optional[str] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if not self.partition_key:
            self.partition_key = self.PARTITION

    def to_entity(self) -> Dict[str, Any]:
        entity: Dict[str, Any] = {
            "PartitionKey": self.partition_key,
            "RowKey": self.row_key,
        }
        for name in self.PROPERTIES:
            entity[_pascal(name)] = getattr(self, name)
        return entity

    @classmethod
    def from_entity(
        cls,
        entity: Dict[str, Any],
        *,
        etag: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ):
        # Missing properties keep their dataclass defaults.
        values: Dict[str, Any] = {}
        for name in cls.PROPERTIES:
            key = _pascal(name)
            if key in entity:
                values[name] = entity[key]
        return cls(
            partition_key=entity.get("PartitionKey", cls.PARTITION),
            row_key=entity.get("RowKey", ""),
            etag=etag,
            timestamp=timestamp,
            **values,
        )


@dataclass
class CustomerProfile(TableEntity):
    PARTITION: ClassVar[str] = CUSTOMER_PARTITION
    PROPERTIES: ClassVar[tuple[str, ...]] = (
        "first_name",
        "last_name",
        "email",
        "phone",
        "address",
        "date_created",
    )

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    date_created: datetime = field(default_factory=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class Product(TableEntity):
    PARTITION: ClassVar[str] = PRODUCT_PARTITION
    PROPERTIES: ClassVar[tuple[str, ...]] = (
        "name",
        "description",
        "price",
        "category",
        "stock_quantity",
        "image_url",
        "date_created",
    )

    name: str = ""
    description: str = ""
    price: float = 0.0
    category: str = ""
    stock_quantity: int = 0
    image_url: str = ""
    date_created: datetime = field(default_factory=utcnow)


@dataclass
class Order(TableEntity):
    PARTITION: ClassVar[str] = ORDER_PARTITION
    PROPERTIES: ClassVar[tuple[str, ...]] = (
        "customer_row_key",
        "product_row_key",
        "quantity",
        "unit_price",
        "total_amount",
        "notes",
        "date_created",
        "status",
        "customer_name",
        "product_name",
    )

    # Soft references to CustomerProfile.row_key / Product.row_key.
    customer_row_key: str = ""
    product_row_key: str = ""
    quantity: int = 0
    unit_price: float = 0.0
    total_amount: float = 0.0
    notes: str = ""
    date_created: datetime = field(default_factory=utcnow)
    status: str = ORDER_STATUS_NEW
    # Captured at creation time.
    customer_name: str = ""
    product_name: str = ""

    def recompute_total(self) -> float:
        self.total_amount = float(self.unit_price) * int(self.quantity)
        return self.total_amount
