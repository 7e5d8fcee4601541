"""
Pydantic schemas for the retail API.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PHONE_PATTERN = r"^[0-9+()\-\s]*$"


class StatusResponse(BaseModel):
    status: Literal["ok"]


# Table-storage path


class CustomerPayload(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., max_length=100, pattern=EMAIL_PATTERN)
    phone: str = Field("", max_length=20, pattern=PHONE_PATTERN)
    address: str = Field(..., min_length=1, max_length=200)


class CustomerUpdatePayload(CustomerPayload):
    etag: str = Field(..., min_length=1)


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    partition_key: str
    row_key: str
    etag: Optional[str] = None
    timestamp: Optional[datetime] = None
    first_name: str
    last_name: str
    email: str
    phone: str = ""
    address: str
    date_created: Optional[datetime] = None


class ProductPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    price: float = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=100)
    stock_quantity: int = Field(0, ge=0)
    image_url: str = Field("", max_length=500)


class ProductUpdatePayload(ProductPayload):
    etag: str = Field(..., min_length=1)


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    partition_key: str
    row_key: str
    etag: Optional[str] = None
    timestamp: Optional[datetime] = None
    name: str
    description: str
    price: float
    category: str
    stock_quantity: int
    image_url: str = ""
    date_created: Optional[datetime] = None


class OrderCreatePayload(BaseModel):
    customer_row_key: str = Field(..., min_length=1)
    product_row_key: str = Field(..., min_length=1)
    quantity: int
    notes: str = Field("", max_length=1000)


class OrderUpdatePayload(BaseModel):
    quantity: int
    notes: str = Field("", max_length=1000)
    status: str = Field(..., min_length=1, max_length=30)
    etag: str = Field(..., min_length=1)


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    partition_key: str
    row_key: str
    etag: Optional[str] = None
    timestamp: Optional[datetime] = None
    customer_row_key: str
    product_row_key: str
    quantity: int
    unit_price: float
    total_amount: float
    notes: str = ""
    status: str
    customer_name: str = ""
    product_name: str = ""
    date_created: Optional[datetime] = None


# Images, contracts and queue


class ImageInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    size: int = 0
    content_type: Optional[str] = None
    last_modified: Optional[datetime] = None


class ImageUploadResponse(BaseModel):
    file_name: str
    url: str


class ImageUrlResponse(BaseModel):
    file_name: str
    url: str


class FileUploadResponse(BaseModel):
    file_name: str
    original_file_name: str


class FileListResponse(BaseModel):
    files: list[str]


class SendMessageRequest(BaseModel):
    message: str = Field(..., max_length=4096)
    message_type: str = Field("General", min_length=1, max_length=50)


class OrderProcessingMessageRequest(BaseModel):
    order_id: str
    customer_name: str
    order_amount: Decimal = Field(Decimal("0"), ge=0)


class InventoryMessageRequest(BaseModel):
    product_name: str
    action: str
    quantity: int = Field(0, ge=0)


class MessagesResponse(BaseModel):
    messages: list[str]


class ReceiveMessageResponse(BaseModel):
    message: Optional[str] = None


# Relational path


class SqlCustomerPayload(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., max_length=100, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(None, max_length=20, pattern=PHONE_PATTERN)
    address: str = Field(..., min_length=1, max_length=200)


class SqlProductPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    price: Decimal = Field(..., ge=0, max_digits=18, decimal_places=2)
    category: str = Field(..., min_length=1, max_length=100)
    stock_quantity: int = Field(..., ge=0)
    image_url: Optional[str] = Field(None, max_length=500)


class SqlOrderPayload(BaseModel):
    customer_id: int
    product_id: int
    quantity: int
    # Defaults to the product's current price.
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=18, decimal_places=2)
    notes: Optional[str] = Field(None, max_length=1000)


class SqlOrderUpdatePayload(BaseModel):
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0, max_digits=18, decimal_places=2)
    notes: Optional[str] = Field(None, max_length=1000)
    status: str = Field(..., min_length=1, max_length=30)


class SqlOrderSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: int
    customer_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    notes: Optional[str] = None
    status: str
    date_created: datetime
    last_modified: Optional[datetime] = None


class SqlCustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    address: str
    date_created: datetime
    last_modified: Optional[datetime] = None


class SqlCustomerDetailResponse(SqlCustomerResponse):
    orders: list[SqlOrderSummary] = []


class SqlProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    name: str
    description: str
    price: Decimal
    category: str
    stock_quantity: int
    image_url: Optional[str] = None
    date_created: datetime
    last_modified: Optional[datetime] = None


class SqlProductDetailResponse(SqlProductResponse):
    orders: list[SqlOrderSummary] = []


class SqlOrderResponse(SqlOrderSummary):
    customer_name: Optional[str] = None
    product_name: Optional[str] = None


class ReportSummaryResponse(BaseModel):
    total_revenue: Decimal
    total_orders: int


class LowStockResponse(BaseModel):
    threshold: int
    products: list[SqlProductResponse]
