"""
HTTP routes for the retail API.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile
from sqlalchemy.exc import IntegrityError

from retail import db as sql
from retail.db import DEFAULT_LOW_STOCK_THRESHOLD, SqlDataService
from retail.dependencies import get_gateway, get_sql_service
from retail.entities import (
    CUSTOMER_PARTITION,
    ORDER_PARTITION,
    PRODUCT_PARTITION,
    CustomerProfile,
    Order,
    Product,
)
from retail.gateway import StorageGateway
from retail.queue import format_message
from retail.schemas import (
    CustomerPayload,
    CustomerResponse,
    CustomerUpdatePayload,
    FileListResponse,
    FileUploadResponse,
    ImageInfo,
    ImageUploadResponse,
    ImageUrlResponse,
    InventoryMessageRequest,
    LowStockResponse,
    MessagesResponse,
    OrderCreatePayload,
    OrderProcessingMessageRequest,
    OrderResponse,
    OrderUpdatePayload,
    ProductPayload,
    ProductResponse,
    ProductUpdatePayload,
    ReceiveMessageResponse,
    ReportSummaryResponse,
    SendMessageRequest,
    SqlCustomerDetailResponse,
    SqlCustomerPayload,
    SqlCustomerResponse,
    SqlOrderPayload,
    SqlOrderResponse,
    SqlOrderSummary,
    SqlOrderUpdatePayload,
    SqlProductDetailResponse,
    SqlProductPayload,
    SqlProductResponse,
    StatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

IMAGE_EXTENSIONS = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
}
CONTRACT_EXTENSIONS = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".txt": "text/plain",
    ".rtf": "application/rtf",
}
MAX_IMAGE_BYTES = 5 * 1024 * 1024
MAX_CONTRACT_BYTES = 10 * 1024 * 1024


def _extension(file_name: str) -> str:
    return os.path.splitext(file_name or "")[1].lower()


def _bad_gateway(detail: str) -> HTTPException:
    return HTTPException(status_code=502, detail=detail)


# Customers (table storage)


@router.get("/customers", response_model=list[CustomerResponse])
def list_customers(gateway: StorageGateway = Depends(get_gateway)):
    customers = gateway.list_customers()
    return sorted(customers, key=lambda c: (c.last_name, c.first_name))


@router.post("/customers", response_model=CustomerResponse, status_code=201)
def create_customer(
    payload: CustomerPayload, gateway: StorageGateway = Depends(get_gateway)
):
    customer = CustomerProfile(**payload.model_dump())
    if not gateway.add_customer(customer):
        raise _bad_gateway("Failed to create customer.")
    return customer


@router.get("/customers/{partition_key}/{row_key}", response_model=CustomerResponse)
def get_customer(
    partition_key: str, row_key: str, gateway: StorageGateway = Depends(get_gateway)
):
    customer = gateway.get_customer(partition_key, row_key)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.put("/customers/{partition_key}/{row_key}", response_model=CustomerResponse)
def update_customer(
    partition_key: str,
    row_key: str,
    payload: CustomerUpdatePayload,
    gateway: StorageGateway = Depends(get_gateway),
):
    existing = gateway.get_customer(partition_key, row_key)
    if existing is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    customer = CustomerProfile(
        partition_key=partition_key,
        row_key=row_key,
        date_created=existing.date_created,
        **payload.model_dump(),
    )
    if not gateway.update_customer(customer):
        raise _bad_gateway("Failed to update customer.")
    return customer


@router.delete("/customers/{partition_key}/{row_key}", response_model=StatusResponse)
def delete_customer(
    partition_key: str, row_key: str, gateway: StorageGateway = Depends(get_gateway)
):
    if not gateway.delete_customer(partition_key, row_key):
        raise _bad_gateway("Failed to delete customer.")
    return StatusResponse(status="ok")


# Products (table storage)


@router.get("/products", response_model=list[ProductResponse])
def list_products(gateway: StorageGateway = Depends(get_gateway)):
    return sorted(gateway.list_products(), key=lambda p: p.name)


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(
    payload: ProductPayload, gateway: StorageGateway = Depends(get_gateway)
):
    product = Product(**payload.model_dump())
    if not gateway.add_product(product):
        raise _bad_gateway("Failed to create product.")
    return product


@router.get("/products/{partition_key}/{row_key}", response_model=ProductResponse)
def get_product(
    partition_key: str, row_key: str, gateway: StorageGateway = Depends(get_gateway)
):
    product = gateway.get_product(partition_key, row_key)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.put("/products/{partition_key}/{row_key}", response_model=ProductResponse)
def update_product(
    partition_key: str,
    row_key: str,
    payload: ProductUpdatePayload,
    gateway: StorageGateway = Depends(get_gateway),
):
    existing = gateway.get_product(partition_key, row_key)
    if existing is None:
        raise HTTPException(status_code=404, detail="Product not found")
    product = Product(
        partition_key=partition_key,
        row_key=row_key,
        date_created=existing.date_created,
        **payload.model_dump(),
    )
    if not gateway.update_product(product):
        raise _bad_gateway("Failed to update product.")
    return product


@router.delete("/products/{partition_key}/{row_key}", response_model=StatusResponse)
def delete_product(
    partition_key: str, row_key: str, gateway: StorageGateway = Depends(get_gateway)
):
    if not gateway.delete_product(partition_key, row_key):
        raise _bad_gateway("Failed to delete product.")
    return StatusResponse(status="ok")


# Orders (table storage)


@router.get("/orders", response_model=list[OrderResponse])
def list_orders(gateway: StorageGateway = Depends(get_gateway)):
    orders = gateway.list_orders()
    return sorted(orders, key=lambda o: o.date_created, reverse=True)


@router.post("/orders", response_model=OrderResponse, status_code=201)
def create_order(
    payload: OrderCreatePayload, gateway: StorageGateway = Depends(get_gateway)
):
    errors = []
    if payload.quantity <= 0:
        errors.append("Quantity must be greater than zero")
    customer = gateway.get_customer(CUSTOMER_PARTITION, payload.customer_row_key)
    if customer is None:
        errors.append("Please select a valid customer")
    product = gateway.get_product(PRODUCT_PARTITION, payload.product_row_key)
    if product is None:
        errors.append("Please select a valid product")
    if errors:
        raise HTTPException(status_code=400, detail=errors)

    order = Order(
        customer_row_key=customer.row_key,
        product_row_key=product.row_key,
        quantity=payload.quantity,
        unit_price=product.price,
        notes=payload.notes,
        customer_name=customer.full_name,
        product_name=product.name,
    )
    if not gateway.add_order(order):
        raise _bad_gateway("Failed to create order.")
    return order


@router.get("/orders/{partition_key}/{row_key}", response_model=OrderResponse)
def get_order(
    partition_key: str, row_key: str, gateway: StorageGateway = Depends(get_gateway)
):
    order = gateway.get_order(partition_key, row_key)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.put("/orders/{partition_key}/{row_key}", response_model=OrderResponse)
def update_order(
    partition_key: str,
    row_key: str,
    payload: OrderUpdatePayload,
    gateway: StorageGateway = Depends(get_gateway),
):
    if payload.quantity <= 0:
        raise HTTPException(
            status_code=400, detail=["Quantity must be greater than zero"]
        )
    order = gateway.get_order(partition_key, row_key)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    order.quantity = payload.quantity
    order.notes = payload.notes
    order.status = payload.status
    # The condition uses the caller's tag, not the one just read.
    order.etag = payload.etag
    if not gateway.update_order(order):
        raise _bad_gateway("Failed to update order.")
    return order


@router.delete("/orders/{partition_key}/{row_key}", response_model=StatusResponse)
def delete_order(
    partition_key: str, row_key: str, gateway: StorageGateway = Depends(get_gateway)
):
    if partition_key != ORDER_PARTITION:
        raise HTTPException(status_code=404, detail="Order not found")
    if not gateway.delete_order(partition_key, row_key):
        raise _bad_gateway("Failed to delete order.")
    return StatusResponse(status="ok")


# Images (blob storage)


@router.get("/images", response_model=list[ImageInfo])
def list_images(gateway: StorageGateway = Depends(get_gateway)):
    return gateway.list_images()


@router.post("/images", response_model=ImageUploadResponse, status_code=201)
async def upload_image(
    file: UploadFile = File(...), gateway: StorageGateway = Depends(get_gateway)
):
    extension = _extension(file.filename)
    if extension not in IMAGE_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail="Only image files (jpg, jpeg, png, gif, bmp) are allowed.",
        )
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Please select a file to upload.")
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=400, detail="File size must be less than 5MB.")

    file_name = f"{uuid4()}{extension}"
    content_type = file.content_type or IMAGE_EXTENSIONS[extension]
    url = gateway.upload_image(data, file_name, content_type)
    if not url:
        raise _bad_gateway("Failed to upload image.")
    return ImageUploadResponse(file_name=file_name, url=url)


@router.get("/images/{file_name}/url", response_model=ImageUrlResponse)
def image_url(file_name: str, gateway: StorageGateway = Depends(get_gateway)):
    # Resolves the address only; existence is not checked.
    url = gateway.get_image_url(file_name)
    if not url:
        raise _bad_gateway("Failed to resolve image URL.")
    return ImageUrlResponse(file_name=file_name, url=url)


@router.get("/images/{file_name}")
def download_image(file_name: str, gateway: StorageGateway = Depends(get_gateway)):
    data = gateway.download_image(file_name)
    if not data:
        raise HTTPException(status_code=404, detail="Image not found")
    media_type = IMAGE_EXTENSIONS.get(_extension(file_name), "application/octet-stream")
    return Response(content=data, media_type=media_type)


@router.delete("/images/{file_name}", response_model=StatusResponse)
def delete_image(file_name: str, gateway: StorageGateway = Depends(get_gateway)):
    if not gateway.delete_image(file_name):
        raise _bad_gateway("Failed to delete image.")
    return StatusResponse(status="ok")


# Contracts (file share)


@router.get("/files", response_model=FileListResponse)
def list_files(gateway: StorageGateway = Depends(get_gateway)):
    return FileListResponse(files=gateway.list_files())


@router.post("/files", response_model=FileUploadResponse, status_code=201)
async def upload_contract(
    file: UploadFile = File(...), gateway: StorageGateway = Depends(get_gateway)
):
    extension = _extension(file.filename)
    if extension not in CONTRACT_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail="Only document files (pdf, doc, docx, txt, rtf) are allowed for contracts.",
        )
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Please select a file to upload.")
    if len(data) > MAX_CONTRACT_BYTES:
        raise HTTPException(status_code=400, detail="File size must be less than 10MB.")

    original = os.path.basename(file.filename)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    file_name = f"Contract_{stamp}_{original}"
    if not gateway.upload_file(data, file_name):
        raise _bad_gateway("Failed to upload contract file.")
    return FileUploadResponse(file_name=file_name, original_file_name=original)


@router.get("/files/{file_name}")
def download_contract(file_name: str, gateway: StorageGateway = Depends(get_gateway)):
    data = gateway.download_file(file_name)
    if not data:
        raise HTTPException(status_code=404, detail="File not found")
    media_type = CONTRACT_EXTENSIONS.get(_extension(file_name), "application/octet-stream")
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.delete("/files/{file_name}", response_model=StatusResponse)
def delete_contract(file_name: str, gateway: StorageGateway = Depends(get_gateway)):
    if not gateway.delete_file(file_name):
        raise _bad_gateway("Failed to delete contract file.")
    return StatusResponse(status="ok")


# Queue


@router.get("/queue/messages", response_model=MessagesResponse)
def peek_messages(
    max_messages: int = Query(20, ge=1, le=32),
    gateway: StorageGateway = Depends(get_gateway),
):
    return MessagesResponse(messages=gateway.peek_messages(max_messages))


@router.post("/queue/messages", response_model=StatusResponse, status_code=201)
def send_message(
    payload: SendMessageRequest, gateway: StorageGateway = Depends(get_gateway)
):
    if not payload.message.strip():
        raise HTTPException(status_code=400, detail="Please enter a message.")
    if not gateway.send_message(format_message(payload.message, payload.message_type)):
        raise _bad_gateway("Failed to send message.")
    return StatusResponse(status="ok")


@router.post("/queue/order-processing", response_model=StatusResponse, status_code=201)
def send_order_processing_message(
    payload: OrderProcessingMessageRequest,
    gateway: StorageGateway = Depends(get_gateway),
):
    if not payload.order_id.strip() or not payload.customer_name.strip():
        raise HTTPException(
            status_code=400, detail="Order ID and Customer Name are required."
        )
    message = (
        f"Processing order #{payload.order_id} for customer "
        f"'{payload.customer_name}' - Amount: ${payload.order_amount:.2f}"
    )
    if not gateway.send_message(format_message(message, "ORDER_PROCESSING")):
        raise _bad_gateway("Failed to send order processing message.")
    return StatusResponse(status="ok")


@router.post("/queue/inventory", response_model=StatusResponse, status_code=201)
def send_inventory_message(
    payload: InventoryMessageRequest, gateway: StorageGateway = Depends(get_gateway)
):
    if not payload.product_name.strip() or not payload.action.strip():
        raise HTTPException(
            status_code=400, detail="Product Name and Action are required."
        )
    message = (
        f"Inventory {payload.action}: {payload.quantity} units of "
        f"'{payload.product_name}'"
    )
    if not gateway.send_message(format_message(message, "INVENTORY_MANAGEMENT")):
        raise _bad_gateway("Failed to send inventory management message.")
    return StatusResponse(status="ok")


@router.post("/queue/receive", response_model=ReceiveMessageResponse)
def receive_message(gateway: StorageGateway = Depends(get_gateway)):
    return ReceiveMessageResponse(message=gateway.receive_message())


# Relational path


def _sql_order_response(order: sql.Order) -> SqlOrderResponse:
    response = SqlOrderResponse.model_validate(
        SqlOrderSummary.model_validate(order).model_dump()
    )
    if order.customer is not None:
        response.customer_name = f"{order.customer.first_name} {order.customer.last_name}"
    if order.product is not None:
        response.product_name = order.product.name
    return response


@router.get("/sql/customers", response_model=list[SqlCustomerResponse])
def sql_list_customers(service: SqlDataService = Depends(get_sql_service)):
    return service.list_customers()


@router.get("/sql/customers/by-email", response_model=SqlCustomerResponse)
def sql_customer_by_email(
    email: str = Query(..., min_length=3),
    service: SqlDataService = Depends(get_sql_service),
):
    customer = service.get_customer_by_email(email)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.post("/sql/customers", response_model=SqlCustomerResponse, status_code=201)
def sql_create_customer(
    payload: SqlCustomerPayload, service: SqlDataService = Depends(get_sql_service)
):
    try:
        return service.add_customer(sql.Customer(**payload.model_dump()))
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Email is already registered")


@router.get("/sql/customers/{customer_id}", response_model=SqlCustomerDetailResponse)
def sql_get_customer(
    customer_id: int, service: SqlDataService = Depends(get_sql_service)
):
    customer = service.get_customer_by_id(customer_id)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.get("/sql/customers/{customer_id}/orders", response_model=list[SqlOrderResponse])
def sql_customer_orders(
    customer_id: int, service: SqlDataService = Depends(get_sql_service)
):
    return [
        _sql_order_response(order)
        for order in service.get_orders_by_customer_id(customer_id)
    ]


@router.put("/sql/customers/{customer_id}", response_model=SqlCustomerResponse)
def sql_update_customer(
    customer_id: int,
    payload: SqlCustomerPayload,
    service: SqlDataService = Depends(get_sql_service),
):
    owner = service.get_customer_by_email(payload.email)
    if owner is not None and owner.customer_id != customer_id:
        raise HTTPException(status_code=409, detail="Email is already registered")
    updated = service.update_customer(
        sql.Customer(customer_id=customer_id, **payload.model_dump())
    )
    if updated is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return updated


@router.delete("/sql/customers/{customer_id}", response_model=StatusResponse)
def sql_delete_customer(
    customer_id: int, service: SqlDataService = Depends(get_sql_service)
):
    if service.delete_customer(customer_id):
        return StatusResponse(status="ok")
    if service.get_customer_by_id(customer_id) is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    raise HTTPException(status_code=409, detail="Customer has existing orders")


@router.get("/sql/products", response_model=list[SqlProductResponse])
def sql_list_products(
    category: str | None = Query(None),
    service: SqlDataService = Depends(get_sql_service),
):
    if category:
        return service.get_products_by_category(category)
    return service.list_products()


@router.post("/sql/products", response_model=SqlProductResponse, status_code=201)
def sql_create_product(
    payload: SqlProductPayload, service: SqlDataService = Depends(get_sql_service)
):
    return service.add_product(sql.Product(**payload.model_dump()))


@router.get("/sql/products/{product_id}", response_model=SqlProductDetailResponse)
def sql_get_product(product_id: int, service: SqlDataService = Depends(get_sql_service)):
    product = service.get_product_by_id(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("/sql/products/{product_id}/orders", response_model=list[SqlOrderResponse])
def sql_product_orders(
    product_id: int, service: SqlDataService = Depends(get_sql_service)
):
    return [
        _sql_order_response(order)
        for order in service.get_orders_by_product_id(product_id)
    ]


@router.put("/sql/products/{product_id}", response_model=SqlProductResponse)
def sql_update_product(
    product_id: int,
    payload: SqlProductPayload,
    service: SqlDataService = Depends(get_sql_service),
):
    updated = service.update_product(
        sql.Product(product_id=product_id, **payload.model_dump())
    )
    if updated is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return updated


@router.delete("/sql/products/{product_id}", response_model=StatusResponse)
def sql_delete_product(
    product_id: int, service: SqlDataService = Depends(get_sql_service)
):
    if service.delete_product(product_id):
        return StatusResponse(status="ok")
    if service.get_product_by_id(product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found")
    raise HTTPException(status_code=409, detail="Product has existing orders")


@router.get("/sql/orders", response_model=list[SqlOrderResponse])
def sql_list_orders(service: SqlDataService = Depends(get_sql_service)):
    return [_sql_order_response(order) for order in service.list_orders()]


@router.post("/sql/orders", response_model=SqlOrderResponse, status_code=201)
def sql_create_order(
    payload: SqlOrderPayload, service: SqlDataService = Depends(get_sql_service)
):
    errors = []
    if payload.quantity <= 0:
        errors.append("Quantity must be greater than zero")
    if service.get_customer_by_id(payload.customer_id) is None:
        errors.append("Please select a valid customer")
    product = service.get_product_by_id(payload.product_id)
    if product is None:
        errors.append("Please select a valid product")
    if errors:
        raise HTTPException(status_code=400, detail=errors)

    order = sql.Order(
        customer_id=payload.customer_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
        unit_price=payload.unit_price if payload.unit_price is not None else product.price,
        notes=payload.notes,
    )
    return _sql_order_response(service.add_order(order))


@router.get("/sql/orders/{order_id}", response_model=SqlOrderResponse)
def sql_get_order(order_id: int, service: SqlDataService = Depends(get_sql_service)):
    order = service.get_order_by_id(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return _sql_order_response(order)


@router.put("/sql/orders/{order_id}", response_model=SqlOrderResponse)
def sql_update_order(
    order_id: int,
    payload: SqlOrderUpdatePayload,
    service: SqlDataService = Depends(get_sql_service),
):
    updated = service.update_order(sql.Order(order_id=order_id, **payload.model_dump()))
    if updated is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return _sql_order_response(updated)


@router.delete("/sql/orders/{order_id}", response_model=StatusResponse)
def sql_delete_order(order_id: int, service: SqlDataService = Depends(get_sql_service)):
    if not service.delete_order(order_id):
        raise HTTPException(status_code=404, detail="Order not found")
    return StatusResponse(status="ok")


@router.get("/sql/reports/summary", response_model=ReportSummaryResponse)
def sql_report_summary(service: SqlDataService = Depends(get_sql_service)):
    return ReportSummaryResponse(
        total_revenue=service.get_total_revenue(),
        total_orders=service.get_total_orders_count(),
    )


@router.get("/sql/reports/low-stock", response_model=LowStockResponse)
def sql_low_stock(
    threshold: int = Query(DEFAULT_LOW_STOCK_THRESHOLD, ge=0),
    service: SqlDataService = Depends(get_sql_service),
):
    return LowStockResponse(
        threshold=threshold,
        products=[
            SqlProductResponse.model_validate(product)
            for product in service.get_low_stock_products(threshold)
        ],
    )
