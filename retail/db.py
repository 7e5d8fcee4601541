"""
Relational data service for customers, products and orders.

Accepts any SQLAlchemy URL (SQL Server, Postgres, or SQLite for tests). Each
public call is one unit of work: a fresh session, at most one commit.
Parents cannot be deleted while orders reference them.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, TypeVar

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import (
    Session,
    declarative_base,
    relationship,
    selectinload,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool

from retail.entities import ORDER_STATUS_COMPLETED, ORDER_STATUS_NEW

logger = logging.getLogger(__name__)

T = TypeVar("T")

CENTS = Decimal("0.01")
DEFAULT_LOW_STOCK_THRESHOLD = 10

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_money(value) -> Decimal:
    if isinstance(value, Decimal):
        return value.quantize(CENTS)
    return Decimal(str(value)).quantize(CENTS)


class Customer(Base):
    __tablename__ = "Customers"

    customer_id = Column("CustomerId", Integer, primary_key=True, autoincrement=True)
    first_name = Column("FirstName", String(50), nullable=False)
    last_name = Column("LastName", String(50), nullable=False)
    email = Column("Email", String(100), nullable=False, unique=True)
    phone = Column("Phone", String(20), nullable=True)
    address = Column("Address", String(200), nullable=False)
    date_created = Column("DateCreated", DateTime(timezone=True), nullable=False, default=_utcnow)
    last_modified = Column("LastModified", DateTime(timezone=True), nullable=True)

    # The database rejects deleting a customer that still has orders.
    orders = relationship("Order", back_populates="customer", passive_deletes="all")

    def __repr__(self):
        return f"<Customer(id={self.customer_id}, email='{self.email}')>"


class Product(Base):
    __tablename__ = "Products"

    product_id = Column("ProductId", Integer, primary_key=True, autoincrement=True)
    name = Column("Name", String(100), nullable=False)
    description = Column("Description", String(500), nullable=False)
    price = Column("Price", Numeric(18, 2), nullable=False)
    category = Column("Category", String(100), nullable=False)
    stock_quantity = Column("StockQuantity", Integer, nullable=False)
    image_url = Column("ImageUrl", String(500), nullable=True)
    date_created = Column("DateCreated", DateTime(timezone=True), nullable=False, default=_utcnow)
    last_modified = Column("LastModified", DateTime(timezone=True), nullable=True)

    orders = relationship("Order", back_populates="product", passive_deletes="all")

    def __repr__(self):
        return f"<Product(id={self.product_id}, name='{self.name}', stock={self.stock_quantity})>"


class Order(Base):
    __tablename__ = "Orders"

    order_id = Column("OrderId", Integer, primary_key=True, autoincrement=True)
    customer_id = Column(
        "CustomerId",
        Integer,
        ForeignKey("Customers.CustomerId", ondelete="NO ACTION"),
        nullable=False,
        index=True,
    )
    product_id = Column(
        "ProductId",
        Integer,
        ForeignKey("Products.ProductId", ondelete="NO ACTION"),
        nullable=False,
        index=True,
    )
    quantity = Column("Quantity", Integer, nullable=False)
    unit_price = Column("UnitPrice", Numeric(18, 2), nullable=False)
    total_amount = Column("TotalAmount", Numeric(18, 2), nullable=False)
    notes = Column("Notes", String(1000), nullable=True)
    status = Column(
        "Status",
        String(30),
        nullable=False,
        default=ORDER_STATUS_NEW,
        server_default=ORDER_STATUS_NEW,
    )
    date_created = Column(
        "DateCreated", DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )
    last_modified = Column("LastModified", DateTime(timezone=True), nullable=True)

    customer = relationship("Customer", back_populates="orders")
    product = relationship("Product", back_populates="orders")

    def recompute_total(self) -> Decimal:
        self.total_amount = (to_money(self.unit_price) * int(self.quantity)).quantize(CENTS)
        return self.total_amount

    def __repr__(self):
        return f"<Order(id={self.order_id}, status='{self.status}', total={self.total_amount})>"


def seed_rows() -> list:
    """Initial customers and products inserted into an empty database."""
    now = _utcnow()
    return [
        Customer(
            first_name="John",
            last_name="Doe",
            email="john.doe@example.com",
            phone="0821234567",
            address="123 Main St, Johannesburg, 2000",
            date_created=now,
        ),
        Customer(
            first_name="Jane",
            last_name="Smith",
            email="jane.smith@example.com",
            phone="0827654321",
            address="456 Oak Ave, Cape Town, 8001",
            date_created=now,
        ),
        Product(
            name="Laptop",
            description="High-performance laptop for professionals",
            price=Decimal("15999.99"),
            category="Electronics",
            stock_quantity=50,
            date_created=now,
        ),
        Product(
            name="Office Chair",
            description="Ergonomic office chair with lumbar support",
            price=Decimal("2499.99"),
            category="Furniture",
            stock_quantity=100,
            date_created=now,
        ),
    ]


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores REFERENCES clauses unless enabled per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/").endswith(":"):
            # One shared connection so every session sees the same database.
            options["poolclass"] = StaticPool
        engine = create_engine(database_url, future=True, **options)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


class SqlDataService:
    """
    SQLAlchemy-backed CRUD and reporting over Customers, Products and Orders.

    Reads, updates and deletes log failures and return ``None``, ``False`` or
    an empty list. Creates log and re-raise. Transient connection errors are
    retried with exponential backoff before any of that applies.
    """

    def __init__(
        self,
        database_url: str,
        *,
        max_retries: int = 5,
        max_retry_delay: float = 30.0,
        retry_base_delay: float = 0.5,
        seed: bool = False,
    ):
        if not database_url:
            raise ValueError("A database URL is required for SqlDataService")
        self.max_retries = max_retries
        self.max_retry_delay = max_retry_delay
        self.retry_base_delay = retry_base_delay
        self.engine = build_engine(database_url)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)
        if seed:
            self.seed()

    def _run(self, work: Callable[[Session], T]) -> T:
        attempt = 0
        while True:
            try:
                with self.Session() as session:
                    return work(session)
            except OperationalError as exc:
                if attempt >= self.max_retries:
                    raise
                delay = min(self.retry_base_delay * (2 ** attempt), self.max_retry_delay)
                attempt += 1
                logger.warning(
                    "Transient database error (attempt %d/%d), retrying in %.1fs: %s",
                    attempt,
                    self.max_retries,
                    delay,
                    exc,
                )
                time.sleep(delay)

    def seed(self) -> bool:
        """Insert the initial rows when both parent tables are empty."""

        def work(session: Session) -> bool:
            has_customers = session.execute(select(func.count(Customer.customer_id))).scalar_one()
            has_products = session.execute(select(func.count(Product.product_id))).scalar_one()
            if has_customers or has_products:
                return False
            session.add_all(seed_rows())
            session.commit()
            return True

        seeded = self._run(work)
        if seeded:
            logger.info("Seeded initial customers and products")
        return seeded

    # Customers

    def list_customers(self) -> list[Customer]:
        try:
            return self._run(
                lambda session: list(
                    session.execute(
                        select(Customer).order_by(Customer.last_name, Customer.first_name)
                    ).scalars()
                )
            )
        except Exception:
            logger.exception("Error retrieving all customers")
            return []

    def get_customer_by_id(self, customer_id: int) -> Optional[Customer]:
        try:
            return self._run(
                lambda session: session.execute(
                    select(Customer)
                    .options(selectinload(Customer.orders))
                    .where(Customer.customer_id == customer_id)
                ).scalar_one_or_none()
            )
        except Exception:
            logger.exception("Error retrieving customer with ID %s", customer_id)
            return None

    def get_customer_by_email(self, email: str) -> Optional[Customer]:
        try:
            return self._run(
                lambda session: session.execute(
                    select(Customer).where(Customer.email == email)
                ).scalar_one_or_none()
            )
        except Exception:
            logger.exception("Error retrieving customer with email %s", email)
            return None

    def add_customer(self, customer: Customer) -> Customer:
        def work(session: Session) -> Customer:
            customer.date_created = _utcnow()
            session.add(customer)
            session.commit()
            return customer

        try:
            created = self._run(work)
        except Exception:
            logger.exception("Error adding customer")
            raise
        logger.info("Customer %s created successfully", created.customer_id)
        return created

    def update_customer(self, customer: Customer) -> Optional[Customer]:
        def work(session: Session) -> Optional[Customer]:
            existing = session.get(Customer, customer.customer_id)
            if existing is None:
                return None
            existing.first_name = customer.first_name
            existing.last_name = customer.last_name
            existing.email = customer.email
            existing.phone = customer.phone
            existing.address = customer.address
            existing.last_modified = _utcnow()
            session.commit()
            return existing

        try:
            updated = self._run(work)
        except Exception:
            logger.exception("Error updating customer %s", customer.customer_id)
            return None
        if updated is not None:
            logger.info("Customer %s updated successfully", customer.customer_id)
        return updated

    def delete_customer(self, customer_id: int) -> bool:
        return self._delete(Customer, customer_id)

    # Products

    def list_products(self) -> list[Product]:
        try:
            return self._run(
                lambda session: list(
                    session.execute(select(Product).order_by(Product.name)).scalars()
                )
            )
        except Exception:
            logger.exception("Error retrieving all products")
            return []

    def get_product_by_id(self, product_id: int) -> Optional[Product]:
        try:
            return self._run(
                lambda session: session.execute(
                    select(Product)
                    .options(selectinload(Product.orders))
                    .where(Product.product_id == product_id)
                ).scalar_one_or_none()
            )
        except Exception:
            logger.exception("Error retrieving product with ID %s", product_id)
            return None

    def get_products_by_category(self, category: str) -> list[Product]:
        try:
            return self._run(
                lambda session: list(
                    session.execute(
                        select(Product)
                        .where(Product.category == category)
                        .order_by(Product.name)
                    ).scalars()
                )
            )
        except Exception:
            logger.exception("Error retrieving products for category %s", category)
            return []

    def add_product(self, product: Product) -> Product:
        def work(session: Session) -> Product:
            product.date_created = _utcnow()
            product.price = to_money(product.price)
            session.add(product)
            session.commit()
            return product

        try:
            created = self._run(work)
        except Exception:
            logger.exception("Error adding product")
            raise
        logger.info("Product %s created successfully", created.product_id)
        return created

    def update_product(self, product: Product) -> Optional[Product]:
        def work(session: Session) -> Optional[Product]:
            existing = session.get(Product, product.product_id)
            if existing is None:
                return None
            existing.name = product.name
            existing.description = product.description
            existing.price = to_money(product.price)
            existing.category = product.category
            existing.stock_quantity = product.stock_quantity
            existing.image_url = product.image_url
            existing.last_modified = _utcnow()
            session.commit()
            return existing

        try:
            updated = self._run(work)
        except Exception:
            logger.exception("Error updating product %s", product.product_id)
            return None
        if updated is not None:
            logger.info("Product %s updated successfully", product.product_id)
        return updated

    def delete_product(self, product_id: int) -> bool:
        return self._delete(Product, product_id)

    # Orders

    @staticmethod
    def _order_graph(session: Session, order_id: int) -> Optional[Order]:
        return session.execute(
            select(Order)
            .options(selectinload(Order.customer), selectinload(Order.product))
            .where(Order.order_id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_orders(self) -> list[Order]:
        try:
            return self._run(
                lambda session: list(
                    session.execute(
                        select(Order)
                        .options(selectinload(Order.customer), selectinload(Order.product))
                        .order_by(Order.date_created.desc(), Order.order_id.desc())
                    ).scalars()
                )
            )
        except Exception:
            logger.exception("Error retrieving all orders")
            return []

    def get_order_by_id(self, order_id: int) -> Optional[Order]:
        try:
            return self._run(lambda session: self._order_graph(session, order_id))
        except Exception:
            logger.exception("Error retrieving order with ID %s", order_id)
            return None

    def get_orders_by_customer_id(self, customer_id: int) -> list[Order]:
        try:
            return self._run(
                lambda session: list(
                    session.execute(
                        select(Order)
                        .options(selectinload(Order.customer), selectinload(Order.product))
                        .where(Order.customer_id == customer_id)
                        .order_by(Order.date_created.desc(), Order.order_id.desc())
                    ).scalars()
                )
            )
        except Exception:
            logger.exception("Error retrieving orders for customer %s", customer_id)
            return []

    def get_orders_by_product_id(self, product_id: int) -> list[Order]:
        try:
            return self._run(
                lambda session: list(
                    session.execute(
                        select(Order)
                        .options(selectinload(Order.customer), selectinload(Order.product))
                        .where(Order.product_id == product_id)
                        .order_by(Order.date_created.desc(), Order.order_id.desc())
                    ).scalars()
                )
            )
        except Exception:
            logger.exception("Error retrieving orders for product %s", product_id)
            return []

    def add_order(self, order: Order) -> Order:
        def work(session: Session) -> Order:
            order.date_created = _utcnow()
            if not order.status:
                order.status = ORDER_STATUS_NEW
            order.recompute_total()
            session.add(order)
            session.commit()
            return self._order_graph(session, order.order_id)

        try:
            created = self._run(work)
        except Exception:
            logger.exception("Error adding order")
            raise
        logger.info("Order %s created successfully", created.order_id)
        return created

    def update_order(self, order: Order) -> Optional[Order]:
        def work(session: Session) -> Optional[Order]:
            existing = session.get(Order, order.order_id)
            if existing is None:
                return None
            existing.quantity = order.quantity
            existing.unit_price = to_money(order.unit_price)
            existing.recompute_total()
            existing.notes = order.notes
            existing.status = order.status
            existing.last_modified = _utcnow()
            session.commit()
            return self._order_graph(session, existing.order_id)

        try:
            updated = self._run(work)
        except Exception:
            logger.exception("Error updating order %s", order.order_id)
            return None
        if updated is not None:
            logger.info("Order %s updated successfully", order.order_id)
        return updated

    def delete_order(self, order_id: int) -> bool:
        return self._delete(Order, order_id)

    def _delete(self, model, ident: int) -> bool:
        name = model.__name__

        def work(session: Session) -> bool:
            row = session.get(model, ident)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

        try:
            deleted = self._run(work)
        except Exception:
            # Includes foreign-key violations for parents that still have orders.
            logger.exception("Error deleting %s %s", name, ident)
            return False
        if deleted:
            logger.info("%s %s deleted successfully", name, ident)
        return deleted

    # Reporting

    def get_total_revenue(self) -> Decimal:
        try:
            total = self._run(
                lambda session: session.execute(
                    select(func.coalesce(func.sum(Order.total_amount), 0)).where(
                        Order.status == ORDER_STATUS_COMPLETED
                    )
                ).scalar_one()
            )
        except Exception:
            logger.exception("Error calculating total revenue")
            return Decimal("0.00")
        return to_money(total or 0)

    def get_total_orders_count(self) -> int:
        try:
            return self._run(
                lambda session: session.execute(
                    select(func.count(Order.order_id))
                ).scalar_one()
            )
        except Exception:
            logger.exception("Error counting orders")
            return 0

    def get_low_stock_products(
        self, threshold: int = DEFAULT_LOW_STOCK_THRESHOLD
    ) -> list[Product]:
        try:
            return self._run(
                lambda session: list(
                    session.execute(
                        select(Product)
                        .where(Product.stock_quantity <= threshold)
                        .order_by(Product.stock_quantity.asc(), Product.product_id.asc())
                    ).scalars()
                )
            )
        except Exception:
            logger.exception("Error retrieving low stock products")
            return []
