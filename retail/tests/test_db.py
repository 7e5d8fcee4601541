import unittest
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.dialects import mssql
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.schema import CreateTable

from retail.db import Customer, Order, Product, SqlDataService


class SqlDataServiceTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the relational service.
    """

    def setUp(self):
        self.db = SqlDataService("sqlite+pysqlite:///:memory:", seed=True)

    def _jane(self) -> Customer:
        return self.db.get_customer_by_email("jane.smith@example.com")

    def _laptop(self) -> Product:
        return self.db.get_products_by_category("Electronics")[0]

    def test_seed_inserts_once(self):
        customers = self.db.list_customers()
        self.assertEqual([c.last_name for c in customers], ["Doe", "Smith"])
        self.assertEqual(len(self.db.list_products()), 2)
        self.assertFalse(self.db.seed())
        self.assertEqual(len(self.db.list_customers()), 2)

    def test_add_order_computes_total(self):
        jane, laptop = self._jane(), self._laptop()
        self.assertEqual(laptop.price, Decimal("15999.99"))

        order = self.db.add_order(
            Order(
                customer_id=jane.customer_id,
                product_id=laptop.product_id,
                quantity=2,
                unit_price=laptop.price,
                total_amount=Decimal("1.00"),
            )
        )
        self.assertEqual(order.total_amount, Decimal("31999.98"))
        self.assertEqual(order.status, "New")
        self.assertEqual(order.customer.first_name, "Jane")
        self.assertEqual(order.product.name, "Laptop")

        by_customer = self.db.get_orders_by_customer_id(jane.customer_id)
        self.assertEqual([o.order_id for o in by_customer], [order.order_id])
        self.assertEqual(self.db.get_total_orders_count(), 1)

    def test_update_order_recomputes_total(self):
        jane, laptop = self._jane(), self._laptop()
        order = self.db.add_order(
            Order(
                customer_id=jane.customer_id,
                product_id=laptop.product_id,
                quantity=1,
                unit_price=laptop.price,
            )
        )
        updated = self.db.update_order(
            Order(
                order_id=order.order_id,
                quantity=3,
                unit_price=Decimal("10.00"),
                status="Completed",
            )
        )
        self.assertEqual(updated.total_amount, Decimal("30.00"))
        self.assertEqual(updated.status, "Completed")
        self.assertIsNotNone(updated.last_modified)
        self.assertIsNone(self.db.update_order(Order(order_id=999, quantity=1, unit_price=1)))

    def test_revenue_counts_completed_orders_only(self):
        jane, laptop = self._jane(), self._laptop()
        first = self.db.add_order(
            Order(customer_id=jane.customer_id, product_id=laptop.product_id, quantity=1, unit_price=Decimal("100.00"))
        )
        self.db.add_order(
            Order(customer_id=jane.customer_id, product_id=laptop.product_id, quantity=1, unit_price=Decimal("50.00"))
        )
        self.assertEqual(self.db.get_total_revenue(), Decimal("0.00"))

        self.db.update_order(
            Order(order_id=first.order_id, quantity=1, unit_price=Decimal("100.00"), status="Completed")
        )
        self.assertEqual(self.db.get_total_revenue(), Decimal("100.00"))

    def test_delete_is_restricted_while_orders_exist(self):
        jane, laptop = self._jane(), self._laptop()
        order = self.db.add_order(
            Order(customer_id=jane.customer_id, product_id=laptop.product_id, quantity=1, unit_price=laptop.price)
        )
        self.assertFalse(self.db.delete_customer(jane.customer_id))
        self.assertFalse(self.db.delete_product(laptop.product_id))
        self.assertIsNotNone(self.db.get_customer_by_id(jane.customer_id))

        self.assertTrue(self.db.delete_order(order.order_id))
        self.assertTrue(self.db.delete_customer(jane.customer_id))
        self.assertIsNone(self.db.get_customer_by_id(jane.customer_id))

    def test_delete_product_without_orders(self):
        chair = self.db.get_products_by_category("Furniture")[0]
        self.assertTrue(self.db.delete_product(chair.product_id))
        self.assertIsNone(self.db.get_product_by_id(chair.product_id))
        self.assertEqual([p.name for p in self.db.list_products()], ["Laptop"])

    def test_delete_missing_returns_false(self):
        self.assertFalse(self.db.delete_order(12345))

    def test_duplicate_email_raises(self):
        with self.assertRaises(IntegrityError):
            self.db.add_customer(
                Customer(
                    first_name="Other",
                    last_name="Jane",
                    email="jane.smith@example.com",
                    address="1 Street",
                )
            )

    def test_update_customer_copies_allowed_fields(self):
        jane = self._jane()
        updated = self.db.update_customer(
            Customer(
                customer_id=jane.customer_id,
                first_name="Janet",
                last_name="Smith",
                email="janet@example.com",
                phone=None,
                address="1 New Road",
            )
        )
        self.assertEqual(updated.first_name, "Janet")
        self.assertEqual(updated.date_created, jane.date_created)
        self.assertIsNone(self.db.update_customer(Customer(customer_id=999)))


class LowStockTests(unittest.TestCase):
    def test_low_stock_is_inclusive_and_ascending(self):
        db = SqlDataService("sqlite+pysqlite:///:memory:")
        for name, stock in (("Eleven", 11), ("Ten", 10), ("Five", 5)):
            db.add_product(
                Product(
                    name=name,
                    description="d",
                    price=Decimal("1.00"),
                    category="Misc",
                    stock_quantity=stock,
                )
            )
        low = db.get_low_stock_products(10)
        self.assertEqual([p.name for p in low], ["Five", "Ten"])
        self.assertEqual(db.get_low_stock_products(4), [])


class SchemaTests(unittest.TestCase):
    def test_order_foreign_keys_compile_for_sql_server(self):
        ddl = str(CreateTable(Order.__table__).compile(dialect=mssql.dialect()))
        self.assertIn("REFERENCES [Customers] ([CustomerId])", ddl)
        self.assertIn("REFERENCES [Products] ([ProductId])", ddl)
        self.assertNotIn("RESTRICT", ddl)


class RetryTests(unittest.TestCase):
    @patch("retail.db.time.sleep")
    def test_transient_errors_are_retried(self, mock_sleep):
        db = SqlDataService(
            "sqlite+pysqlite:///:memory:", max_retries=2, retry_base_delay=0.1
        )
        calls = []

        def flaky(session):
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("SELECT 1", {}, Exception("connection reset"))
            return "ok"

        self.assertEqual(db._run(flaky), "ok")
        self.assertEqual(len(calls), 3)
        self.assertEqual([c.args[0] for c in mock_sleep.call_args_list], [0.1, 0.2])

    @patch("retail.db.time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep):
        db = SqlDataService("sqlite+pysqlite:///:memory:", max_retries=1)

        def always_fails(session):
            raise OperationalError("SELECT 1", {}, Exception("down"))

        with self.assertRaises(OperationalError):
            db._run(always_fails)
        self.assertEqual(mock_sleep.call_count, 1)


if __name__ == "__main__":
    unittest.main()
