import io
import unittest
from unittest.mock import MagicMock

from retail.entities import CustomerProfile, Order, Product
from retail.gateway import EMPTY_STREAM, StorageGateway
from retail.queue import InMemoryMessageQueue
from retail.storage import InMemoryBlobStore, InMemoryFileShare
from retail.tables import InMemoryTableStore


def make_gateway(**overrides) -> StorageGateway:
    backends = {
        "customers": InMemoryTableStore(name="Customers"),
        "products": InMemoryTableStore(name="Products"),
        "orders": InMemoryTableStore(name="Orders"),
        "images": InMemoryBlobStore(),
        "queue": InMemoryMessageQueue(),
        "files": InMemoryFileShare(),
    }
    backends.update(overrides)
    return StorageGateway(**backends)


class GatewayRowTests(unittest.TestCase):
    def setUp(self):
        self.gateway = make_gateway()
        self.assertTrue(self.gateway.initialize())

    def test_add_assigns_unique_row_keys(self):
        first = CustomerProfile(first_name="John", last_name="Doe")
        second = CustomerProfile(first_name="John", last_name="Doe")
        self.assertTrue(self.gateway.add_customer(first))
        self.assertTrue(self.gateway.add_customer(second))
        self.assertNotEqual(first.row_key, second.row_key)
        self.assertEqual(first.partition_key, "Customer")
        self.assertEqual(len(self.gateway.list_customers()), 2)

    def test_order_creation_scenario(self):
        customer = CustomerProfile(first_name="Jane", last_name="Smith")
        product = Product(name="Laptop", price=15999.99, stock_quantity=50)
        self.gateway.add_customer(customer)
        self.gateway.add_product(product)
        self.gateway.queue.reset()

        order = Order(
            customer_row_key=customer.row_key,
            product_row_key=product.row_key,
            quantity=2,
            unit_price=product.price,
            # A wrong caller-supplied total is replaced.
            total_amount=1.0,
            customer_name=customer.full_name,
            product_name=product.name,
        )
        self.assertTrue(self.gateway.add_order(order))

        stored = self.gateway.get_order("Order", order.row_key)
        self.assertAlmostEqual(stored.total_amount, 31999.98, places=2)
        self.assertEqual(stored.status, "New")

        messages = self.gateway.peek_messages()
        self.assertEqual(len(messages), 1)
        self.assertTrue(messages[0].startswith("[ORDER_CREATED]"))
        self.assertIn("Jane Smith", messages[0])
        self.assertIn("31999.98", messages[0])

    def test_update_with_stale_etag_fails_and_keeps_row(self):
        product = Product(name="Office Chair", price=2499.99, stock_quantity=100)
        self.gateway.add_product(product)
        stale_etag = product.etag

        product.stock_quantity = 90
        self.assertTrue(self.gateway.update_product(product))

        stale = Product(
            row_key=product.row_key,
            name="Office Chair",
            price=1.0,
            stock_quantity=1,
            etag=stale_etag,
        )
        self.assertFalse(self.gateway.update_product(stale))
        current = self.gateway.get_product("Product", product.row_key)
        self.assertEqual(current.stock_quantity, 90)
        self.assertAlmostEqual(current.price, 2499.99)

        current.price = 2299.99
        self.assertTrue(self.gateway.update_product(current))

    def test_update_without_etag_is_refused(self):
        customer = CustomerProfile(first_name="John", last_name="Doe")
        self.gateway.add_customer(customer)
        customer.etag = None
        self.assertFalse(self.gateway.update_customer(customer))

    def test_update_order_recomputes_total(self):
        order = Order(quantity=1, unit_price=10.0)
        self.gateway.add_order(order)
        order.quantity = 4
        order.status = "Processing"
        self.assertTrue(self.gateway.update_order(order))
        stored = self.gateway.get_order("Order", order.row_key)
        self.assertAlmostEqual(stored.total_amount, 40.0)
        self.assertEqual(stored.status, "Processing")

    def test_missing_row_reads_return_none(self):
        self.assertIsNone(self.gateway.get_customer("Customer", "missing"))

    def test_delete_notifies(self):
        customer = CustomerProfile(first_name="John", last_name="Doe")
        self.gateway.add_customer(customer)
        self.assertTrue(self.gateway.delete_customer("Customer", customer.row_key))
        self.assertIsNone(self.gateway.get_customer("Customer", customer.row_key))
        self.assertTrue(self.gateway.peek_messages()[-1].startswith("[CUSTOMER_DELETED]"))

    def test_backend_errors_become_falsy_results(self):
        broken = MagicMock()
        broken.list.side_effect = RuntimeError("down")
        broken.create.side_effect = RuntimeError("down")
        gateway = make_gateway(customers=broken)
        self.assertEqual(gateway.list_customers(), [])
        self.assertFalse(gateway.add_customer(CustomerProfile(first_name="A")))

    def test_failed_notification_keeps_mutation_result(self):
        queue = MagicMock()
        queue.send.side_effect = RuntimeError("queue down")
        gateway = make_gateway(queue=queue)
        self.assertTrue(gateway.add_product(Product(name="Desk", price=10.0)))
        self.assertEqual(len(gateway.list_products()), 1)


class GatewayBinaryTests(unittest.TestCase):
    def setUp(self):
        self.gateway = make_gateway()

    def test_image_upload_download_and_delete(self):
        url = self.gateway.upload_image(io.BytesIO(b"png-bytes"), "a b.png", "image/png")
        self.assertTrue(url.endswith("/product-images/a%20b.png"))
        self.assertEqual(self.gateway.download_image("a b.png"), b"png-bytes")
        self.assertEqual(self.gateway.list_images()[0].content_type, "image/png")

        self.assertTrue(self.gateway.delete_image("a b.png"))
        self.assertEqual(self.gateway.download_image("a b.png"), EMPTY_STREAM)

    def test_image_upload_overwrites_same_name(self):
        self.gateway.upload_image(b"first", "logo.png", "image/png")
        self.gateway.upload_image(b"second", "logo.png", "image/png")
        self.assertEqual(self.gateway.download_image("logo.png"), b"second")
        self.assertEqual([i.name for i in self.gateway.list_images()], ["logo.png"])

    def test_missing_downloads_return_empty_stream(self):
        self.assertEqual(self.gateway.download_image("missing.png"), EMPTY_STREAM)
        self.assertEqual(self.gateway.download_file("missing.pdf"), EMPTY_STREAM)

    def test_contract_files(self):
        self.assertTrue(self.gateway.upload_file(b"%PDF", "Contract_b.pdf"))
        self.assertTrue(self.gateway.upload_file(b"text", "Contract_a.txt"))
        self.assertEqual(
            self.gateway.list_files(), ["Contract_a.txt", "Contract_b.pdf"]
        )
        self.assertEqual(self.gateway.download_file("Contract_b.pdf"), b"%PDF")
        self.assertTrue(self.gateway.delete_file("Contract_b.pdf"))
        self.assertEqual(self.gateway.list_files(), ["Contract_a.txt"])
        self.assertIn("[CONTRACT_DELETED] Contract_b.pdf", self.gateway.peek_messages())

    def test_receive_message_returns_none_when_empty(self):
        self.assertIsNone(self.gateway.receive_message())


if __name__ == "__main__":
    unittest.main()
