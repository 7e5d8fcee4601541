import unittest

from azure.core.exceptions import (
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)

from retail.entities import CustomerProfile, Order
from retail.tables import InMemoryTableStore


class InMemoryTableStoreTests(unittest.TestCase):
    def setUp(self):
        self.table = InMemoryTableStore(name="Customers")

    def _entity(self, row_key="c1", **overrides):
        values = {
            "PartitionKey": "Customer",
            "RowKey": row_key,
            "FirstName": "Jane",
            "LastName": "Smith",
        }
        values.update(overrides)
        return values

    def test_create_assigns_etag_and_rejects_duplicates(self):
        row = self.table.create(self._entity())
        self.assertTrue(row.etag)
        self.assertIsNotNone(row.timestamp)
        with self.assertRaises(ResourceExistsError):
            self.table.create(self._entity())

    def test_get_missing_row_raises_not_found(self):
        with self.assertRaises(ResourceNotFoundError):
            self.table.get("Customer", "nope")

    def test_replace_requires_current_etag(self):
        created = self.table.create(self._entity())
        updated = self.table.replace(self._entity(FirstName="Janet"), created.etag)
        self.assertNotEqual(updated.etag, created.etag)

        with self.assertRaises(ResourceModifiedError):
            self.table.replace(self._entity(FirstName="Stale"), created.etag)
        self.assertEqual(self.table.get("Customer", "c1").properties["FirstName"], "Janet")

    def test_returned_rows_are_copies(self):
        self.table.create(self._entity())
        row = self.table.get("Customer", "c1")
        row.properties["FirstName"] = "Changed"
        self.assertEqual(self.table.get("Customer", "c1").properties["FirstName"], "Jane")

    def test_delete_missing_row_is_noop(self):
        self.table.delete("Customer", "missing")
        self.assertEqual(list(self.table.list()), [])


class EntityMappingTests(unittest.TestCase):
    def test_customer_round_trips_pascal_case_properties(self):
        customer = CustomerProfile(
            row_key="abc", first_name="John", last_name="Doe", email="john@example.com"
        )
        entity = customer.to_entity()
        self.assertEqual(entity["PartitionKey"], "Customer")
        self.assertEqual(entity["FirstName"], "John")
        self.assertIn("DateCreated", entity)

        restored = CustomerProfile.from_entity(entity, etag="e1")
        self.assertEqual(restored.full_name, "John Doe")
        self.assertEqual(restored.etag, "e1")

    def test_order_defaults_and_total(self):
        order = Order(quantity=3, unit_price=2499.99)
        self.assertEqual(order.partition_key, "Order")
        self.assertEqual(order.status, "New")
        self.assertAlmostEqual(order.recompute_total(), 7499.97, places=2)


if __name__ == "__main__":
    unittest.main()
