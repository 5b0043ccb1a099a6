import unittest

from trashtag.ledger import apply_points
from trashtag.store import DocumentNotFoundError, InMemoryDocumentStore


class InterleavingStore(InMemoryDocumentStore):
    """Runs a pending action right after the next read, before it returns."""

    def __init__(self):
        super().__init__()
        self.pending = None

    def get(self, collection, doc_id):
        data = super().get(collection, doc_id)
        if self.pending is not None:
            action, self.pending = self.pending, None
            action()
        return data


class ApplyPointsTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.store.set("users", "u1", {"name": "Ana", "points": 12})

    def test_user_points(self):
        result = apply_points(self.store, "u1", None, 8)
        self.assertEqual(result.user_points, 20)
        self.assertIsNone(result.organization_total_points)
        self.assertEqual(self.store.get("users", "u1"), {"name": "Ana", "points": 20})

    def test_missing_points_field_counts_as_zero(self):
        self.store.set("users", "u2", {"name": "New"})
        self.assertEqual(apply_points(self.store, "u2", None, 5).user_points, 5)

    def test_organization_total(self):
        self.store.set("organizations", "org_u1", {"name": "O", "totalPoints": 5})
        result = apply_points(self.store, "u1", "org_u1", 20)
        self.assertEqual(result.organization_total_points, 25)
        self.assertEqual(self.store.get("organizations", "org_u1")["totalPoints"], 25)
        self.assertEqual(self.store.get("users", "u1")["points"], 32)

    def test_missing_organization_raises_after_user_update(self):
        with self.assertRaises(DocumentNotFoundError):
            apply_points(self.store, "u1", "org_gone", 3)
        self.assertEqual(self.store.get("users", "u1")["points"], 15)

    def test_missing_user_raises(self):
        with self.assertRaises(DocumentNotFoundError):
            apply_points(self.store, "nobody", None, 3)

    def test_interleaved_submissions_lose_an_update(self):
        store = InterleavingStore()
        store.set("users", "u1", {"points": 0})
        store.pending = lambda: apply_points(store, "u1", None, 5)

        apply_points(store, "u1", None, 10)

        # Both writers read 0; the later write wins.
        self.assertEqual(store.get("users", "u1")["points"], 10)


if __name__ == "__main__":
    unittest.main()
