import unittest
from unittest.mock import MagicMock, patch

from google.api_core import exceptions

from helpinghand.documents import FirestoreDocumentStore, InMemoryDocumentStore
from helpinghand.errors import DocumentNotFound


class InMemoryDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()

    def test_set_get_update_delete(self):
        self.store.set("users/u1", {"email": "a@x.com"})
        self.store.update("users/u1", {"displayName": "A"})
        snapshot = self.store.get("users/u1")
        self.assertTrue(snapshot.exists)
        self.assertEqual(snapshot.id, "u1")
        self.assertEqual(snapshot.to_dict(), {"email": "a@x.com", "displayName": "A"})

        self.store.delete("users/u1")
        self.assertFalse(self.store.get("users/u1").exists)

    def test_update_missing_document_raises(self):
        with self.assertRaises(DocumentNotFound):
            self.store.update("users/missing", {"a": 1})

    def test_find_matches_field(self):
        self.store.set("users/u1", {"emailLower": "a@x.com"})
        self.store.set("users/u2", {"emailLower": "b@x.com"})
        self.store.set("households/h1/contacts/c1", {"emailLower": "a@x.com"})
        matches = self.store.find("users", "emailLower", "a@x.com")
        self.assertEqual([m.id for m in matches], ["u1"])

    def test_transaction_writes_apply_on_commit(self):
        self.store.set("households/h1", {"members": ["u1"]})

        def _add(transaction):
            snapshot = transaction.get("households/h1")
            transaction.update("households/h1", {"members": snapshot.get("members") + ["u2"]})
            # Reads inside the transaction do not see buffered writes.
            return transaction.get("households/h1").get("members")

        self.assertEqual(self.store.run_transaction(_add), ["u1"])
        self.assertEqual(self.store.get("households/h1").get("members"), ["u1", "u2"])

    def test_failed_transaction_applies_nothing(self):
        self.store.set("households/h1", {"members": ["u1"]})

        def _fail(transaction):
            transaction.update("households/h1", {"members": []})
            raise RuntimeError("abort")

        with self.assertRaises(RuntimeError):
            self.store.run_transaction(_fail)
        self.assertEqual(self.store.get("households/h1").get("members"), ["u1"])

    def test_read_only_transaction_rejects_writes(self):
        with self.assertRaises(ValueError):
            self.store.run_transaction(
                lambda t: t.set("users/u1", {}), read_only=True
            )

    def test_listeners_fire_on_register_and_change(self):
        seen = []
        subscription = self.store.listen("households/h1", lambda s: seen.append(s.data))
        self.store.set("households/h1", {"name": "Home"})
        subscription.unsubscribe()
        self.store.set("households/h1", {"name": "Other"})
        self.assertEqual(seen, [None, {"name": "Home"}])
        self.assertEqual(self.store.listener_count("households/h1"), 0)

    def test_collection_listener_sees_children_only(self):
        batches = []
        self.store.listen_collection(
            "households/h1/contacts", lambda docs: batches.append([d.id for d in docs])
        )
        self.store.set("households/h1/contacts/c1", {"name": "Vet"})
        self.store.set("households/h1", {"name": "Home"})
        self.assertEqual(batches, [[], ["c1"]])


class FirestoreDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.store = FirestoreDocumentStore(self.client)

    def test_get_maps_snapshot(self):
        snapshot = MagicMock(exists=True)
        snapshot.to_dict.return_value = {"email": "a@x.com"}
        self.client.document.return_value.get.return_value = snapshot

        result = self.store.get("users/u1")

        self.client.document.assert_called_with("users/u1")
        self.assertEqual(result.data, {"email": "a@x.com"})

    def test_update_translates_not_found(self):
        self.client.document.return_value.update.side_effect = exceptions.NotFound("gone")
        with self.assertRaises(DocumentNotFound):
            self.store.update("users/u1", {"a": 1})

    def test_find_uses_limited_query(self):
        doc = MagicMock(id="u1", exists=True)
        doc.to_dict.return_value = {"emailLower": "a@x.com"}
        query = self.client.collection.return_value.where.return_value.limit.return_value
        query.stream.return_value = [doc]

        matches = self.store.find("users", "emailLower", "a@x.com")

        self.client.collection.return_value.where.return_value.limit.assert_called_with(1)
        self.assertEqual(matches[0].path, "users/u1")

    def test_run_transaction_passes_adapter(self):
        with patch("helpinghand.documents.firestore.transactional", side_effect=lambda fn: fn):
            result = self.store.run_transaction(lambda t: t.get("households/h1").exists)

        self.client.transaction.assert_called_with(read_only=False)
        self.client.document.assert_called_with("households/h1")
        self.assertTrue(result)

    def test_listen_unsubscribes_watch(self):
        watch = self.client.document.return_value.on_snapshot.return_value
        seen = []
        subscription = self.store.listen("households/h1", seen.append)

        on_snapshot = self.client.document.return_value.on_snapshot.call_args[0][0]
        missing = MagicMock(exists=False)
        on_snapshot([missing], [], None)
        subscription.unsubscribe()
        subscription.unsubscribe()

        self.assertEqual(len(seen), 1)
        self.assertFalse(seen[0].exists)
        watch.unsubscribe.assert_called_once()


if __name__ == "__main__":
    unittest.main()
