import unittest

from helpinghand.auth import InMemoryAuthClient
from helpinghand.db import LocalDatabase
from helpinghand.documents import InMemoryDocumentStore
from helpinghand.household import HouseholdRepository
from helpinghand.sync import cleaning_reminder_sync, contact_sync, doctor_appointment_sync
from shared.types import CleaningReminder, Contact, DoctorAppointment


class HouseholdCollectionSyncTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.auth = InMemoryAuthClient()
        self.store = InMemoryDocumentStore()
        self.db = LocalDatabase("sqlite+pysqlite:///:memory:")
        self.households = HouseholdRepository(self.auth, self.store)
        self.auth.register("alice@example.com", "secret1", "Alice")
        self.reminders = cleaning_reminder_sync(self.store, self.households, self.db.cleaning_reminders)
        self.contacts = contact_sync(self.store, self.households, self.db.contacts)

    def tearDown(self):
        self.reminders.clear()
        self.contacts.clear()
        self.db.close()

    async def test_add_writes_remote_document_and_mirrors_locally(self):
        doc_id = await self.reminders.add(
            CleaningReminder(name="Vacuum", interval_days=7, next_due_epoch_day=100)
        )

        household_id = await self.households.get_or_create_household_id()
        document = self.store.get(f"households/{household_id}/cleaning_reminders/{doc_id}")
        self.assertEqual(
            document.to_dict(), {"name": "Vacuum", "intervalDays": 7, "nextDueEpochDay": 100}
        )
        local = self.db.cleaning_reminders.list_all()
        self.assertEqual(len(local), 1)
        self.assertEqual(local[0].remote_id, doc_id)
        self.assertIsNotNone(local[0].id)

    async def test_remote_changes_replace_local_table(self):
        await self.contacts.start()
        household_id = await self.contacts.household_id()
        base = f"households/{household_id}/contacts"

        self.store.set(f"{base}/c1", {"name": "Vet", "phone": "5551234"})
        self.store.set(f"{base}/c2", {"name": "Plumber", "email": "p@x.com"})
        self.assertEqual([c.id for c in self.db.contacts.list_all()], ["c2", "c1"])

        self.store.delete(f"{base}/c2")
        self.assertEqual(self.db.contacts.list_all(), [Contact(name="Vet", phone="5551234", id="c1")])

    async def test_reminder_ids_survive_remote_snapshots(self):
        await self.reminders.start()
        household_id = await self.reminders.household_id()
        base = f"households/{household_id}/cleaning_reminders"

        self.store.set(f"{base}/zzz", {"name": "Vacuum", "intervalDays": 7, "nextDueEpochDay": 10})
        vacuum_id = self.db.cleaning_reminders.list_all()[0].id

        self.store.set(f"{base}/aaa", {"name": "Dishes", "intervalDays": 1, "nextDueEpochDay": 5})
        by_name = {r.name: r for r in self.db.cleaning_reminders.list_all()}
        self.assertEqual(by_name["Vacuum"].id, vacuum_id)
        self.assertEqual(by_name["Vacuum"].remote_id, "zzz")
        self.assertNotEqual(by_name["Dishes"].id, vacuum_id)

        self.store.update(f"{base}/zzz", {"nextDueEpochDay": 17})
        self.assertEqual(self.db.cleaning_reminders.get(vacuum_id).next_due_epoch_day, 17)

    async def test_undecodable_documents_are_skipped(self):
        await self.contacts.start()
        household_id = await self.contacts.household_id()
        base = f"households/{household_id}/contacts"

        with self.assertLogs("helpinghand.sync", level="WARNING"):
            self.store.set(f"{base}/broken", {"phone": "no name"})
        self.store.set(f"{base}/ok", {"name": "Vet"})

        self.assertEqual([c.id for c in self.db.contacts.list_all()], ["ok"])

    async def test_update_and_delete(self):
        doc_id = await self.reminders.add(CleaningReminder(name="Dust", interval_days=3))

        self.assertTrue(await self.reminders.update(doc_id, {"nextDueEpochDay": 42}))
        self.assertEqual(self.db.cleaning_reminders.list_all()[0].next_due_epoch_day, 42)

        self.assertTrue(await self.reminders.delete(doc_id))
        self.assertEqual(self.db.cleaning_reminders.list_all(), [])
        self.assertFalse(await self.reminders.update(doc_id, {"nextDueEpochDay": 1}))

    async def test_signed_out_operations_do_nothing(self):
        self.auth.sign_out()
        with self.assertLogs("helpinghand.sync", level="INFO"):
            self.assertIsNone(await self.contacts.add(Contact(name="Vet", phone="1")))
        self.assertFalse(await self.contacts.start())
        self.assertFalse(self.contacts.listening)
        self.assertEqual(self.store.docs, {})

    async def test_set_household_id_reattaches_and_clear_detaches(self):
        appointments = doctor_appointment_sync(
            self.store, self.households, self.db.doctor_appointments
        )
        self.store.set("households/h2/doctor_appointments/d1", {"doctorName": "Dr. Two", "type": "Dentist"})
        self.store.set("households/h3/doctor_appointments/d2", {"doctorName": "Dr. Three"})

        appointments.set_household_id("h2")
        self.assertEqual([a.doctor_name for a in self.db.doctor_appointments.list_all()], ["Dr. Two"])

        appointments.set_household_id("h3")
        self.assertEqual(self.store.listener_count("households/h2/doctor_appointments"), 0)
        self.assertEqual(
            self.db.doctor_appointments.list_all(),
            [DoctorAppointment(doctor_name="Dr. Three", id="d2")],
        )

        appointments.clear()
        self.assertFalse(appointments.listening)
        self.assertEqual(self.store.listener_count("households/h3/doctor_appointments"), 0)


if __name__ == "__main__":
    unittest.main()
