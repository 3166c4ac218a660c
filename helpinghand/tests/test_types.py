import unittest
from datetime import date

from dacite.exceptions import MissingValueError

from shared.json_utils import convert_keys
from shared.types import (
    CleaningReminder,
    Contact,
    DoctorAppointment,
    UserProfile,
    from_document,
    to_document,
)
from shared.utils import (
    add_months,
    format_phone_number,
    from_epoch_day,
    months_between,
    to_epoch_day,
)


class JsonUtilsTests(unittest.TestCase):
    def test_convert_keys_recurses_into_dicts_and_lists(self):
        payload = {"next_due_epoch_day": 3, "nested_items": [{"is_checked": True}]}
        camel = convert_keys(payload, "snake_to_camel")
        self.assertEqual(camel, {"nextDueEpochDay": 3, "nestedItems": [{"isChecked": True}]})
        self.assertEqual(convert_keys(camel, "camel_to_snake"), payload)


class DateUtilsTests(unittest.TestCase):
    def test_epoch_day(self):
        self.assertEqual(to_epoch_day(date(1970, 1, 2)), 1)
        self.assertEqual(from_epoch_day(19723), date(2024, 1, 1))

    def test_add_months_clamps_day(self):
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(add_months(date(2023, 11, 15), 3), date(2024, 2, 15))

    def test_months_between_counts_whole_months(self):
        self.assertEqual(months_between(date(2024, 1, 15), date(2024, 3, 14)), 1)
        self.assertEqual(months_between(date(2024, 1, 15), date(2024, 3, 15)), 2)
        self.assertEqual(months_between(date(2024, 3, 15), date(2024, 1, 16)), -1)

    def test_format_phone_number(self):
        self.assertEqual(format_phone_number("(555) 123-4567"), "555-123-4567")
        self.assertEqual(format_phone_number("5551234"), "555-1234")
        self.assertEqual(format_phone_number("+44 20 7946 0958"), "442079460958")


class RecordTests(unittest.TestCase):
    def test_reminder_document_omits_local_ids(self):
        reminder = CleaningReminder(
            name="Vacuum", interval_days=7, next_due_epoch_day=100, id=4, remote_id="r1"
        )
        self.assertEqual(
            to_document(reminder, exclude=("id", "remote_id")),
            {"name": "Vacuum", "intervalDays": 7, "nextDueEpochDay": 100},
        )

    def test_from_document_applies_overrides_and_ignores_unknown_fields(self):
        contact = from_document(
            Contact, {"name": "Vet", "phone": "555", "extra": 1}, id="c1"
        )
        self.assertEqual(contact, Contact(name="Vet", phone="555", email="", id="c1"))

    def test_from_document_requires_name(self):
        with self.assertRaises(MissingValueError):
            from_document(Contact, {"phone": "555"}, id="c1")

    def test_profile_from_document(self):
        profile = from_document(
            UserProfile,
            {"email": "A@x.com", "emailLower": "a@x.com", "displayName": "Alice", "householdId": None},
            uid="u1",
        )
        self.assertEqual(profile.email_lower, "a@x.com")
        self.assertIsNone(profile.household_id)

    def test_next_visit_text(self):
        today = date(2024, 5, 1)
        base = to_epoch_day(today)
        appointment = DoctorAppointment(doctor_name="Dr. Who")
        self.assertEqual(appointment.next_visit_text(today), "No visits scheduled")

        appointment.next_visit_epoch_day = base
        self.assertEqual(appointment.next_visit_text(today), "Today")
        appointment.next_visit_epoch_day = base + 3
        self.assertEqual(appointment.next_visit_text(today), "In 3 days")
        appointment.next_visit_epoch_day = base + 14
        self.assertEqual(appointment.next_visit_text(today), "In 2 weeks")
        appointment.next_visit_epoch_day = base + 65
        self.assertEqual(appointment.next_visit_text(today), "In 2 months")
        appointment.next_visit_epoch_day = base - 2
        self.assertEqual(appointment.next_visit_text(today), "Overdue by 2 days")

        appointment.next_visit_epoch_day = None
        appointment.last_visit_epoch_day = to_epoch_day(date(2024, 2, 1))
        self.assertEqual(appointment.next_visit_text(today), "Last visit 3mo ago")

    def test_formatted_next_date(self):
        appointment = DoctorAppointment(doctor_name="Dr. Who", phone_raw="5551234567")
        self.assertEqual(appointment.formatted_next_date(), "Not set")
        appointment.next_visit_epoch_day = to_epoch_day(date(2024, 7, 4))
        self.assertEqual(appointment.formatted_next_date(), "Jul 04, 2024")
        self.assertEqual(appointment.display_phone(), "555-123-4567")


if __name__ == "__main__":
    unittest.main()
