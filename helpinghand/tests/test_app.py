import os
import unittest
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from helpinghand.app import create_app
from helpinghand.config import get_settings
from helpinghand.dependencies import get_local_db, get_meals_view_model, reset_dependencies
from helpinghand.viewmodels import MealsViewModel
from shared.types import Meal


class HelpingHandApiTests(unittest.TestCase):
    def setUp(self):
        env = patch.dict(os.environ, {"HELPINGHAND_USE_IN_MEMORY_BACKENDS": "1"})
        env.start()
        self.addCleanup(env.stop)
        get_settings.cache_clear()
        self.addCleanup(get_settings.cache_clear)
        reset_dependencies()
        self.addCleanup(reset_dependencies)
        self.app = create_app()
        self.client = TestClient(self.app)

    def _register(self, name, email, password="secret1"):
        response = self.client.post(
            "/api/auth/register", json={"name": name, "email": email, "password": password}
        )
        self.assertEqual(response.status_code, 201)
        return response.json()

    def test_signed_out_requests_are_rejected(self):
        for path in ("/api/household", "/api/cleaning/reminders", "/api/contacts", "/api/auth/profile"):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 401, path)
            self.assertEqual(response.json()["detail"], "Not logged in.")

    def test_register_login_and_profile(self):
        user = self._register("Alice", "alice@example.com")
        self.assertEqual(user["display_name"], "Alice")

        again = self.client.post(
            "/api/auth/register",
            json={"name": "Alice", "email": "alice@example.com", "password": "secret1"},
        )
        self.assertEqual(again.status_code, 400)
        self.assertEqual(again.json()["detail"], "That email is already in use.")

        self.client.post("/api/auth/logout")
        bad = self.client.post(
            "/api/auth/login", json={"email": "alice@example.com", "password": "wrong"}
        )
        self.assertEqual(bad.status_code, 401)

        ok = self.client.post(
            "/api/auth/login", json={"email": "alice@example.com", "password": "secret1"}
        )
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.json()["uid"], user["uid"])

        renamed = self.client.put("/api/auth/profile", json={"display_name": "Ally"})
        self.assertEqual(renamed.json()["display_name"], "Ally")
        blank = self.client.put("/api/auth/profile", json={"display_name": "  "})
        self.assertEqual(blank.status_code, 400)

    def test_household_membership(self):
        self._register("Bob", "bob@example.com")
        bob_household = self.client.get("/api/household").json()["household_id"]
        self.client.post("/api/auth/logout")
        self._register("Alice", "alice@example.com")

        household = self.client.get("/api/household").json()
        self.assertNotEqual(household["household_id"], bob_household)
        self.assertEqual([m["display_name"] for m in household["members"]], ["Alice"])

        missing = self.client.post("/api/household/members", json={"email": "nobody@example.com"})
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["detail"], "No user found with that email")

        added = self.client.post("/api/household/members", json={"email": "Bob@Example.com"})
        self.assertEqual(added.status_code, 200)
        self.assertEqual(
            [m["display_name"] for m in added.json()["members"]], ["Alice", "Bob"]
        )

        unknown = self.client.post("/api/household/join", json={"code": "no-such-household"})
        self.assertEqual(unknown.status_code, 404)

        joined = self.client.post("/api/household/join", json={"code": bob_household})
        self.assertEqual(joined.status_code, 200)
        self.assertEqual(joined.json()["household_id"], bob_household)
        self.assertEqual(
            sorted(m["display_name"] for m in joined.json()["members"]), ["Alice", "Bob"]
        )

        left = self.client.post("/api/household/leave").json()
        self.assertNotIn(left["household_id"], (bob_household, household["household_id"]))
        self.assertEqual([m["display_name"] for m in left["members"]], ["Alice"])

    def test_member_stream_requires_login(self):
        with self.client.websocket_connect("/api/household/members/ws") as websocket:
            with self.assertRaises(WebSocketDisconnect) as ctx:
                websocket.receive_json()
        self.assertEqual(ctx.exception.code, 1008)

    def test_shopping_list_and_dashboard(self):
        blank = self.client.post("/api/shopping/items", json={"text": "   "})
        self.assertEqual(blank.status_code, 400)

        milk = self.client.post("/api/shopping/items", json={"text": " milk "}).json()
        self.client.post("/api/shopping/items", json={"text": "bread"})
        self.assertEqual(milk["text"], "milk")

        toggled = self.client.patch(f"/api/shopping/items/{milk['id']}", json={"checked": True})
        self.assertTrue(toggled.json()["is_checked"])
        self.assertEqual(
            self.client.patch("/api/shopping/items/unknown", json={"checked": True}).status_code,
            404,
        )
        self.assertEqual(self.client.get("/api/dashboard").json()["item_count"], 2)

        self.client.delete("/api/shopping/items/checked")
        items = self.client.get("/api/shopping/items").json()["items"]
        self.assertEqual([i["text"] for i in items], ["bread"])
        self.assertEqual(self.client.get("/api/dashboard").json()["item_count"], 1)

    def test_cleaning_reminders(self):
        self._register("Alice", "alice@example.com")
        self.assertEqual(self.client.get("/api/cleaning/reminders").json()["reminders"], [])

        invalid = self.client.post("/api/cleaning/reminders", json={"name": "Dust", "interval_days": 0})
        self.assertEqual(invalid.status_code, 400)

        created = self.client.post(
            "/api/cleaning/reminders", json={"name": "Vacuum", "interval_days": 7}
        )
        self.assertEqual(created.status_code, 201)
        reminder = created.json()["reminders"][0]
        self.assertEqual(reminder["name"], "Vacuum")
        self.assertIsNotNone(reminder["remote_id"])

        dashboard = self.client.get("/api/dashboard").json()
        self.assertEqual(dashboard["next_due_reminder"]["name"], "Vacuum")

        reset = self.client.post(f"/api/cleaning/reminders/{reminder['id']}/reset")
        self.assertEqual(reset.status_code, 200)

        deleted = self.client.delete(f"/api/cleaning/reminders/{reminder['id']}")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get("/api/cleaning/reminders").json()["reminders"], [])
        self.assertEqual(self.client.delete("/api/cleaning/reminders/999").status_code, 404)

    def test_contacts(self):
        self._register("Alice", "alice@example.com")

        invalid = self.client.post("/api/contacts", json={"name": "Vet"})
        self.assertEqual(invalid.status_code, 400)

        contacts = self.client.post(
            "/api/contacts", json={"name": "Plumber", "phone": "5551234567"}
        ).json()["contacts"]
        self.assertEqual(contacts[0]["display_phone"], "555-123-4567")

        deleted = self.client.delete(f"/api/contacts/{contacts[0]['id']}")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get("/api/contacts").json()["contacts"], [])

    def test_appointments(self):
        self._register("Alice", "alice@example.com")

        blank = self.client.post("/api/appointments", json={"doctor_name": "  "})
        self.assertEqual(blank.status_code, 400)
        bad_type = self.client.post(
            "/api/appointments", json={"doctor_name": "Dr. Who", "type": "Vet"}
        )
        self.assertEqual(bad_type.status_code, 422)

        appointments = self.client.post(
            "/api/appointments",
            json={"doctor_name": "Dr. Smile", "type": "Dentist", "phone": "(555) 123-4567"},
        ).json()["appointments"]
        appointment = appointments[0]
        self.assertEqual(appointment["type"], "Dentist")
        self.assertEqual(appointment["phone_raw"], "5551234567")
        self.assertEqual(appointment["interval_months"], 12)

        moved = self.client.put(
            f"/api/appointments/{appointment['id']}/next-visit", json={"next_visit": "2030-05-01"}
        )
        self.assertEqual(moved.status_code, 200)
        listed = self.client.get("/api/appointments").json()["appointments"][0]
        self.assertEqual(listed["formatted_next_date"], "May 01, 2030")

        self.assertEqual(self.client.delete(f"/api/appointments/{appointment['id']}").status_code, 200)
        self.assertEqual(self.client.delete(f"/api/appointments/{appointment['id']}").status_code, 404)

    def test_meal_suggestions(self):
        recipes = MagicMock()
        recipes.find_by_ingredients.return_value = [
            Meal(id=7, title="Pancakes", used_ingredients=["milk"], missed_ingredients=["flour", "Milk"])
        ]
        meals_vm = MealsViewModel(get_local_db().shopping_items, recipes)
        self.app.dependency_overrides[get_meals_view_model] = lambda: meals_vm

        milk = self.client.post("/api/shopping/items", json={"text": "Milk"}).json()
        self.client.patch(f"/api/shopping/items/{milk['id']}", json={"checked": True})

        meals = self.client.post("/api/meals/search").json()["meals"]
        self.assertEqual([m["title"] for m in meals], ["Pancakes"])
        recipes.find_by_ingredients.assert_called_once_with("milk")
        self.assertEqual(self.client.get("/api/meals").json()["meals"][0]["id"], 7)

        added = self.client.post("/api/meals/7/add-missing").json()["items"]
        self.assertEqual([i["text"] for i in added], ["flour"])
        self.assertEqual(self.client.post("/api/meals/8/add-missing").status_code, 404)


if __name__ == "__main__":
    unittest.main()
