import unittest

from courier_desk import create_app
from courier_desk.config import Config
from courier_desk.db import close_db
from tests.helpers.temp_db import TempDbSandbox


def _user_payload(user_type: str = "CUSTOMER", **overrides) -> dict:
    payload = {
        "user_type": user_type,
        "name": "Lena",
        "phone_number": "+4917000000",
        "address": {"street": "Hauptstr. 1", "city": "Berlin", "postal_code": "10115", "country": "DE", "extra": "dropped"},
    }
    payload.update(overrides)
    return payload


class CatalogRoutesTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="catalog_routes")
        self.app = create_app(self._temp_db.make_config(Config))
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_user_crud(self) -> None:
        created = self.client.post("/api/users", json=_user_payload(user_type="customer"))
        self.assertEqual(created.status_code, 201)
        user = created.get_json()
        self.assertEqual(user["user_type"], "CUSTOMER")
        self.assertNotIn("extra", user["address"])
        self.assertEqual(user["address"]["city"], "Berlin")

        updated = self.client.patch(f"/api/users/{user['id']}", json={"name": "  Lena K. "})
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.get_json()["name"], "Lena K.")
        self.assertEqual(updated.get_json()["phone_number"], "+4917000000")

        self.assertEqual(self.client.delete(f"/api/users/{user['id']}").get_json(), {"ok": True})
        missing = self.client.get(f"/api/users/{user['id']}")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.get_json()["error"], "user_not_found")

    def test_user_list_filters_by_type(self) -> None:
        self.client.post("/api/users", json=_user_payload("CUSTOMER"))
        self.client.post("/api/users", json=_user_payload("WAREHOUSE", name="Depot"))

        warehouses = self.client.get("/api/users?user_type=warehouse").get_json()
        self.assertEqual([user["name"] for user in warehouses], ["Depot"])
        self.assertEqual(len(self.client.get("/api/users").get_json()), 2)
        self.assertEqual(self.client.get("/api/users?user_type=DRIVER").status_code, 400)

    def test_user_validation(self) -> None:
        cases = [
            (_user_payload(name="  "), "name_required"),
            (_user_payload(address={"name": "only contact"}), "address_required"),
            (_user_payload(address="Hauptstr. 1"), "address_required"),
            (_user_payload(phone_number=""), "phone_number_required"),
        ]
        for payload, code in cases:
            with self.subTest(code=code):
                response = self.client.post("/api/users", json=payload)
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.get_json()["error"], code)

    def test_item_crud(self) -> None:
        created = self.client.post("/api/items", json={"name": "Mug", "price": "4.5"})
        self.assertEqual(created.status_code, 201)
        item = created.get_json()
        self.assertEqual((item["name"], item["price"], item["qty"]), ("Mug", 4.5, 0))

        updated = self.client.patch(f"/api/items/{item['id']}", json={"qty": 12})
        self.assertEqual(updated.get_json()["qty"], 12)
        self.assertEqual(updated.get_json()["price"], 4.5)

        self.assertEqual(self.client.patch(f"/api/items/{item['id']}", json={}).get_json()["error"], "no_changes")
        self.assertEqual(self.client.patch(f"/api/items/{item['id']}", json={"price": -1}).get_json()["error"], "price_invalid")
        self.assertEqual(self.client.patch(f"/api/items/{item['id']}", json={"qty": "lots"}).get_json()["error"], "stock_invalid")

        listed = self.client.get("/api/items").get_json()
        self.assertEqual([row["id"] for row in listed], [item["id"]])

        self.assertEqual(self.client.delete(f"/api/items/{item['id']}").status_code, 200)
        self.assertEqual(self.client.delete(f"/api/items/{item['id']}").get_json(), {"ok": True})
        self.assertEqual(self.client.get(f"/api/items/{item['id']}").status_code, 404)

    def test_home_lists_endpoints(self) -> None:
        payload = self.client.get("/").get_json()
        self.assertEqual(payload["service"], "courier-desk")
        self.assertEqual(payload["endpoints"]["webhook"], "/webhook/uber")


if __name__ == "__main__":
    unittest.main()
