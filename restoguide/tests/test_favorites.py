import unittest

from restoguide.tests.helpers import API, ApiTestCase, auth


class FavoriteApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        admin = self.create_admin()
        _, self.first = self.create_active_establishment("one@example.com", admin, name="Первое")
        _, self.second = self.create_active_establishment("two@example.com", admin, name="Второе")
        self.user = self.user_token("guest@example.com")

    def add(self, establishment_id):
        return self.client.post(
            f"{API}/favorites",
            json={"establishment_id": establishment_id},
            headers=auth(self.user),
        )

    def test_add_is_idempotent(self):
        response = self.add(self.first["id"])
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["data"]["favorite"]["created"])
        again = self.add(self.first["id"]).json()["data"]["favorite"]
        self.assertFalse(again["created"])

        stats = self.client.get(f"{API}/favorites/stats", headers=auth(self.user))
        self.assertEqual(stats.json()["data"], {"total_favorites": 1})

    def test_cannot_favorite_missing_establishment(self):
        response = self.add("missing")
        self.assertEqual(response.status_code, 404)

    def test_list_is_newest_first_with_establishment_fields(self):
        self.add(self.first["id"])
        self.add(self.second["id"])
        data = self.client.get(f"{API}/favorites", headers=auth(self.user)).json()["data"]
        self.assertEqual(data["pagination"]["total"], 2)
        names = {f["establishment_name"] for f in data["favorites"]}
        self.assertEqual(names, {"Первое", "Второе"})
        self.assertEqual(
            data["favorites"][0]["establishment_primary_image"],
            "https://media.example.test/a.jpg",
        )

    def test_list_validates_paging(self):
        response = self.client.get(f"{API}/favorites", params={"page": 0}, headers=auth(self.user))
        self.assertEqual(response.json()["error"]["code"], "INVALID_PAGE")
        response = self.client.get(f"{API}/favorites", params={"limit": 51}, headers=auth(self.user))
        self.assertEqual(response.json()["error"]["code"], "INVALID_LIMIT")

    def test_check_and_remove(self):
        self.add(self.first["id"])
        check = self.client.get(
            f"{API}/favorites/check/{self.first['id']}", headers=auth(self.user)
        ).json()["data"]
        self.assertTrue(check["is_favorite"])

        removed = self.client.delete(
            f"{API}/favorites/{self.first['id']}", headers=auth(self.user)
        ).json()["data"]
        self.assertTrue(removed["removed"])
        removed = self.client.delete(
            f"{API}/favorites/{self.first['id']}", headers=auth(self.user)
        ).json()["data"]
        self.assertFalse(removed["removed"])

    def test_check_batch(self):
        self.add(self.second["id"])
        response = self.client.post(
            f"{API}/favorites/check-batch",
            json={"establishment_ids": [self.first["id"], self.second["id"]]},
            headers=auth(self.user),
        )
        self.assertEqual(
            response.json()["data"]["favorites"],
            {self.first["id"]: False, self.second["id"]: True},
        )

        response = self.client.post(
            f"{API}/favorites/check-batch", json={"establishment_ids": []}, headers=auth(self.user)
        )
        self.assertEqual(response.json()["error"]["code"], "INVALID_INPUT")
        response = self.client.post(
            f"{API}/favorites/check-batch",
            json={"establishment_ids": [str(i) for i in range(51)]},
            headers=auth(self.user),
        )
        self.assertEqual(response.json()["error"]["code"], "BATCH_TOO_LARGE")

    def test_favorites_require_login(self):
        response = self.client.get(f"{API}/favorites")
        self.assertEqual(response.status_code, 401)


if __name__ == "__main__":
    unittest.main()
