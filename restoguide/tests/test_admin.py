import unittest

from restoguide.tests.helpers import API, ApiTestCase, auth

TEXT = "Отличное место, вкусно и уютно, обязательно вернемся"


class AdminModerationTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.create_admin()
        self.partner, self.establishment = self.create_partner("owner@example.com")
        self.url = f"{API}/admin/establishments/{self.establishment['id']}"

    def submit(self):
        self.client.post(
            f"{API}/partner/establishments/{self.establishment['id']}/submit",
            headers=auth(self.partner),
        )

    def test_admin_routes_require_admin(self):
        response = self.client.get(f"{API}/admin/establishments/pending", headers=auth(self.partner))
        self.assertEqual(response.status_code, 403)

    def test_pending_queue_and_details(self):
        self.submit()
        data = self.client.get(
            f"{API}/admin/establishments/pending", headers=auth(self.admin)
        ).json()["data"]
        self.assertEqual(data["meta"], {"total": 1, "page": 1, "per_page": 20, "pages": 1})
        self.assertEqual(data["establishments"][0]["partner_email"], "owner@example.com")

        details = self.client.get(self.url, headers=auth(self.admin)).json()["data"]["establishment"]
        self.assertEqual(details["unp"], "123456789")
        self.assertEqual(len(details["interior_photos"]), 1)
        self.assertEqual(len(details["menu_media"]), 1)

    def test_moderation_requires_pending(self):
        response = self.client.post(
            f"{self.url}/moderate", json={"action": "approve"}, headers=auth(self.admin)
        )
        self.assertEqual(response.json()["error"]["code"], "INVALID_STATUS_FOR_MODERATION")

        self.submit()
        response = self.client.post(
            f"{self.url}/moderate", json={"action": "publish"}, headers=auth(self.admin)
        )
        self.assertEqual(response.json()["error"]["code"], "INVALID_MODERATION_ACTION")

    def test_approve_sets_published_at_once(self):
        self.submit()
        approved = self.client.post(
            f"{self.url}/moderate", json={"action": "approve"}, headers=auth(self.admin)
        ).json()["data"]["establishment"]
        self.assertEqual(approved["status"], "active")
        published_at = approved["published_at"]
        self.assertIsNotNone(published_at)

        # A major edit sends it back to moderation; approving again keeps the date.
        self.client.put(
            f"{API}/partner/establishments/{self.establishment['id']}",
            json={"name": "Новое название"},
            headers=auth(self.partner),
        )
        again = self.client.post(
            f"{self.url}/moderate", json={"action": "approve"}, headers=auth(self.admin)
        ).json()["data"]["establishment"]
        self.assertEqual(again["published_at"], published_at)

    def test_rejections_are_listed_from_history(self):
        self.submit()
        self.client.post(
            f"{self.url}/moderate",
            json={"action": "reject", "moderation_notes": {"photos": "Мало фото"}},
            headers=auth(self.admin),
        )
        data = self.client.get(
            f"{API}/admin/establishments/rejected", headers=auth(self.admin)
        ).json()["data"]
        self.assertEqual(len(data["rejections"]), 1)
        rejection = data["rejections"][0]
        self.assertEqual(rejection["moderation_notes"], {"photos": "Мало фото"})
        self.assertEqual(rejection["current_status"], "rejected")

    def test_suspend_and_unsuspend(self):
        self.submit()
        self.client.post(f"{self.url}/moderate", json={"action": "approve"}, headers=auth(self.admin))

        response = self.client.post(f"{self.url}/suspend", json={}, headers=auth(self.admin))
        self.assertEqual(response.json()["error"]["code"], "REASON_REQUIRED")

        response = self.client.post(
            f"{self.url}/suspend", json={"reason": "Нарушение правил"}, headers=auth(self.admin)
        )
        self.assertEqual(response.json()["data"]["establishment"]["status"], "suspended")
        suspended = self.client.get(
            f"{API}/admin/establishments/suspended", headers=auth(self.admin)
        ).json()["data"]
        self.assertEqual(suspended["meta"]["total"], 1)

        response = self.client.post(f"{self.url}/suspend", json={"reason": "Снова"}, headers=auth(self.admin))
        self.assertEqual(response.json()["error"]["code"], "INVALID_STATUS_FOR_SUSPEND")

        response = self.client.post(f"{self.url}/unsuspend", headers=auth(self.admin))
        self.assertEqual(response.json()["data"]["establishment"]["status"], "active")
        response = self.client.post(f"{self.url}/unsuspend", headers=auth(self.admin))
        self.assertEqual(response.json()["error"]["code"], "INVALID_STATUS_FOR_UNSUSPEND")

    def test_active_listing_and_search(self):
        self.submit()
        self.client.post(f"{self.url}/moderate", json={"action": "approve"}, headers=auth(self.admin))
        active = self.client.get(
            f"{API}/admin/establishments/active",
            params={"city": "Минск", "sort": "name"},
            headers=auth(self.admin),
        ).json()["data"]
        self.assertEqual(active["meta"]["total"], 1)

        response = self.client.get(f"{API}/admin/establishments/search", headers=auth(self.admin))
        self.assertEqual(response.json()["error"]["code"], "SEARCH_REQUIRED")
        found = self.client.get(
            f"{API}/admin/establishments/search",
            params={"search": self.establishment["name"][:4]},
            headers=auth(self.admin),
        ).json()["data"]
        self.assertEqual(found["meta"]["total"], 1)

    def test_update_coordinates_is_audited(self):
        response = self.client.patch(
            f"{self.url}/coordinates",
            json={"latitude": 53.91, "longitude": 27.55},
            headers={**auth(self.admin), "User-Agent": "admin-panel", "X-Forwarded-For": "10.0.0.1"},
        )
        self.assertEqual(response.json()["data"]["establishment"]["latitude"], 53.91)

        response = self.client.patch(
            f"{self.url}/coordinates",
            json={"latitude": 52.1, "longitude": 23.7},
            headers=auth(self.admin),
        )
        self.assertEqual(response.json()["error"]["code"], "COORDINATES_CITY_MISMATCH")

        log = self.client.get(
            f"{API}/admin/audit-log",
            params={"action": "admin_update_coordinates", "include_metadata": "true"},
            headers=auth(self.admin),
        ).json()["data"]
        self.assertEqual(log["meta"]["total"], 1)
        entry = log["entries"][0]
        self.assertEqual(entry["ip_address"], "10.0.0.1")
        self.assertEqual(entry["user_agent"], "admin-panel")
        self.assertEqual(entry["old_data"], {"latitude": 53.9, "longitude": 27.56})


class AdminReviewTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.create_admin()
        _, self.establishment = self.create_active_establishment("owner@example.com", self.admin)
        self.user = self.user_token("guest@example.com")
        self.review = self.client.post(
            f"{API}/reviews",
            json={"establishment_id": self.establishment["id"], "rating": 2, "content": TEXT},
            headers=auth(self.user),
        ).json()["data"]["review"]
        self.url = f"{API}/admin/reviews/{self.review['id']}"

    def review_count(self):
        return self.client.get(
            f"{API}/search/establishments/{self.establishment['id']}"
        ).json()["data"]["establishment"]["review_count"]

    def test_list_with_filters(self):
        data = self.client.get(
            f"{API}/admin/reviews", params={"rating": 2, "status": "visible"}, headers=auth(self.admin)
        ).json()["data"]
        self.assertEqual(data["meta"]["total"], 1)
        self.assertEqual(data["reviews"][0]["user_email"], "guest@example.com")

        data = self.client.get(
            f"{API}/admin/reviews", params={"search": "уютно"}, headers=auth(self.admin)
        ).json()["data"]
        self.assertEqual(data["meta"]["total"], 1)

    def test_toggle_visibility_recomputes_aggregates(self):
        response = self.client.post(f"{self.url}/toggle-visibility", headers=auth(self.admin))
        self.assertEqual(response.json()["data"]["review"]["status"], "hidden")
        self.assertEqual(self.review_count(), 0)

        self.client.post(f"{self.url}/toggle-visibility", headers=auth(self.admin))
        self.assertEqual(self.review_count(), 1)

    def test_delete_review(self):
        response = self.client.post(
            f"{self.url}/delete", json={"reason": "Спам"}, headers=auth(self.admin)
        )
        self.assertEqual(response.json()["data"]["review"]["status"], "deleted")
        self.assertEqual(self.review_count(), 0)

        response = self.client.post(f"{self.url}/delete", headers=auth(self.admin))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "REVIEW_ALREADY_DELETED")

        response = self.client.post(f"{self.url}/toggle-visibility", headers=auth(self.admin))
        self.assertEqual(response.json()["error"]["code"], "REVIEW_ALREADY_DELETED")

        log = self.client.get(
            f"{API}/admin/audit-log", params={"entity_type": "review"}, headers=auth(self.admin)
        ).json()["data"]
        self.assertEqual([e["action"] for e in log["entries"]], ["review_delete"])
        self.assertNotIn("ip_address", log["entries"][0])


if __name__ == "__main__":
    unittest.main()
