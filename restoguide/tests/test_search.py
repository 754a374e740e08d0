import unittest

from restoguide.services.search import expand_search_terms
from restoguide.tests.helpers import API, ApiTestCase

NIGHT_HOURS = {
    day: {"open": "18:00", "close": "06:00"}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
}
ALL_DAY = {
    day: {"open": "00:00", "close": "24:00"}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
}


class SearchTermTests(unittest.TestCase):
    def test_synonyms_expand_to_categories_and_cuisines(self):
        terms = expand_search_terms("Пицца рядом")
        self.assertIn("пицца", terms.text)
        self.assertIn("Пиццерия", terms.categories)
        self.assertIn("Итальянская", terms.cuisines)

    def test_prefix_of_cuisine_name(self):
        terms = expand_search_terms("грузин")
        self.assertIn("Грузинская", terms.cuisines)

    def test_short_terms_are_ignored(self):
        self.assertEqual(expand_search_terms("a").text, [])
        self.assertEqual(expand_search_terms(None).text, [])


class SearchApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.create_admin()
        _, self.center = self.create_active_establishment(
            "center@example.com",
            self.admin,
            name="Центральная пиццерия",
            categories=["Пиццерия"],
            cuisines=["Итальянская"],
            price_range="$",
            features=["wifi", "terrace"],
            latitude=53.9,
            longitude=27.56,
        )
        _, self.far = self.create_active_establishment(
            "far@example.com",
            self.admin,
            name="Ночной бар",
            categories=["Бар"],
            cuisines=["Европейская"],
            price_range="$$$",
            working_hours=NIGHT_HOURS,
            latitude=53.95,
            longitude=27.70,
        )
        _, self.grodno = self.create_active_establishment(
            "grodno@example.com",
            self.admin,
            name="Гродненская кофейня",
            city="Гродно",
            categories=["Кофейня"],
            cuisines=["Народная"],
            working_hours=ALL_DAY,
            latitude=53.68,
            longitude=23.83,
        )
        # Drafts never show up in search.
        self.create_partner("draft@example.com", name="Черновик", latitude=53.9, longitude=27.56)

    def search(self, **params):
        response = self.client.get(f"{API}/search/establishments", params=params)
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["data"]

    def names(self, data):
        return [e["name"] for e in data["establishments"]]

    def test_radius_search_orders_by_distance(self):
        data = self.search(latitude=53.9, longitude=27.56, radius=20)
        self.assertEqual(self.names(data), ["Центральная пиццерия", "Ночной бар"])
        first = data["establishments"][0]
        self.assertAlmostEqual(first["distance_km"], 0.0, places=2)
        self.assertEqual(data["pagination"]["total"], 2)
        self.assertFalse(data["pagination"]["hasNext"])

    def test_max_distance_is_in_meters(self):
        data = self.search(latitude=53.9, longitude=27.56, max_distance=1000)
        self.assertEqual(self.names(data), ["Центральная пиццерия"])

    def test_invalid_max_distance_is_ignored(self):
        for value in ("abc", "-5", "0"):
            data = self.search(latitude=53.9, longitude=27.56, radius=20, max_distance=value)
            self.assertCountEqual(self.names(data), ["Центральная пиццерия", "Ночной бар"])

    def test_city_filter_without_location(self):
        data = self.search(city="Гродно")
        self.assertEqual(self.names(data), ["Гродненская кофейня"])
        self.assertIsNone(data["establishments"][0]["distance"])

    def test_category_cuisine_and_price_filters(self):
        self.assertEqual(self.names(self.search(categories="Бар,Паб")), ["Ночной бар"])
        self.assertEqual(self.names(self.search(cuisines="Народная")), ["Гродненская кофейня"])
        self.assertEqual(self.names(self.search(priceRange="$")), ["Центральная пиццерия"])

    def test_features_require_all_values(self):
        self.assertEqual(self.names(self.search(features="wifi,terrace")), ["Центральная пиццерия"])
        self.assertEqual(self.names(self.search(features="wifi,parking")), [])

    def test_hours_filters(self):
        self.assertEqual(self.names(self.search(hours_filter="24_hours")), ["Гродненская кофейня"])
        self.assertCountEqual(
            self.names(self.search(hours_filter="until_morning")),
            ["Ночной бар", "Гродненская кофейня"],
        )
        late = self.names(self.search(hours_filter="until_22"))
        self.assertEqual(len(late), 3)

    def test_invalid_hours_filter(self):
        response = self.client.get(
            f"{API}/search/establishments", params={"hours_filter": "sometimes"}
        )
        self.assertEqual(response.status_code, 422)

    def test_text_search_uses_synonyms(self):
        self.assertEqual(self.names(self.search(search="пицца")), ["Центральная пиццерия"])
        self.assertEqual(self.names(self.search(search="кофе")), ["Гродненская кофейня"])

    def test_text_search_handles_special_characters(self):
        self.assertEqual(self.names(self.search(search="100%_")), [])

    def test_limit_validation(self):
        response = self.client.get(f"{API}/search/establishments", params={"limit": 0})
        self.assertEqual(response.status_code, 422)

    def test_pagination(self):
        data = self.search(limit=2, page=2, sort_by="newest")
        self.assertEqual(len(data["establishments"]), 1)
        self.assertTrue(data["pagination"]["hasPrevious"])
        self.assertEqual(data["pagination"]["totalPages"], 2)

    def test_page_takes_precedence_over_offset(self):
        data = self.search(limit=2, page=2, offset=0, sort_by="newest")
        self.assertEqual(data["pagination"]["page"], 2)
        self.assertEqual(len(data["establishments"]), 1)

        data = self.search(limit=2, offset=2, sort_by="newest")
        self.assertEqual(data["pagination"]["page"], 2)

    def test_page_below_one_is_rejected(self):
        response = self.client.get(f"{API}/search/establishments", params={"page": 0})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_map_bounds(self):
        response = self.client.get(
            f"{API}/search/map",
            params={"minLat": 53.8, "maxLat": 54.0, "minLon": 27.4, "maxLon": 27.8},
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["total"], 2)

        response = self.client.get(
            f"{API}/search/map",
            params={"swLat": 53.6, "neLat": 53.7, "swLon": 23.7, "neLon": 23.9},
        )
        self.assertEqual(response.json()["data"]["total"], 1)

    def test_map_requires_bounds(self):
        response = self.client.get(f"{API}/search/map", params={"minLat": 53.8})
        self.assertEqual(response.status_code, 422)

    def test_details_counts_views(self):
        url = f"{API}/search/establishments/{self.center['id']}"
        self.client.get(url)
        response = self.client.get(url)
        self.assertEqual(response.status_code, 200)
        establishment = response.json()["data"]["establishment"]
        self.assertEqual(establishment["primary_image_url"], "https://media.example.test/a.jpg")
        self.assertEqual(len(establishment["media"]), 2)

    def test_details_hide_inactive(self):
        _, draft = self.create_partner("other@example.com", name="Скрытое")
        response = self.client.get(f"{API}/search/establishments/{draft['id']}")
        self.assertEqual(response.status_code, 404)

    def test_search_health(self):
        response = self.client.get(f"{API}/search/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["active_establishments"], 3)


if __name__ == "__main__":
    unittest.main()
