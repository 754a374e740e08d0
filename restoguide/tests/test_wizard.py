import unittest

from restoguide.wizard import (
    INCOMPLETE_MESSAGE,
    PartnerRegistrationWizard,
    SearchFilterState,
    distance_to_meters,
    expand_working_hours,
    is_valid_email,
    is_valid_unp,
)


def filled_wizard() -> PartnerRegistrationWizard:
    wizard = PartnerRegistrationWizard()
    wizard.toggle_category("Ресторан")
    wizard.toggle_cuisine("Европейская")
    wizard.update(
        name="Кафе Лето",
        price_range="$$",
        working_hours={
            "weekdays": {"open": "09:00", "close": "22:00"},
            "weekends": {"open": "11:00", "close": "23:00"},
        },
        city="Минск",
        street="ул. Ленина",
        building="5",
        latitude=53.9,
        longitude=27.56,
        legal_name="ООО Лето",
        unp="190000001",
        contact_person="Ольга",
        contact_email="olga@example.com",
    )
    wizard.add_interior_photo("https://cdn.test/hall.jpg")
    wizard.add_menu_photo("https://cdn.test/menu.jpg")
    return wizard


class WizardNavigationTests(unittest.TestCase):
    def test_cannot_advance_without_valid_step(self):
        wizard = PartnerRegistrationWizard()
        self.assertFalse(wizard.next_step())
        self.assertEqual(wizard.step_name, "category")

        wizard.toggle_category("Бар")
        self.assertTrue(wizard.next_step())
        self.assertEqual(wizard.step_name, "cuisine")

    def test_go_to_step_only_reaches_visited_steps(self):
        wizard = filled_wizard()
        for _ in range(3):
            self.assertTrue(wizard.next_step())
        self.assertFalse(wizard.go_to_step(5))
        self.assertTrue(wizard.go_to_step(0))
        self.assertTrue(wizard.go_to_step(3))
        self.assertTrue(wizard.previous_step())
        self.assertEqual(wizard.current_step, 2)

    def test_walks_to_summary(self):
        wizard = filled_wizard()
        while wizard.next_step():
            pass
        self.assertTrue(wizard.is_last_step)
        self.assertTrue(wizard.can_proceed())


class WizardSelectionTests(unittest.TestCase):
    def test_category_and_cuisine_caps(self):
        wizard = PartnerRegistrationWizard()
        self.assertTrue(wizard.toggle_category("Бар"))
        self.assertTrue(wizard.toggle_category("Паб"))
        self.assertFalse(wizard.toggle_category("Ресторан"))
        self.assertTrue(wizard.toggle_category("Бар"))
        self.assertEqual(wizard.data.categories, ["Паб"])

        for cuisine in ("Японская", "Азиатская", "Итальянская"):
            wizard.toggle_cuisine(cuisine)
        self.assertFalse(wizard.toggle_cuisine("Грузинская"))

    def test_first_interior_photo_becomes_primary(self):
        wizard = PartnerRegistrationWizard()
        wizard.add_interior_photo("a")
        wizard.add_interior_photo("b")
        self.assertEqual(wizard.data.primary_photo, "a")
        wizard.remove_interior_photo("a")
        self.assertEqual(wizard.data.primary_photo, "b")
        wizard.remove_interior_photo("b")
        self.assertIsNone(wizard.data.primary_photo)

    def test_photo_limit(self):
        wizard = PartnerRegistrationWizard()
        for index in range(20):
            self.assertTrue(wizard.add_menu_photo(str(index)))
        self.assertFalse(wizard.add_menu_photo("extra"))

    def test_basic_info_rules(self):
        wizard = PartnerRegistrationWizard()
        wizard.update(name="Я", price_range="$")
        self.assertFalse(wizard.step_is_valid(2))
        wizard.update(name="Кафе", description="abc")
        self.assertFalse(wizard.step_is_valid(2))
        wizard.update(description="Хорошее место")
        self.assertTrue(wizard.step_is_valid(2))

    def test_unknown_field(self):
        with self.assertRaises(AttributeError):
            PartnerRegistrationWizard().update(instagram="@cafe")

    def test_validators(self):
        self.assertTrue(is_valid_unp("123456789"))
        self.assertFalse(is_valid_unp("12345678"))
        self.assertTrue(is_valid_email("a.b@mail.by"))
        self.assertFalse(is_valid_email("not-an-email"))


class WizardSubmissionTests(unittest.TestCase):
    def test_payload_matches_partner_api(self):
        payload = filled_wizard().to_payload()
        self.assertEqual(payload["address"], "ул. Ленина, 5")
        self.assertEqual(payload["primary_photo"], "https://cdn.test/hall.jpg")
        self.assertEqual(payload["working_hours"]["friday"], {"open": "09:00", "close": "22:00"})
        self.assertEqual(payload["working_hours"]["sunday"], {"open": "11:00", "close": "23:00"})
        self.assertEqual(payload["features"], [])

    def test_submit_requires_complete_data(self):
        wizard = PartnerRegistrationWizard()
        calls = []
        self.assertFalse(wizard.submit(calls.append))
        self.assertEqual(wizard.error, INCOMPLETE_MESSAGE)
        self.assertEqual(calls, [])

    def test_submit_captures_client_errors(self):
        def failing(payload):
            raise RuntimeError("timeout")

        wizard = filled_wizard()
        self.assertFalse(wizard.submit(failing))
        self.assertIn("timeout", wizard.error)
        self.assertFalse(wizard.is_submitting)

    def test_submit_and_reset(self):
        wizard = filled_wizard()
        self.assertTrue(wizard.submit(lambda payload: {"id": "est-1"}))
        self.assertEqual(wizard.result, {"id": "est-1"})
        wizard.reset()
        self.assertEqual(wizard.current_step, 0)
        self.assertEqual(wizard.data.categories, [])

    def test_expand_working_hours_keeps_per_day_input(self):
        hours = {"monday": {"open": "10:00", "close": "20:00"}}
        self.assertEqual(expand_working_hours(hours), hours)
        self.assertIsNone(expand_working_hours(None))


class SearchFilterStateTests(unittest.TestCase):
    def test_query_params(self):
        state = SearchFilterState(
            distance_m=3000,
            price_ranges=["$", "$$"],
            hours_filter="until_morning",
            features=["wifi"],
        )
        self.assertEqual(
            state.to_query_params(),
            {
                "max_distance": 3000,
                "priceRange": "$,$$",
                "hours_filter": "until_morning",
                "features": "wifi",
            },
        )
        self.assertEqual(state.active_count, 5)
        state.reset()
        self.assertEqual(state.to_query_params(), {})

    def test_distance_options(self):
        self.assertIsNone(distance_to_meters(None))
        with self.assertRaises(ValueError):
            distance_to_meters(2000)


if __name__ == "__main__":
    unittest.main()
