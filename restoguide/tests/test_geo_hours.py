import unittest

from restoguide.errors import AppError
from restoguide.geo import city_for_point, validate_coordinates
from restoguide.hours import (
    derive_hour_flags,
    is_round_the_clock,
    parse_time,
    validate_working_hours,
)

DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def every_day(open_at: str, close_at: str) -> dict:
    return {day: {"open": open_at, "close": close_at} for day in DAYS}


class CoordinateTests(unittest.TestCase):
    def test_point_inside_city(self):
        validate_coordinates(53.9, 27.56, "Минск")
        self.assertEqual(city_for_point(53.9, 27.56), "Минск")

    def test_outside_belarus(self):
        with self.assertRaises(AppError) as ctx:
            validate_coordinates(50.0, 27.0)
        self.assertEqual(ctx.exception.code, "INVALID_LATITUDE")
        with self.assertRaises(AppError) as ctx:
            validate_coordinates(53.9, 40.0)
        self.assertEqual(ctx.exception.code, "INVALID_LONGITUDE")

    def test_city_mismatch(self):
        with self.assertRaises(AppError) as ctx:
            validate_coordinates(53.9, 27.56, "Гомель")
        self.assertEqual(ctx.exception.status_code, 422)
        self.assertEqual(ctx.exception.details["city"], "Гомель")


class HoursTests(unittest.TestCase):
    def test_parse_time(self):
        self.assertEqual(parse_time("09:30"), 570)
        self.assertEqual(parse_time("24:00"), 1440)
        self.assertIsNone(parse_time("24:30"))
        self.assertIsNone(parse_time("9.30"))

    def test_regular_daytime_hours(self):
        flags = derive_hour_flags(every_day("09:00", "21:00"))
        self.assertEqual(
            flags, {"is_24_hours": False, "closes_late": False, "open_overnight": False}
        )

    def test_after_midnight_until_morning(self):
        flags = derive_hour_flags(every_day("20:00", "05:00"))
        self.assertTrue(flags["closes_late"])
        self.assertTrue(flags["open_overnight"])
        self.assertFalse(flags["is_24_hours"])

    def test_closing_at_one_is_late_but_not_overnight(self):
        flags = derive_hour_flags(every_day("12:00", "01:00"))
        self.assertTrue(flags["closes_late"])
        self.assertFalse(flags["open_overnight"])

    def test_round_the_clock_on_every_listed_day(self):
        hours = every_day("00:00", "00:00")
        self.assertTrue(is_round_the_clock(hours))

        weekdays_only = {day: {"open": "00:00", "close": "24:00"} for day in DAYS[:5]}
        self.assertTrue(is_round_the_clock(weekdays_only))
        self.assertTrue(derive_hour_flags(weekdays_only)["is_24_hours"])

        weekdays_only["saturday"] = {"open": "10:00", "close": "22:00"}
        self.assertFalse(is_round_the_clock(weekdays_only))

    def test_round_the_clock_needs_open_days(self):
        self.assertFalse(is_round_the_clock({}))
        self.assertFalse(is_round_the_clock(None))
        self.assertFalse(is_round_the_clock({"monday": {"closed": True}}))

    def test_validate_working_hours(self):
        self.assertEqual(validate_working_hours(every_day("09:00", "21:00")), [])
        self.assertEqual(validate_working_hours({"monday": {"closed": True}}), [])
        problems = validate_working_hours({"funday": {}, "monday": {"open": "x", "close": "10:00"}})
        self.assertEqual(problems, ["unknown day 'funday'", "monday.open must be HH:MM"])
        self.assertEqual(len(validate_working_hours([])), 1)


if __name__ == "__main__":
    unittest.main()
