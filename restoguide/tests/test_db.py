import unittest

from sqlalchemy import func, select

from restoguide.db import Database, EstablishmentRow, UserRow, haversine_km
from restoguide.services.search import json_array_contains_all, json_array_overlap


class DatabaseTests(unittest.TestCase):
    """
    Runs the portable query pieces against SQLite; on Postgres the same
    expressions compile to PostGIS and JSONB operators.
    """

    @classmethod
    def setUpClass(cls):
        cls.db = Database("sqlite+pysqlite:///:memory:")
        with cls.db.Session() as session:
            owner = UserRow(email="owner@example.com", name="Владелец", role="partner")
            session.add(owner)
            session.flush()
            session.add_all(
                [
                    EstablishmentRow(
                        partner_id=owner.id,
                        name="Кофейня Зерно",
                        city="Минск",
                        address="ул. Кирова, 1",
                        latitude=53.9,
                        longitude=27.56,
                        categories=["Кофейня"],
                        cuisines=["Европейская"],
                        attributes={"features": ["wifi", "terrace"]},
                    ),
                    EstablishmentRow(
                        partner_id=owner.id,
                        name="Бар Хмель",
                        city="Минск",
                        address="ул. Кирова, 2",
                        latitude=53.95,
                        longitude=27.70,
                        categories=["Бар", "Паб"],
                        cuisines=["Народная"],
                        attributes={"features": ["wifi"]},
                    ),
                ]
            )
            session.commit()

    def names(self, *conditions):
        with self.db.Session() as session:
            rows = session.execute(
                select(EstablishmentRow.name).where(*conditions).order_by(EstablishmentRow.name)
            ).scalars()
            return list(rows)

    def test_health(self):
        self.assertEqual(self.db.health()["database"], "sqlite")

    def test_haversine(self):
        self.assertEqual(haversine_km(53.9, 27.56, 53.9, 27.56), 0.0)
        # Minsk to Brest is roughly 325 km.
        self.assertAlmostEqual(haversine_km(53.9, 27.56, 52.1, 23.7), 325, delta=10)
        self.assertIsNone(haversine_km(None, 27.56, 52.1, 23.7))

    def test_distance_expression(self):
        distance = self.db.distance_km(53.9, 27.56)
        self.assertEqual(self.names(distance < 1), ["Кофейня Зерно"])
        self.assertEqual(len(self.names(distance < 20)), 2)

    def test_json_array_overlap(self):
        column = EstablishmentRow.categories
        either = json_array_overlap(self.db, column, ["Паб", "Пиццерия"])
        self.assertEqual(self.names(either), ["Бар Хмель"])
        self.assertEqual(self.names(json_array_overlap(self.db, column, ["Ресторан"])), [])

    def test_json_array_contains_all(self):
        column = EstablishmentRow.attributes
        both = json_array_contains_all(self.db, column, "features", ["wifi", "terrace"])
        self.assertEqual(self.names(both), ["Кофейня Зерно"])
        self.assertEqual(
            len(self.names(json_array_contains_all(self.db, column, "features", ["wifi"]))), 2
        )

    def test_lower_folds_cyrillic(self):
        self.assertEqual(
            self.names(func.lower(EstablishmentRow.name).contains("хмель")), ["Бар Хмель"]
        )


if __name__ == "__main__":
    unittest.main()
