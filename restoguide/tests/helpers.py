"""
Shared fixtures for API tests: an app wired to in-memory SQLite, counters,
rate limiting and storage, plus shortcuts for users, partners and published
establishments.
"""

from __future__ import annotations

import unittest
from itertools import count

from fastapi.testclient import TestClient

from restoguide.app import create_app
from restoguide.config import Settings, get_settings
from restoguide.counters import InMemoryCounterStore
from restoguide.db import Database, UserRow
from restoguide.dependencies import override_dependencies
from restoguide.ratelimit import RateLimiter
from restoguide.security import create_access_token, hash_password
from restoguide.storage import InMemoryStorageClient

API = "/api/v1"
PASSWORD = "Secret123"
TEST_SETTINGS = Settings(bcrypt_rounds=4)

WORKING_HOURS = {
    day: {"open": "10:00", "close": "22:00"}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
}

_sequence = count(1)


def establishment_payload(**overrides) -> dict:
    payload = {
        "name": f"Кафе {next(_sequence)}",
        "description": "Уютное место в центре",
        "city": "Минск",
        "address": "пр. Независимости, 1",
        "latitude": 53.9,
        "longitude": 27.56,
        "phone": "+375291234567",
        "categories": ["Ресторан"],
        "cuisines": ["Европейская"],
        "price_range": "$$",
        "working_hours": WORKING_HOURS,
        "interior_photos": ["https://media.example.test/a.jpg"],
        "menu_photos": ["https://media.example.test/menu.jpg"],
        "primary_photo": "https://media.example.test/a.jpg",
        "legal_name": "ООО Кафе",
        "unp": "123456789",
        "contact_person": "Иван",
        "contact_email": "owner@example.com",
    }
    payload.update(overrides)
    return payload


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.db = Database("sqlite+pysqlite:///:memory:")
        self.counters = InMemoryCounterStore()
        self.storage = InMemoryStorageClient()
        self.limiter = RateLimiter()
        override_dependencies(
            database=self.db,
            counter_store=self.counters,
            storage_client=self.storage,
            rate_limiter=self.limiter,
        )
        app = create_app()
        app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
        self.client = TestClient(app)

    def tearDown(self):
        override_dependencies()

    def register(self, email: str, name: str = "Тестовый Пользователь") -> dict:
        response = self.client.post(
            f"{API}/auth/register",
            json={"email": email, "password": PASSWORD, "name": name},
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["data"]

    def login(self, email: str) -> dict:
        response = self.client.post(
            f"{API}/auth/login", json={"email": email, "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["data"]

    def user_token(self, email: str) -> str:
        return self.register(email)["accessToken"]

    def create_admin(self, email: str = "admin@example.com") -> str:
        with self.db.Session() as session:
            user = UserRow(
                email=email,
                name="Администратор",
                role="admin",
                password_hash=hash_password(PASSWORD, rounds=4),
            )
            session.add(user)
            session.commit()
            return create_access_token(
                {"id": user.id, "email": user.email, "role": user.role}, TEST_SETTINGS
            )

    def create_partner(self, email: str, **overrides) -> tuple[str, dict]:
        """Register a user, create their first establishment and log in again as partner."""
        token = self.user_token(email)
        response = self.client.post(
            f"{API}/partner/establishments",
            json=establishment_payload(**overrides),
            headers=auth(token),
        )
        self.assertEqual(response.status_code, 201, response.text)
        establishment = response.json()["data"]["establishment"]
        return self.login(email)["accessToken"], establishment

    def publish(self, partner_token: str, establishment_id: str, admin_token: str) -> None:
        response = self.client.post(
            f"{API}/partner/establishments/{establishment_id}/submit",
            headers=auth(partner_token),
        )
        self.assertEqual(response.status_code, 200, response.text)
        response = self.client.post(
            f"{API}/admin/establishments/{establishment_id}/moderate",
            json={"action": "approve"},
            headers=auth(admin_token),
        )
        self.assertEqual(response.status_code, 200, response.text)

    def create_active_establishment(
        self, email: str, admin_token: str, **overrides
    ) -> tuple[str, dict]:
        partner_token, establishment = self.create_partner(email, **overrides)
        self.publish(partner_token, establishment["id"], admin_token)
        return partner_token, establishment
