import unittest

from restoguide.tests.helpers import API, PASSWORD, ApiTestCase, auth


class AuthApiTests(ApiTestCase):
    def test_register_returns_user_and_tokens(self):
        data = self.register("Anna@Example.com", name="Анна")
        self.assertEqual(data["user"]["email"], "anna@example.com")
        self.assertEqual(data["user"]["role"], "user")
        self.assertEqual(data["tokenType"], "Bearer")
        self.assertEqual(data["expiresIn"], 900)
        self.assertEqual(len(data["refreshToken"]), 64)

    def test_duplicate_email_is_rejected(self):
        self.register("anna@example.com")
        response = self.client.post(
            f"{API}/auth/register",
            json={"email": "anna@example.com", "password": PASSWORD, "name": "Анна"},
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "EMAIL_EXISTS")

    def test_weak_password_fails_validation(self):
        response = self.client.post(
            f"{API}/auth/register",
            json={"email": "weak@example.com", "password": "password", "name": "Анна"},
        )
        self.assertEqual(response.status_code, 422)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"]["code"], "VALIDATION_ERROR")
        self.assertIsInstance(body["error"]["details"], list)

    def test_phone_registration_requires_phone(self):
        response = self.client.post(
            f"{API}/auth/register",
            json={"email": "a@example.com", "password": PASSWORD, "name": "Анна", "authMethod": "phone"},
        )
        self.assertEqual(response.status_code, 422)

    def test_login_with_wrong_password(self):
        self.register("anna@example.com")
        response = self.client.post(
            f"{API}/auth/login", json={"email": "anna@example.com", "password": "Wrong1234"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_CREDENTIALS")

    def test_login_unknown_user_looks_like_bad_password(self):
        response = self.client.post(
            f"{API}/auth/login", json={"email": "ghost@example.com", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_CREDENTIALS")

    def test_me_requires_token(self):
        response = self.client.get(f"{API}/auth/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "MISSING_TOKEN")

        response = self.client.get(f"{API}/auth/me", headers={"Authorization": "Token abc"})
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN_FORMAT")

        response = self.client.get(f"{API}/auth/me", headers=auth("not-a-jwt"))
        self.assertEqual(response.json()["error"]["code"], "MALFORMED_TOKEN")

    def test_profile_read_and_update(self):
        token = self.user_token("anna@example.com")
        response = self.client.get(f"{API}/auth/me", headers=auth(token))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["user"]["email"], "anna@example.com")

        response = self.client.put(
            f"{API}/auth/me", json={"name": "Анна Петрова"}, headers=auth(token)
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["user"]["name"], "Анна Петрова")

    def test_refresh_rotates_tokens(self):
        data = self.register("anna@example.com")
        response = self.client.post(
            f"{API}/auth/refresh", json={"refreshToken": data["refreshToken"]}
        )
        self.assertEqual(response.status_code, 200)
        rotated = response.json()["data"]
        self.assertNotEqual(rotated["refreshToken"], data["refreshToken"])

    def test_refresh_token_reuse_revokes_all_sessions(self):
        data = self.register("anna@example.com")
        first = self.client.post(
            f"{API}/auth/refresh", json={"refreshToken": data["refreshToken"]}
        ).json()["data"]

        reuse = self.client.post(
            f"{API}/auth/refresh", json={"refreshToken": data["refreshToken"]}
        )
        self.assertEqual(reuse.status_code, 403)
        self.assertEqual(reuse.json()["error"]["code"], "TOKEN_REUSE_DETECTED")

        revoked = self.client.post(
            f"{API}/auth/refresh", json={"refreshToken": first["refreshToken"]}
        )
        self.assertEqual(revoked.status_code, 403)

    def test_unknown_refresh_token(self):
        response = self.client.post(f"{API}/auth/refresh", json={"refreshToken": "f" * 64})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN")

    def test_logout_invalidates_refresh_token(self):
        data = self.register("anna@example.com")
        response = self.client.post(
            f"{API}/auth/logout",
            json={"refreshToken": data["refreshToken"]},
            headers=auth(data["accessToken"]),
        )
        self.assertEqual(response.status_code, 200)
        response = self.client.post(
            f"{API}/auth/refresh", json={"refreshToken": data["refreshToken"]}
        )
        self.assertEqual(response.status_code, 403)

    def test_admin_login_rejects_regular_users(self):
        self.register("anna@example.com")
        response = self.client.post(
            f"{API}/admin/auth/login", json={"email": "anna@example.com", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "ADMIN_ACCESS_REQUIRED")

    def test_admin_login(self):
        self.create_admin("root@example.com")
        response = self.client.post(
            f"{API}/admin/auth/login", json={"email": "root@example.com", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["user"]["role"], "admin")


class AppShellTests(ApiTestCase):
    def test_api_info(self):
        response = self.client.get("/api")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["version"], "v1")

    def test_health(self):
        response = self.client.get(f"{API}/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "healthy")

    def test_unknown_route_uses_error_envelope(self):
        response = self.client.get(f"{API}/nowhere")
        self.assertEqual(response.status_code, 404)
        body = response.json()
        self.assertEqual(body["error"]["code"], "NOT_FOUND")
        self.assertEqual(body["message"], f"Route GET {API}/nowhere not found")

    def test_correlation_id_is_echoed_or_generated(self):
        response = self.client.get("/api", headers={"X-Correlation-ID": "abc"})
        self.assertEqual(response.headers["X-Correlation-ID"], "abc")
        generated = self.client.get("/api").headers["X-Correlation-ID"]
        self.assertTrue(generated.startswith("req_"))


if __name__ == "__main__":
    unittest.main()
