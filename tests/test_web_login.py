"""
tests/test_web_login.py -- Browser form login at POST /auth/login.

Runs through the real ASGI stack with web_client (follow_redirects=False) so
the Location header and Set-Cookie of the redirect can be inspected.

Coverage:
  - Valid credentials -> 302 to callbackUrl, session cookie set
  - No callbackUrl -> 302 to /dashboard
  - Wrong password / unknown email -> 302 back to the login page with an error
  - Open-redirect prevention: absolute, protocol-relative and /auth callbacks
    all fall back to /dashboard
  - The form shares the login rate limit: 429 once it is exceeded
"""

from __future__ import annotations

import pytest

from auth.tokens import COOKIE_NAME, verify_session_token

SEED_EMAIL = "owner@example.com"
SEED_PASSWORD = "ownerpass123"


def _login(client, callback: str | None = None, password: str = SEED_PASSWORD, email: str = SEED_EMAIL):
    params = {"callbackUrl": callback} if callback is not None else None
    return client.post("/auth/login", params=params, data={"email": email, "password": password})


class TestFormLoginSuccess:
    def test_redirects_to_callback_and_sets_cookie(self, web_client) -> None:
        resp = _login(web_client.client, callback="/organizations")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/organizations"
        token = resp.cookies.get(COOKIE_NAME)
        assert token, "login must set the session cookie"
        assert verify_session_token(token) == web_client.user_id

    def test_cookie_is_http_only(self, web_client) -> None:
        resp = _login(web_client.client)
        set_cookie = resp.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "samesite=lax" in set_cookie

    def test_defaults_to_dashboard(self, web_client) -> None:
        resp = _login(web_client.client)
        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"

    def test_response_is_not_cached(self, web_client) -> None:
        resp = _login(web_client.client)
        assert resp.headers["cache-control"] == "no-store"


class TestFormLoginFailure:
    def test_wrong_password_redirects_back_with_error(self, web_client) -> None:
        resp = _login(web_client.client, password="wrong-password")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/auth/login?error=bad_credentials"
        assert COOKIE_NAME not in resp.cookies

    def test_unknown_email_is_indistinguishable(self, web_client) -> None:
        resp = _login(web_client.client, email="nobody@example.com")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/auth/login?error=bad_credentials"


class TestCallbackValidation:
    @pytest.mark.parametrize(
        "callback",
        [
            "https://attacker.example/phish",
            "//attacker.example",
            "/\\attacker.example",
            "javascript:alert(1)",
            "/auth/login",
            "",
        ],
    )
    def test_unsafe_callback_falls_back_to_dashboard(self, web_client, callback: str) -> None:
        resp = _login(web_client.client, callback=callback)
        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"


class TestFormLoginThrottle:
    def test_third_attempt_is_429(self, web_client, tight_rate_limits) -> None:
        statuses = [_login(web_client.client, password="wrong-password").status_code for _ in range(3)]
        assert statuses == [302, 302, 429]
