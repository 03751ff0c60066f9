"""
tests/test_gate.py -- Route-level gate: pure decision function and middleware.

The first two classes exercise auth.gate directly -- no ASGI stack, no store.
TestGateMiddleware runs the same rules through the real app using the
web_client fixture (follow_redirects=False) and asserts on Location headers.

Coverage:
  - Route classification for every route class
  - Rule A: unauthenticated + protected -> /auth/login?callbackUrl=<path>
  - Rule B: authenticated + auth page   -> /dashboard
  - Everything else passes through, including static assets and /api
  - Cookie and Bearer transports both count as authenticated
  - A token that fails verification counts as unauthenticated
  - A stale cookie does not hide a valid Bearer header
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from auth.gate import DASHBOARD_PATH, RouteKind, classify_route, gate_redirect, login_redirect_url
from auth.tokens import COOKIE_NAME


class TestClassifyRoute:
    @pytest.mark.parametrize(
        "path, kind",
        [
            ("/auth", RouteKind.AUTH),
            ("/auth/login", RouteKind.AUTH),
            ("/auth/register", RouteKind.AUTH),
            ("/api", RouteKind.API),
            ("/api/v1/organizations", RouteKind.API),
            ("/", RouteKind.PUBLIC),
            ("/static/app.css", RouteKind.STATIC),
            ("/favicon.ico", RouteKind.STATIC),
            ("/dashboard", RouteKind.PROTECTED),
            ("/organizations/123", RouteKind.PROTECTED),
        ],
    )
    def test_classification(self, path: str, kind: RouteKind) -> None:
        assert classify_route(path) is kind

    def test_prefix_match_is_segment_aware(self) -> None:
        """/authors and /apiary share a prefix string with /auth and /api but are ordinary pages."""
        assert classify_route("/authors") is RouteKind.PROTECTED
        assert classify_route("/apiary") is RouteKind.PROTECTED


class TestGateRedirect:
    def test_unauthenticated_protected_goes_to_login(self) -> None:
        assert gate_redirect(False, "/dashboard") == "/auth/login?callbackUrl=/dashboard"

    def test_callback_keeps_nested_path_unescaped(self) -> None:
        target = gate_redirect(False, "/organizations/abc/members")
        query = parse_qs(urlparse(target).query)
        assert query["callbackUrl"] == ["/organizations/abc/members"]
        assert "%2F" not in target

    def test_authenticated_auth_page_goes_to_dashboard(self) -> None:
        assert gate_redirect(True, "/auth/login") == DASHBOARD_PATH
        assert gate_redirect(True, "/auth/register") == DASHBOARD_PATH

    @pytest.mark.parametrize("path", ["/", "/api/v1/organizations", "/static/logo.png", "/favicon.ico", "/auth/login"])
    def test_unauthenticated_passes_non_protected(self, path: str) -> None:
        assert gate_redirect(False, path) is None

    @pytest.mark.parametrize("path", ["/", "/dashboard", "/api/v1/auth/me", "/static/logo.png"])
    def test_authenticated_passes_non_auth(self, path: str) -> None:
        assert gate_redirect(True, path) is None

    def test_login_redirect_url_escapes_query_characters(self) -> None:
        """A path containing '&' must not smuggle an extra parameter into the login URL."""
        url = login_redirect_url("/a&b=c")
        query = parse_qs(urlparse(url).query)
        assert query == {"callbackUrl": ["/a&b=c"]}


class TestGateMiddleware:
    """The gate as mounted on the app, ahead of every route handler."""

    def test_unauthenticated_dashboard_redirects_to_login(self, web_client) -> None:
        resp = web_client.client.get("/dashboard")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/auth/login?callbackUrl=/dashboard"

    def test_authenticated_login_page_redirects_to_dashboard(self, web_client) -> None:
        web_client.client.cookies.set(COOKIE_NAME, web_client.token)
        resp = web_client.client.get("/auth/login")
        assert resp.status_code == 302
        assert resp.headers["location"] == DASHBOARD_PATH

    def test_bearer_header_counts_as_authenticated(self, web_client) -> None:
        resp = web_client.client.get("/auth/login", headers={"Authorization": f"Bearer {web_client.token}"})
        assert resp.status_code == 302
        assert resp.headers["location"] == DASHBOARD_PATH

    def test_stale_cookie_falls_through_to_bearer(self, web_client) -> None:
        web_client.client.cookies.set(COOKIE_NAME, "not-a-jwt")
        resp = web_client.client.get("/auth/login", headers={"Authorization": f"Bearer {web_client.token}"})
        assert resp.status_code == 302
        assert resp.headers["location"] == DASHBOARD_PATH

    def test_authenticated_protected_page_is_not_redirected(self, web_client) -> None:
        """The gate lets the request through; no page is mounted there, so the router answers 404."""
        web_client.client.cookies.set(COOKIE_NAME, web_client.token)
        resp = web_client.client.get("/dashboard")
        assert resp.status_code == 404

    def test_landing_page_is_not_gated(self, web_client) -> None:
        resp = web_client.client.get("/")
        assert resp.status_code != 302

    def test_invalid_token_is_unauthenticated(self, web_client) -> None:
        web_client.client.cookies.set(COOKIE_NAME, "not-a-jwt")
        resp = web_client.client.get("/dashboard")
        assert resp.status_code == 302
        assert resp.headers["location"].startswith("/auth/login?callbackUrl=")

    def test_api_routes_answer_401_instead_of_redirect(self, web_client) -> None:
        resp = web_client.client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"
