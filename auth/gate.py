"""
auth/gate.py -- Route-level access decision.

gate_redirect() is a pure function of (authenticated, path). It touches no
request object, no store, and no clock, so every branch is unit-testable
without an ASGI stack. api/main.py wraps it in an HTTP middleware that runs
before any route handler.

Route classes:
  AUTH       /auth, /auth/...      login and registration pages
  API        /api, /api/...        JSON endpoints (they answer 401 themselves)
  PUBLIC     /                     landing page
  STATIC     /static/..., /favicon.ico
  PROTECTED  everything else

Rules:
  A. not authenticated + PROTECTED  -> /auth/login?callbackUrl=<path>
  B. authenticated + AUTH           -> /dashboard
  otherwise                         -> pass through (None)

callbackUrl carries the request path only, never scheme/host/query, so the
post-login redirect cannot be pointed off-site (see web.routes._safe_callback).

Layer rule: no imports from api/, web/, or orgs/.
"""

from __future__ import annotations

from enum import Enum
from urllib.parse import urlencode

LOGIN_PATH = "/auth/login"
DASHBOARD_PATH = "/dashboard"


class RouteKind(str, Enum):
    AUTH = "auth"
    API = "api"
    PUBLIC = "public"
    STATIC = "static"
    PROTECTED = "protected"


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def classify_route(path: str) -> RouteKind:
    if path.startswith("/static/") or path == "/favicon.ico":
        return RouteKind.STATIC
    if _under(path, "/auth"):
        return RouteKind.AUTH
    if _under(path, "/api"):
        return RouteKind.API
    if path == "/":
        return RouteKind.PUBLIC
    return RouteKind.PROTECTED


def login_redirect_url(path: str) -> str:
    """Build the login URL that returns the user to path after sign-in."""
    return f"{LOGIN_PATH}?{urlencode({'callbackUrl': path}, safe='/')}"


def gate_redirect(authenticated: bool, path: str) -> str | None:
    """Return the redirect target for this request, or None to let it through."""
    kind = classify_route(path)
    if not authenticated and kind is RouteKind.PROTECTED:
        return login_redirect_url(path)
    if authenticated and kind is RouteKind.AUTH:
        return DASHBOARD_PATH
    return None
