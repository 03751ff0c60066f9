"""
web/routes.py -- Browser form endpoints for the itdoc web UI.

The pages themselves (login form, dashboard, organization screens) are
rendered by the front-end; this router only handles the form posts a browser
makes without JavaScript, and answers with redirects rather than JSON.

Routes:
  POST /auth/login   -- handle email/password form; set cookie; redirect to callbackUrl

The path sits under /auth, so the route gate (auth/gate.py) sends an already
authenticated browser straight to /dashboard before this handler runs.
Logout goes through POST /api/v1/auth/logout: an /auth/logout form post from
a signed-in browser would be bounced by the same rule.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Form, Request
from fastapi.responses import RedirectResponse

from api.limiter import limiter, login_limit
from auth.accounts import authenticate_user
from auth.gate import DASHBOARD_PATH, LOGIN_PATH
from auth.store import UserStore
from auth.tokens import issue_session_token, set_auth_cookie

logger = logging.getLogger("itdoc.web")

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _safe_callback(callback_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths.

    Prevents open redirect attacks where an attacker crafts a URL like:
      /auth/login?callbackUrl=https://attacker.com  or  ?callbackUrl=//attacker.com

    Anything that is not a server-local path falls back to the dashboard.
    Callback targets under /auth are also rejected -- the gate would bounce
    them straight back to the dashboard anyway.
    """
    if (
        callback_url
        and callback_url.startswith("/")
        and not callback_url.startswith("//")
        and not callback_url.startswith("/\\")
        and not callback_url.startswith(LOGIN_PATH)
    ):
        return callback_url
    return DASHBOARD_PATH


# ---------------------------------------------------------------------------
# Auth form routes
# ---------------------------------------------------------------------------


@router.post("/auth/login")
@limiter.limit(login_limit)
def login_post(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
) -> RedirectResponse:
    """Handle the email/password login form submission."""
    user_store: UserStore = request.app.state.user_store
    callback = request.query_params.get("callbackUrl")
    user = authenticate_user(user_store, email, password)
    if user is None:
        logger.info("Form login failed")
        resp = RedirectResponse(f"{LOGIN_PATH}?error=bad_credentials", status_code=302)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = RedirectResponse(_safe_callback(callback), status_code=302)
    set_auth_cookie(resp, issue_session_token(user))
    resp.headers["Cache-Control"] = "no-store"
    return resp

