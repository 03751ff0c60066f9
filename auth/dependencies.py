"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two session transports are checked in priority order:
  1. JWT cookie ("access_token") -- set by the web login flow.
  2. Authorization: Bearer <token> header -- API clients.
The first one that verifies wins; an invalid cookie falls through to the header.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

The organization-membership check lives in api/routes/v1/organizations.py
because it needs the organization store; this module only knows about users.

Layer rule: no imports from web/ or orgs/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import HTTPException, Request

from auth.accounts import public_user
from auth.models import User
from auth.tokens import COOKIE_NAME, verify_session_token


def _session_tokens(request: Request) -> Iterator[str]:
    """Yield the raw session tokens the request carries, cookie first."""
    cookie = request.cookies.get(COOKIE_NAME)
    if cookie:
        yield cookie
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer ") and auth_header[7:]:
        yield auth_header[7:]


def session_user_id(request: Request) -> str | None:
    """Return the user id of the first carried token that verifies, or None.

    A stale cookie left over from an old browser session does not hide a
    valid Bearer header sent on the same request.
    """
    for token in _session_tokens(request):
        user_id = verify_session_token(token)
        if user_id is not None:
            return user_id
    return None


def is_authenticated(request: Request) -> bool:
    """True if the request carries a token that verifies.

    Signature and expiry only -- no database round trip. The route gate
    middleware calls this on every request.
    """
    return session_user_id(request) is not None


def try_get_current_user(request: Request) -> User | None:
    """Authenticate the request and load the user record.

    Returns the User (hash stripped) on success, None on any failure. A token
    that verifies but names a user id that no longer exists is a failure.
    """
    user_id = session_user_id(request)
    if user_id is None:
        return None
    user = request.app.state.user_store.get_by_id(user_id)
    if user is None:
        return None
    return public_user(user)


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
