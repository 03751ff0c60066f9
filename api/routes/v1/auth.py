"""
api/routes/v1/auth.py -- Registration and session REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create an account (public, rate-limited)
  POST /api/v1/auth/login      -- password login; sets JWT cookie (public, rate-limited)
  POST /api/v1/auth/logout     -- clears cookie; 200
  GET  /api/v1/auth/me         -- current user info (requires auth)

Security:
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_email() + verify_password().
  Cache-Control: no-store on login responses so the token is never cached.
  Registration responses never include the password hash: the route maps the
  domain User through UserResponse, which has no password field.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit, register_limit
from api.models import LoginRequest, LoginResponse, RegisterRequest, RegisterResponse, UserResponse
from auth.accounts import authenticate_user, register_user
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from auth.tokens import COOKIE_NAME, issue_session_token, set_auth_cookie
from core.config import get_settings
from core.errors import EmailConflict

_settings = get_settings()

# Auth policy:
# - POST /api/v1/auth/register: public -- anyone may create an account
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:   public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:       requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
@limiter.limit(register_limit)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create a user account.

    400 if the body fails RegisterRequest (before any store access), 409 if
    the email is already registered, 500 on any storage failure.
    """
    user_store: UserStore = request.app.state.user_store
    try:
        user = register_user(user_store, body.name, body.email, body.password)
    except EmailConflict as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": exc.code, "message": str(exc)},
        ) from exc
    return RegisterResponse(user=UserResponse.from_user(user))


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set JWT cookie.

    Returns the same generic error for an unknown email and a wrong password
    ("bad_credentials") to avoid leaking which emails are registered.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = issue_session_token(user)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=_settings.token_expire_seconds,
            user=UserResponse.from_user(user),
        ).model_dump(),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout")
def logout() -> JSONResponse:
    """Clear the JWT cookie and end the session."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie(COOKIE_NAME)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the profile of the currently authenticated user."""
    return UserResponse.from_user(current_user)
