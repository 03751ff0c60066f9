"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount as middleware), api/routes/v1/auth.py and
web/routes.py (to apply per-route limits with @limiter.limit()).

A single shared instance means the JSON login and the form login draw from
the same in-memory storage, counted per client address and per route.

Decorator order matters: @limiter.limit() goes BELOW @router.post() so the
router registers the rate-limited wrapper, not the bare function.

The limit strings are read from Settings on every request rather than frozen
at import, so LOGIN_RATE_LIMIT / REGISTER_RATE_LIMIT apply as configured.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_limit() -> str:
    return get_settings().login_rate_limit


def register_limit() -> str:
    return get_settings().register_rate_limit
