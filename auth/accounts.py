"""
auth/accounts.py -- Registration and password login against a UserStore.

Both functions take the store as an argument rather than reaching for a
global, so they run the same way under the API, the web form routes, and
unit tests.

Input validation (name/email/password shape) is the API layer's job -- see
api.models.RegisterRequest. By the time register_user() runs the input has
already passed the schema, so nothing here re-checks lengths.

Layer rule: no imports from api/, web/, or orgs/.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from auth.models import User
from auth.store import UserStore
from auth.tokens import DUMMY_HASH, hash_password, verify_password
from core.errors import EmailConflict, StoreFailure

logger = logging.getLogger("itdoc.auth")


def public_user(user: User) -> User:
    """Return a copy of user with the password hash removed."""
    return replace(user, hashed_password=None)


def register_user(store: UserStore, name: str, email: str, password: str) -> User:
    """Create a user account and return it without the password hash.

    The email pre-check avoids paying for a bcrypt hash on an obvious
    duplicate. It is not the uniqueness guarantee -- the UNIQUE(email)
    constraint is, and UserStore.create_user maps its violation to
    EmailConflict as well.

    Raises:
        EmailConflict: the email is already registered.
        StoreFailure:  the insert or read-back failed for any other reason.
    """
    if store.get_by_email(email) is not None:
        raise EmailConflict()

    user_id = store.create_user(User(name=name, email=email, hashed_password=hash_password(password)))
    created = store.get_by_id(user_id)
    if created is None:
        logger.error("User %s missing immediately after insert", user_id)
        raise StoreFailure()
    logger.info("Registered user %s", user_id)
    return public_user(created)


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate an email/password login with timing equalization.

    Always runs bcrypt whether or not the email exists, so an attacker cannot
    enumerate registered emails by measuring response time:
    - Unknown email: bcrypt runs against DUMMY_HASH (same cost as a real check)
    - Wrong password: bcrypt runs against the real hash

    Returns the User (hash stripped) on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None or user.hashed_password is None:
        verify_password(password, DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return public_user(user)
