"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in orgs/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/, web/, or orgs/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """Represents a registered identity in itdoc.

    email is the login key. It is stored exactly as submitted and matched
    case-sensitively -- "A@x.com" and "a@x.com" are different accounts.

    hashed_password is the bcrypt hash. It is None on any User handed back to
    a caller outside the store (see accounts.register_user) so the hash cannot
    leak into a response by accident.

    role is the global role tag ("user" by default). It is independent of the
    per-organization role held in a Membership.
    """

    name: str
    email: str
    id: str | None = None  # UUID4, assigned by the store on insert
    hashed_password: str | None = None
    image: str | None = None  # avatar URL
    role: str = "user"
    created_at: str | None = None
    updated_at: str | None = None
