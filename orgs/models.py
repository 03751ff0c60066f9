"""
orgs/models.py -- Domain dataclasses for organizations and memberships.

These are pure data containers with zero logic. Membership rules (owner on
creation, one role per pair, cascade on delete) live in orgs/store.py and the
schema it declares.
"""

from dataclasses import dataclass
from typing import Optional

OWNER = "owner"
MEMBER = "member"


@dataclass
class Organization:
    """A tenant. Every documentation record belongs to exactly one.

    name is a display label and is NOT unique -- two tenants may both be
    called "Acme". id is the only stable reference.

    role is the viewing user's membership role in this organization. It is
    filled in by list_organizations_for_user() and create_organization_with_owner()
    and is None on records loaded by id.
    """

    name: str
    id: Optional[str] = None
    industry: Optional[str] = None
    logo: Optional[str] = None  # logo URL
    created_at: str = ""
    updated_at: str = ""
    role: Optional[str] = None


@dataclass
class Membership:
    """One user's role inside one organization. At most one per pair."""

    organization_id: str
    user_id: str
    role: str = MEMBER  # "owner" | "member"
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Member:
    """A row of an organization's member list: user profile joined with the membership role."""

    user_id: str
    name: str
    email: str
    image: Optional[str]
    global_role: str
    org_role: str
