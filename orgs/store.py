"""
orgs/store.py -- SQLAlchemy-backed persistence for organizations and memberships.

Uses SQLAlchemy Core (not ORM) so the dataclasses in orgs/models.py remain the
authoritative domain representation.

Pattern: Repository + Data Mapper. OrganizationStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Membership rows are owned by this store. Two guarantees come from the schema
rather than from code:
  UNIQUE(organization_id, user_id)  -- a user holds one role per organization.
  ON DELETE CASCADE on both FKs     -- deleting an organization or a user
                                       removes its memberships. Requires
                                       PRAGMA foreign_keys=ON (core/database.py).

Creating an organization and granting its owner membership happen in ONE
transaction (create_organization_with_owner). If the membership insert fails
the organization insert is rolled back -- there is no orphaned organization.

add_membership() failure mapping (checked inside the insert transaction):
  organization id does not exist  -> MissingReference
  user id does not exist          -> MissingReference
  pair already present            -> DuplicateMembership
  any other database error        -> StoreFailure (logged, message generic)

Read methods raise StoreFailure on database errors too. A lookup miss is
not an error: get_* return None and list_* return [].

The users table belongs to auth/store.py. It is referenced here by name only
(a lightweight table() clause) so orgs/ does not import auth/.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = OrganizationStore(engine)
    org = store.create_organization_with_owner(user_id, "Acme", industry="MSP")
    store.add_membership(other_user_id, org.id)
    orgs = store.list_organizations_for_user(user_id)
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import Column, ForeignKey, String, Table, Text, UniqueConstraint, column, select, table
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.database import metadata, now_iso
from core.errors import DuplicateMembership, MissingReference, StoreFailure
from orgs.models import MEMBER, OWNER, Member, Membership, Organization

logger = logging.getLogger("itdoc.orgs")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

organizations = Table(
    "organizations",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("industry", String(255)),
    Column("logo", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

organization_users = Table(
    "organization_users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("organization_id", String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("role", String(30), nullable=False, server_default=MEMBER),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("organization_id", "user_id", name="uq_organization_user"),
)

# Read-only view of auth's users table.
_users = table("users", column("id"), column("name"), column("email"), column("image"), column("role"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrganizationStore:
    """Repository for Organization and Membership entities."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    def create_organization(
        self, name: str, industry: Optional[str] = None, logo: Optional[str] = None
    ) -> Organization:
        """Insert an organization with no members and return it.

        Prefer create_organization_with_owner() from request handlers -- an
        organization nobody belongs to is unreachable through the API.
        """
        try:
            with self.engine.begin() as conn:
                return self._insert_organization(conn, name, industry, logo)
        except SQLAlchemyError as exc:
            logger.exception("Failed to create organization")
            raise StoreFailure() from exc

    def create_organization_with_owner(
        self,
        owner_id: str,
        name: str,
        industry: Optional[str] = None,
        logo: Optional[str] = None,
    ) -> Organization:
        """Create an organization and grant owner_id the "owner" role atomically.

        Both inserts share one transaction. Any failure -- including an
        owner_id that does not exist -- rolls back the organization row too.

        Raises MissingReference if owner_id is not a user, StoreFailure on any
        other database error.
        """
        try:
            with self.engine.begin() as conn:
                org = self._insert_organization(conn, name, industry, logo)
                self._insert_membership(conn, org.id, owner_id, OWNER)
        except SQLAlchemyError as exc:
            logger.exception("Failed to create organization with owner")
            raise StoreFailure() from exc
        logger.info("Organization %s created with owner %s", org.id, owner_id)
        org.role = OWNER
        return org

    def get_organization(self, organization_id: str) -> Optional[Organization]:
        """Look up an organization by id. Returns None if not found."""
        rows = self._read(organizations.select().where(organizations.c.id == organization_id), "organization")
        return _row_to_organization(rows[0]) if rows else None

    def delete_organization(self, organization_id: str) -> bool:
        """Delete an organization and, by FK cascade, all of its memberships.

        Returns True if a row was deleted, False if organization_id was not found.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(organizations.delete().where(organizations.c.id == organization_id))
        except SQLAlchemyError as exc:
            logger.exception("Failed to delete organization %s", organization_id)
            raise StoreFailure() from exc
        return result.rowcount > 0

    def list_organizations_for_user(self, user_id: str) -> list[Organization]:
        """Return every organization user_id belongs to, with the user's role on each.

        No ORDER BY: results come back in the database's natural order.
        """
        stmt = (
            select(organizations, organization_users.c.role.label("member_role"))
            .join(organization_users, organization_users.c.organization_id == organizations.c.id)
            .where(organization_users.c.user_id == user_id)
        )
        rows = self._read(stmt, "organizations for user")
        return [_row_to_organization(r, role=r.member_role) for r in rows]

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def add_membership(self, user_id: str, organization_id: str, role: str = MEMBER) -> Membership:
        """Add user_id to organization_id with role and return the new membership.

        Raises MissingReference, DuplicateMembership or StoreFailure -- see the
        module docstring for the exact mapping.
        """
        try:
            with self.engine.begin() as conn:
                return self._insert_membership(conn, organization_id, user_id, role)
        except SQLAlchemyError as exc:
            logger.exception("Failed to add user %s to organization %s", user_id, organization_id)
            raise StoreFailure() from exc

    def get_membership(self, organization_id: str, user_id: str) -> Optional[Membership]:
        """Return user_id's membership in organization_id, or None if not a member."""
        stmt = organization_users.select().where(
            (organization_users.c.organization_id == organization_id) & (organization_users.c.user_id == user_id)
        )
        rows = self._read(stmt, "membership")
        return _row_to_membership(rows[0]) if rows else None

    def list_members_for_organization(self, organization_id: str) -> list[Member]:
        """Return the profile and membership role of every member of organization_id."""
        stmt = (
            select(
                _users.c.id,
                _users.c.name,
                _users.c.email,
                _users.c.image,
                _users.c.role,
                organization_users.c.role.label("org_role"),
            )
            .select_from(_users.join(organization_users, organization_users.c.user_id == _users.c.id))
            .where(organization_users.c.organization_id == organization_id)
        )
        rows = self._read(stmt, "members")
        return [_row_to_member(r) for r in rows]

    def _read(self, stmt, what: str) -> list:
        """Run a read-only statement; database errors become StoreFailure."""
        try:
            with self.engine.connect() as conn:
                return conn.execute(stmt).fetchall()
        except SQLAlchemyError as exc:
            logger.exception("Failed to read %s", what)
            raise StoreFailure() from exc

    # ------------------------------------------------------------------
    # Transaction-scoped inserts
    #
    # Both take an open Connection from engine.begin(). Raising out of them
    # aborts the caller's whole transaction.
    # ------------------------------------------------------------------

    def _insert_organization(
        self, conn: Connection, name: str, industry: Optional[str], logo: Optional[str]
    ) -> Organization:
        org = Organization(
            id=str(uuid.uuid4()),
            name=name,
            industry=_blank_to_none(industry),
            logo=_blank_to_none(logo),
            created_at=now_iso(),
        )
        org.updated_at = org.created_at
        conn.execute(
            organizations.insert().values(
                id=org.id,
                name=org.name,
                industry=org.industry,
                logo=org.logo,
                created_at=org.created_at,
                updated_at=org.updated_at,
            )
        )
        return org

    def _insert_membership(self, conn: Connection, organization_id: str, user_id: str, role: str) -> Membership:
        org_exists = conn.execute(select(organizations.c.id).where(organizations.c.id == organization_id)).first()
        if org_exists is None:
            raise MissingReference("Organization does not exist.")
        user_exists = conn.execute(select(_users.c.id).where(_users.c.id == user_id)).first()
        if user_exists is None:
            raise MissingReference("User does not exist.")

        membership = Membership(
            id=str(uuid.uuid4()),
            organization_id=organization_id,
            user_id=user_id,
            role=role,
            created_at=now_iso(),
        )
        membership.updated_at = membership.created_at
        try:
            conn.execute(
                organization_users.insert().values(
                    id=membership.id,
                    organization_id=organization_id,
                    user_id=user_id,
                    role=role,
                    created_at=membership.created_at,
                    updated_at=membership.updated_at,
                )
            )
        except IntegrityError as exc:
            # Both references were verified above in this transaction, so the
            # only constraint left to violate is UNIQUE(organization_id, user_id).
            raise DuplicateMembership() from exc
        return membership


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_organization(row, role: Optional[str] = None) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        industry=row.industry,
        logo=row.logo,
        created_at=row.created_at,
        updated_at=row.updated_at,
        role=role,
    )


def _row_to_membership(row) -> Membership:
    return Membership(
        id=row.id,
        organization_id=row.organization_id,
        user_id=row.user_id,
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_member(row) -> Member:
    return Member(
        user_id=row.id,
        name=row.name,
        email=row.email,
        image=row.image,
        global_role=row.role,
        org_role=row.org_role,
    )
