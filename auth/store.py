"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper (same as orgs/store.py).
UserStore is the repository; _row_to_user is the mapper. Route and dependency
code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The bcrypt hash lives in the `password` column. It is loaded into
  User.hashed_password for verification only; accounts.register_user strips it
  before returning a record to callers.

Errors:
  UNIQUE(email) violations surface as core.errors.EmailConflict. Any other
  SQLAlchemyError, on reads as well as writes, is logged here and re-raised
  as StoreFailure, so the raw database message never reaches the API layer.
  A lookup miss is not an error: get_* return None.

The Engine is injected by the caller (api/main.py lifespan, or a test). The
users table is registered on core.database.metadata so organization_users can
declare a foreign key to it.

Layer rule: no imports from api/, web/, or orgs/.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import Column, String, Table, Text, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import User
from core.database import metadata, now_iso
from core.errors import EmailConflict, StoreFailure

logger = logging.getLogger("itdoc.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("image", Text),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        engine = create_db_engine("sqlite:///itdoc.db")
        store = UserStore(engine)
        user_id = store.create_user(User(name="Alice", email="a@x.com", hashed_password=hash_password("...")))
        user = store.get_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        return self.count_users() > 0

    def count_users(self) -> int:
        try:
            with self.engine.connect() as conn:
                result = conn.execute(select(func.count()).select_from(users)).scalar()
        except SQLAlchemyError as exc:
            logger.exception("Failed to count users")
            raise StoreFailure() from exc
        return result or 0

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        return self._get_one(users.c.email == email)

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        return self._get_one(users.c.id == user_id)

    def _get_one(self, condition) -> User | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(users.select().where(condition)).fetchone()
        except SQLAlchemyError as exc:
            logger.exception("Failed to read user")
            raise StoreFailure() from exc
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its assigned id.

        user.hashed_password must already be a bcrypt hash -- this method
        never hashes. Raises EmailConflict if the email is taken (including
        the race where a concurrent request inserted it after the caller's
        pre-check), StoreFailure on any other database error.
        """
        if not user.hashed_password:
            raise ValueError("create_user requires a hashed password")
        user_id = str(uuid.uuid4())
        stamp = now_iso()
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    users.insert().values(
                        id=user_id,
                        name=user.name,
                        email=user.email,
                        password=user.hashed_password,
                        image=user.image,
                        role=user.role,
                        created_at=stamp,
                        updated_at=stamp,
                    )
                )
        except IntegrityError as exc:
            raise EmailConflict() from exc
        except SQLAlchemyError as exc:
            logger.exception("Failed to create user")
            raise StoreFailure() from exc
        return user_id


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.password,
        image=row.image,
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
