"""
core/errors.py -- Typed failure kinds raised by the persistence layer.

Stores never return None/False to signal a failed write. Each failure cause
has its own exception class so route handlers can map it to a status code
without guessing:

  EmailConflict        -- a user with that email already exists      -> 409
  DuplicateMembership  -- the (organization, user) pair already exists -> 409
  MissingReference     -- a referenced user or organization is absent  -> 404
  StoreFailure         -- anything else the database raised            -> 500

Lookup misses are NOT errors: get_* methods return None.

StoreFailure deliberately carries no database text in its message. The store
logs the original exception; the client only ever sees a generic message.

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, or orgs/.
"""


class StoreError(Exception):
    """Base class for all typed store failures."""

    code = "store_error"
    message = "The operation could not be completed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class EmailConflict(StoreError):
    code = "email_conflict"
    message = "User with this email already exists."


class DuplicateMembership(StoreError):
    code = "already_member"
    message = "User is already a member of this organization."


class MissingReference(StoreError):
    """A foreign key points at a user or organization that does not exist."""

    code = "not_found"
    message = "Referenced user or organization does not exist."


class StoreFailure(StoreError):
    code = "internal_error"
    message = "An unexpected error occurred."
