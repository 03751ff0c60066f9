"""orgs/ -- Organizations and the user <-> organization membership relation.

Layer rule: orgs/ imports only core/ + third-party libraries.
It does NOT import from api/, web/, or auth/ -- users are referenced by id
and by the users table name in a foreign key, never by importing auth.store.
api/ imports from orgs/, not the other way around.
"""
