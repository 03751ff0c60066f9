"""auth/ -- Authentication and session handling for itdoc.

Layer rule: auth/ imports only core/ + third-party libraries.
It does NOT import from api/, web/, or orgs/.
api/ and web/ import from auth/, not the other way around.
"""
