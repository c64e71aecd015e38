"""auth/ -- Authentication and session state package for the auth service.

Credential primitives, the three store contracts with their in-process and
SQL backends, password hashing, session tokens, and the AuthService
orchestrator.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or cache/.
api/ and cache/ import from auth/, not the other way around.
"""
