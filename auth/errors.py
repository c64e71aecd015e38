"""
auth/errors.py -- Error taxonomy for the authentication subsystem.

Every failure the stores, the token service, and the orchestrator can produce
is one of these exceptions. Each carries a stable snake_case `code` (used in
the API error envelope) and a human-readable default message.

Internal-only kinds:
  UserNotFound and LoginAttemptIdNotFound are raised by stores and must be
  collapsed by auth/service.py into IncorrectCredentials (or UnexpectedError)
  before they reach the transport layer. Leaking them would let a caller
  enumerate accounts or outstanding challenges.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all authentication failures."""

    code: str = "auth_error"
    message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class InvalidCredentials(AuthError):
    """Input had the wrong shape (malformed email, weak password, bad code format)."""

    code = "invalid_credentials"
    message = "Invalid credentials"


class InvalidEmail(AuthError):
    code = "invalid_email"
    message = "Invalid email address"


class IncorrectCredentials(AuthError):
    """Input was well-formed but did not match (wrong password, unknown user, wrong code)."""

    code = "incorrect_credentials"
    message = "Incorrect credentials"


class UserAlreadyExists(AuthError):
    code = "user_already_exists"
    message = "User already exists"


class UserNotFound(AuthError):
    code = "user_not_found"
    message = "User not found"


class MissingToken(AuthError):
    code = "missing_token"
    message = "Missing token"


class InvalidToken(AuthError):
    code = "invalid_token"
    message = "Invalid token"


class LoginAttemptIdNotFound(AuthError):
    code = "login_attempt_id_not_found"
    message = "Login attempt not found"


class UnexpectedError(AuthError):
    """A backend failed (connection lost, constraint other than uniqueness, bad row)."""

    code = "unexpected_error"
    message = "Unexpected error"
