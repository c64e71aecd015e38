"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Value types with
parsing rules live in auth/credentials.py; these records are what the stores
persist and what the token service hands back.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from auth.credentials import Email, LoginAttemptId


@dataclass(frozen=True)
class User:
    """A registered account.

    Immutable once created -- there is no update or delete path. password_hash
    is an Argon2id PHC string; the cleartext never reaches a store.
    """

    email: Email
    password_hash: str
    requires_2fa: bool = False


@dataclass(frozen=True)
class Claims:
    """Verified contents of a session token."""

    sub: str  # email the session belongs to
    exp: int  # unix seconds
    iat: int
    jti: str  # unique per issued token


class LoginState(str, Enum):
    """Where a login sequence ends up after the password stage."""

    authenticated = "authenticated"
    awaiting_second_factor = "awaiting_second_factor"


@dataclass(frozen=True)
class LoginOutcome:
    """Result of a successful password check.

    Exactly one of token / login_attempt_id is set, depending on state. The
    2FA code itself is never part of the outcome -- it only leaves the process
    through the e-mail client.
    """

    state: LoginState
    token: str | None = None
    login_attempt_id: LoginAttemptId | None = None
