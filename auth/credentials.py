"""
auth/credentials.py -- Validated value types for login input.

Pattern: Parse, don't validate. Each type can only be obtained through its
parse() classmethod (or generate() for server-minted values), so holding an
Email or a Password means the format rules already passed. Parsing is pure --
no store is touched -- which lets the orchestrator reject malformed input
before any storage access.

  Email           email-validator syntax check, normalized + lower-cased
  Password        8-256 chars, >=1 uppercase, >=1 lowercase, >=1 digit
  LoginAttemptId  UUID, canonical lower-case string form
  TwoFACode       exactly 6 ASCII digits

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass, field

from email_validator import EmailNotValidError, validate_email

from auth.errors import InvalidCredentials, InvalidEmail

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 256
TWO_FA_CODE_LENGTH = 6


@dataclass(frozen=True)
class Email:
    """A syntactically valid, normalized email address.

    Equality and hashing use the normalized value, so "Alice@Example.COM" and
    "alice@example.com" name the same user.
    """

    value: str

    @classmethod
    def parse(cls, raw: str) -> Email:
        if not isinstance(raw, str) or not raw.strip():
            raise InvalidEmail()
        try:
            result = validate_email(raw.strip(), check_deliverability=False)
        except EmailNotValidError as exc:
            raise InvalidEmail() from exc
        return cls(result.normalized.lower())

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Password:
    """Cleartext password that satisfies the strength policy.

    Transient: only its Argon2 hash is ever persisted. repr() is masked so the
    cleartext cannot end up in a log line or a traceback.
    """

    value: str = field(repr=False)

    @classmethod
    def parse(cls, raw: str) -> Password:
        if not isinstance(raw, str):
            raise InvalidCredentials()
        if not PASSWORD_MIN_LENGTH <= len(raw) <= PASSWORD_MAX_LENGTH:
            raise InvalidCredentials()
        if not any(c.isupper() for c in raw):
            raise InvalidCredentials()
        if not any(c.islower() for c in raw):
            raise InvalidCredentials()
        if not any(c.isdigit() for c in raw):
            raise InvalidCredentials()
        return cls(raw)


@dataclass(frozen=True)
class LoginAttemptId:
    """Identifier of one outstanding second-factor challenge."""

    value: str

    @classmethod
    def parse(cls, raw: str) -> LoginAttemptId:
        try:
            return cls(str(uuid.UUID(raw)))
        except (TypeError, ValueError, AttributeError) as exc:
            raise InvalidCredentials() from exc

    @classmethod
    def generate(cls) -> LoginAttemptId:
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TwoFACode:
    """Single-use 6-digit code sent to the user out of band."""

    value: str = field(repr=False)

    @classmethod
    def parse(cls, raw: str) -> TwoFACode:
        if not isinstance(raw, str) or len(raw) != TWO_FA_CODE_LENGTH:
            raise InvalidCredentials()
        # str.isdigit() also accepts non-ASCII digits; the code alphabet is 0-9 only.
        if not all("0" <= c <= "9" for c in raw):
            raise InvalidCredentials()
        return cls(raw)

    @classmethod
    def generate(cls) -> TwoFACode:
        return cls(f"{secrets.randbelow(10**TWO_FA_CODE_LENGTH):0{TWO_FA_CODE_LENGTH}d}")

    def __str__(self) -> str:
        return self.value
