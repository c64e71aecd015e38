"""
auth/tokens.py -- Session token issuance, validation, and cookie transport.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (email), iat, exp, and a random jti. The jti makes every issued
       token a distinct string, so banning one session never bans another
       session that happened to be issued in the same second.

  Validation: every call checks the signature, the expiry, AND the
       banned-token store. None of the three is skipped -- a token revoked
       after issuance is otherwise indistinguishable from a good one. A ban
       store that cannot be reached raises UnexpectedError; it is never read
       as "not banned".

  Cookie: httpOnly (JS cannot read it), samesite="lax", secure when
       SECURE_COOKIES=true, max_age equal to the JWT lifetime so both expire
       together.

Layer rule: no imports from api/ or cache/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.credentials import Email
from auth.errors import InvalidToken
from auth.models import Claims
from core.config import Settings

if TYPE_CHECKING:
    from auth.banned_tokens import BannedTokenStore

logger = logging.getLogger("authservice.auth")

_ALGORITHM = "HS256"


class TokenService:
    """Issues and verifies signed session tokens.

    Usage:
        tokens = TokenService(settings)
        token = tokens.issue(email)
        claims = await tokens.validate(token, banned_store)
    """

    def __init__(self, settings: Settings) -> None:
        self._secret_key = settings.secret_key
        self.expire_seconds = settings.token_expire_seconds

    def issue(self, email: Email) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": email.value,
            "iat": now,
            "exp": now + timedelta(seconds=self.expire_seconds),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def decode(self, token: str) -> Claims:
        """Verify signature and expiry only. Raises InvalidToken on any failure.

        Callers outside this class want validate(), which also consults the
        ban list.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError as exc:
            raise InvalidToken() from exc
        try:
            return Claims(
                sub=str(payload["sub"]),
                exp=int(payload["exp"]),
                iat=int(payload["iat"]),
                jti=str(payload["jti"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken() from exc

    async def validate(self, token: str, banned_store: BannedTokenStore) -> Claims:
        """Return the token's claims if it is authentic, unexpired, and not banned."""
        if not token:
            raise InvalidToken()
        claims = self.decode(token)
        if await banned_store.contains_token(token):
            logger.info("Rejected banned token for %s", claims.sub)
            raise InvalidToken()
        return claims


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, settings: Settings) -> None:
    """Write the session token as an httpOnly cookie on the response."""
    response.set_cookie(
        settings.auth_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.token_expire_seconds,
    )


def clear_auth_cookie(response, settings: Settings) -> None:
    """Expire the session cookie on the client."""
    response.delete_cookie(
        settings.auth_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
    )
