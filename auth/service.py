"""
auth/service.py -- Authentication orchestrator.

AuthService composes the credential primitives, the three stores, the
password hashing pool, the token service, and the e-mail client into the five
operations the transport layer exposes:

  signup       -> None                 InvalidCredentials | UserAlreadyExists
  login        -> LoginOutcome         InvalidCredentials | IncorrectCredentials
  verify_2fa   -> session token        InvalidCredentials | IncorrectCredentials
  verify_token -> Claims               InvalidToken
  logout       -> None                 MissingToken | InvalidToken

Any of them may also raise UnexpectedError when a backend fails.

Login state machine:
  Unauthenticated --password ok--> PasswordVerified
      requires_2fa=False --> Authenticated          (token issued)
      requires_2fa=True  --> AwaitingSecondFactor   (attempt id returned,
                                                     code e-mailed)
  AwaitingSecondFactor --verify_2fa ok--> Authenticated

Error mapping rules:
  - Input is parsed before any store is touched; a parse failure is always
    InvalidCredentials (malformed), never IncorrectCredentials (mismatch).
  - UserNotFound and a wrong password both become IncorrectCredentials, so
    a caller cannot tell a registered email from an unregistered one.
  - Unknown user, missing challenge, wrong attempt id, and wrong code in
    verify_2fa all become the same IncorrectCredentials. A mismatch leaves
    the challenge in place.
  - Everything else from a store is UnexpectedError.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import hmac
import logging

from auth.banned_tokens import BannedTokenStore
from auth.credentials import Email, LoginAttemptId, Password, TwoFACode
from auth.errors import (
    AuthError,
    IncorrectCredentials,
    InvalidCredentials,
    InvalidEmail,
    InvalidToken,
    LoginAttemptIdNotFound,
    MissingToken,
    UnexpectedError,
    UserAlreadyExists,
    UserNotFound,
)
from auth.models import Claims, LoginOutcome, LoginState, User
from auth.notifier import EmailClient
from auth.passwords import PasswordHashingPool
from auth.store import UserStore
from auth.tokens import TokenService
from auth.two_fa import TwoFACodeStore

logger = logging.getLogger("authservice.auth")

TWO_FA_EMAIL_SUBJECT = "Your login code"


def _parse_credentials(email: str, password: str) -> tuple[Email, Password]:
    try:
        return Email.parse(email), Password.parse(password)
    except (InvalidEmail, InvalidCredentials) as exc:
        raise InvalidCredentials() from exc


def _unexpected(exc: Exception) -> UnexpectedError:
    if isinstance(exc, UnexpectedError):
        return exc
    err = UnexpectedError()
    err.__cause__ = exc
    return err


class AuthService:
    """Signup / login / second-factor / token verification / logout."""

    def __init__(
        self,
        user_store: UserStore,
        banned_token_store: BannedTokenStore,
        two_fa_code_store: TwoFACodeStore,
        email_client: EmailClient,
        tokens: TokenService,
        hasher: PasswordHashingPool,
    ) -> None:
        self.user_store = user_store
        self.banned_token_store = banned_token_store
        self.two_fa_code_store = two_fa_code_store
        self.email_client = email_client
        self.tokens = tokens
        self.hasher = hasher

    # ------------------------------------------------------------------
    # Signup
    # ------------------------------------------------------------------

    async def signup(self, email: str, password: str, requires_2fa: bool) -> None:
        """Register a new user. Does not authenticate -- no token is issued."""
        parsed_email, parsed_password = _parse_credentials(email, password)

        try:
            password_hash = await self.hasher.hash(parsed_password.value)
        except Exception as exc:
            logger.exception("Password hashing failed during signup")
            raise _unexpected(exc)

        user = User(email=parsed_email, password_hash=password_hash, requires_2fa=requires_2fa)
        try:
            await self.user_store.add_user(user)
        except UserAlreadyExists:
            logger.info("Signup rejected: %s already registered", parsed_email)
            raise
        except AuthError as exc:
            raise _unexpected(exc)
        logger.info("User %s signed up (requires_2fa=%s)", parsed_email, requires_2fa)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> LoginOutcome:
        parsed_email, parsed_password = _parse_credentials(email, password)

        try:
            await self.user_store.validate_user(parsed_email, parsed_password)
        except (UserNotFound, InvalidCredentials) as exc:
            logger.warning("Login failed for %s", parsed_email)
            raise IncorrectCredentials() from exc
        except AuthError as exc:
            raise _unexpected(exc)

        try:
            user = await self.user_store.get_user(parsed_email)
        except AuthError as exc:
            raise _unexpected(exc)

        if not user.requires_2fa:
            logger.info("Login succeeded for %s", user.email)
            return LoginOutcome(state=LoginState.authenticated, token=self.tokens.issue(user.email))

        return await self._start_second_factor(user.email)

    async def _start_second_factor(self, email: Email) -> LoginOutcome:
        login_attempt_id = LoginAttemptId.generate()
        code = TwoFACode.generate()
        try:
            await self.two_fa_code_store.add_code(email, login_attempt_id, code)
        except AuthError as exc:
            raise _unexpected(exc)

        try:
            await self.email_client.send_email(email, TWO_FA_EMAIL_SUBJECT, code.value)
        except Exception as exc:
            logger.exception("Failed to deliver 2FA code to %s", email)
            raise _unexpected(exc)

        logger.info("Second factor required for %s (attempt %s)", email, login_attempt_id)
        return LoginOutcome(state=LoginState.awaiting_second_factor, login_attempt_id=login_attempt_id)

    # ------------------------------------------------------------------
    # Second factor
    # ------------------------------------------------------------------

    async def verify_2fa(self, email: str, login_attempt_id: str, code: str) -> str:
        """Complete a 2FA login. Returns a session token on an exact match."""
        try:
            parsed_email = Email.parse(email)
            parsed_attempt_id = LoginAttemptId.parse(login_attempt_id)
            parsed_code = TwoFACode.parse(code)
        except (InvalidEmail, InvalidCredentials) as exc:
            raise InvalidCredentials() from exc

        try:
            user = await self.user_store.get_user(parsed_email)
        except UserNotFound as exc:
            raise IncorrectCredentials() from exc
        except AuthError as exc:
            raise _unexpected(exc)

        try:
            stored_attempt_id, stored_code = await self.two_fa_code_store.get_code(parsed_email)
        except LoginAttemptIdNotFound as exc:
            logger.warning("2FA verification for %s with no outstanding challenge", parsed_email)
            raise IncorrectCredentials() from exc
        except AuthError as exc:
            raise _unexpected(exc)

        attempt_matches = hmac.compare_digest(stored_attempt_id.value, parsed_attempt_id.value)
        code_matches = hmac.compare_digest(stored_code.value, parsed_code.value)
        if not (attempt_matches and code_matches):
            logger.warning("2FA verification failed for %s", parsed_email)
            raise IncorrectCredentials()

        try:
            await self.two_fa_code_store.remove_code(parsed_email)
        except LoginAttemptIdNotFound as exc:
            # A concurrent verification consumed the challenge first.
            raise IncorrectCredentials() from exc
        except AuthError as exc:
            raise _unexpected(exc)

        logger.info("Second factor verified for %s", user.email)
        return self.tokens.issue(user.email)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    async def verify_token(self, token: str) -> Claims:
        try:
            return await self.tokens.validate(token, self.banned_token_store)
        except InvalidToken:
            raise
        except AuthError as exc:
            raise _unexpected(exc)

    async def logout(self, token: str | None) -> None:
        """Revoke a session token. Validation happens before any store write."""
        if not token:
            raise MissingToken()
        claims = await self.verify_token(token)
        try:
            await self.banned_token_store.add_token(token)
        except AuthError as exc:
            raise _unexpected(exc)
        logger.info("User %s logged out", claims.sub)
