"""
auth/store.py -- User Store contract and its backends.

Pattern: Repository + Data Mapper. UserStore is the abstract repository the
orchestrator depends on; InMemoryUserStore and SQLUserStore are the two
interchangeable backends, chosen once at startup from Settings. _row_to_user
is the mapper. Route and service code never touches SQL directly.

Contract:
  add_user(user)               UserAlreadyExists | UnexpectedError
  get_user(email) -> User      UserNotFound | UnexpectedError
  validate_user(email, pw)     UserNotFound | InvalidCredentials | UnexpectedError

Uniqueness: the email check and the insert are one atomic step inside each
backend (a write-locked critical section in memory, a UNIQUE constraint in
SQL). The orchestrator never does read-then-write, so two concurrent signups
for the same email cannot both succeed.

Timing: validate_user() always runs a full Argon2 verify. For an unknown
email it verifies against DUMMY_HASH before raising UserNotFound, so the two
failure modes cost the same.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, MetaData, String, Table, Text, event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from auth.credentials import Email, Password
from auth.errors import InvalidCredentials, InvalidEmail, UnexpectedError, UserAlreadyExists, UserNotFound
from auth.locks import RWLock
from auth.models import User
from auth.passwords import DUMMY_HASH, PasswordHashingPool

logger = logging.getLogger("authservice.store")

# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class UserStore(ABC):
    """Durable registry of users and their password hashes."""

    def __init__(self, hasher: PasswordHashingPool) -> None:
        self._hasher = hasher

    @abstractmethod
    async def add_user(self, user: User) -> None: ...

    @abstractmethod
    async def get_user(self, email: Email) -> User: ...

    async def validate_user(self, email: Email, password: Password) -> None:
        """Check a cleartext password against the stored hash.

        Raises UserNotFound or InvalidCredentials. These stay distinct here;
        the orchestrator collapses both into IncorrectCredentials.
        """
        try:
            user = await self.get_user(email)
        except UserNotFound:
            # Equalize timing -- do NOT return before running Argon2.
            await self._hasher.verify(DUMMY_HASH, password.value)
            raise
        if not await self._hasher.verify(user.password_hash, password.value):
            raise InvalidCredentials()

    async def close(self) -> None:
        """Release backend resources. No-op for backends that hold none."""


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemoryUserStore(UserStore):
    """Dict-backed store for tests and single-process development.

    Contents live for the process lifetime only.
    """

    def __init__(self, hasher: PasswordHashingPool) -> None:
        super().__init__(hasher)
        self._users: dict[Email, User] = {}
        self._lock = RWLock()

    async def add_user(self, user: User) -> None:
        async with self._lock.writer():
            if user.email in self._users:
                raise UserAlreadyExists()
            self._users[user.email] = user

    async def get_user(self, email: Email) -> User:
        async with self._lock.reader():
            user = self._users.get(email)
        if user is None:
            raise UserNotFound()
        return user


# ---------------------------------------------------------------------------
# SQL backend (SQLAlchemy Core, async engine)
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("email", String(320), primary_key=True),  # normalized, unique by PK
    Column("password_hash", Text, nullable=False),  # Argon2id PHC string
    Column("requires_2fa", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and a busy timeout on every new SQLite connection.

    WAL lets readers proceed during a write. The busy timeout makes concurrent
    writers queue instead of failing immediately with "database is locked".
    Set per-connection because SQLite PRAGMAs are not inherited from the pool.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_unique_violation(exc: IntegrityError) -> bool:
    """True when the driver reports a UNIQUE / primary-key conflict.

    asyncpg exposes SQLSTATE (23505); SQLite only has the message text.
    """
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate:
        return sqlstate == "23505"
    return "UNIQUE constraint failed" in str(exc.orig)


class SQLUserStore(UserStore):
    """Relational store that survives process restarts.

    Usage:
        store = SQLUserStore("sqlite+aiosqlite:///./auth_service.db", hasher)
        await store.create_schema()
        await store.add_user(user)
        await store.close()

    Any async SQLAlchemy URL works; Postgres via postgresql+asyncpg://.
    """

    def __init__(self, db_url: str, hasher: PasswordHashingPool) -> None:
        super().__init__(hasher)
        self.engine: AsyncEngine = create_async_engine(db_url)
        if db_url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _set_sqlite_pragmas)

    async def create_schema(self) -> None:
        """Create the users table if it does not exist. Idempotent."""
        async with self.engine.begin() as conn:
            await conn.run_sync(_metadata.create_all)

    async def add_user(self, user: User) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.execute(
                    _users.insert().values(
                        email=user.email.value,
                        password_hash=user.password_hash,
                        requires_2fa=user.requires_2fa,
                        created_at=_now_iso(),
                    )
                )
        except IntegrityError as exc:
            if not _is_unique_violation(exc):
                logger.error("add_user hit a non-unique integrity error: %s", exc.orig)
                raise UnexpectedError() from exc
            raise UserAlreadyExists() from exc
        except SQLAlchemyError as exc:
            logger.exception("add_user failed")
            raise UnexpectedError() from exc

    async def get_user(self, email: Email) -> User:
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(_users.select().where(_users.c.email == email.value))
                row = result.fetchone()
        except SQLAlchemyError as exc:
            logger.exception("get_user failed")
            raise UnexpectedError() from exc
        if row is None:
            raise UserNotFound()
        return _row_to_user(row)

    async def close(self) -> None:
        await self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    try:
        email = Email.parse(row.email)
    except InvalidEmail as exc:
        # A row that no longer parses is corrupt data, not a missing user.
        logger.error("Stored user row has an unparseable email")
        raise UnexpectedError() from exc
    return User(
        email=email,
        password_hash=row.password_hash,
        requires_2fa=bool(row.requires_2fa),
    )

