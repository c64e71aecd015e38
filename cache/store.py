"""
cache/store.py -- Redis-backed banned-token and 2FA challenge stores.

Remote-cache implementations of the auth/ store contracts, for deployments
where several API processes must share revocations and outstanding
challenges. Every entry carries a TTL so Redis trims the data on its own --
there is no purge loop.

  RedisBannedTokenStore   key banned_token:<token>   value "1"
                          TTL = BANNED_TOKEN_TTL_SECONDS (>= token lifetime,
                          enforced by Settings)
  RedisTwoFACodeStore     key two_fa_code:<email>    value JSON
                          {"login_attempt_id": ..., "code": ...}
                          TTL = TWO_FA_CODE_TTL_SECONDS

Each operation is a single Redis command, so Redis's own serialization gives
the atomicity the in-process stores get from their RW lock. Any RedisError
(connection refused, timeout, protocol error) is logged and surfaced as
UnexpectedError -- a cache outage never reads as "not banned" or "no
challenge".

Usage:
    client = redis.asyncio.from_url(settings.redis_url, decode_responses=True)
    banned = RedisBannedTokenStore(client, ttl=settings.banned_token_ttl_seconds)
    await banned.add_token(token)
    await banned.contains_token(token)   # True

Layer rule: cache/ imports the contracts from auth/; auth/ never imports cache/.
"""

from __future__ import annotations

import json
import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from auth.banned_tokens import BannedTokenStore
from auth.credentials import Email, LoginAttemptId, TwoFACode
from auth.errors import InvalidCredentials, LoginAttemptIdNotFound, UnexpectedError
from auth.two_fa import TwoFACodeStore

logger = logging.getLogger("authservice.cache")

BANNED_TOKEN_KEY_PREFIX = "banned_token:"
TWO_FA_CODE_KEY_PREFIX = "two_fa_code:"


def _banned_key(token: str) -> str:
    return f"{BANNED_TOKEN_KEY_PREFIX}{token}"


def _two_fa_key(email: Email) -> str:
    return f"{TWO_FA_CODE_KEY_PREFIX}{email.value}"


def connect(redis_url: str) -> aioredis.Redis:
    """Build a pooled client. No connection is opened until the first command."""
    return aioredis.from_url(redis_url, decode_responses=True)


class RedisBannedTokenStore(BannedTokenStore):
    def __init__(self, client: aioredis.Redis, ttl: int) -> None:
        self._client = client
        self.ttl = ttl

    async def add_token(self, token: str) -> None:
        try:
            # SET overwrites and refreshes the TTL, so re-banning is harmless.
            await self._client.set(_banned_key(token), "1", ex=self.ttl)
        except RedisError as exc:
            logger.exception("add_token failed")
            raise UnexpectedError() from exc

    async def contains_token(self, token: str) -> bool:
        try:
            return bool(await self._client.exists(_banned_key(token)))
        except RedisError as exc:
            logger.exception("contains_token failed")
            raise UnexpectedError() from exc

    async def close(self) -> None:
        await self._client.aclose()


class RedisTwoFACodeStore(TwoFACodeStore):
    def __init__(self, client: aioredis.Redis, ttl: int) -> None:
        self._client = client
        self.ttl = ttl

    async def add_code(self, email: Email, login_attempt_id: LoginAttemptId, code: TwoFACode) -> None:
        value = json.dumps({"login_attempt_id": login_attempt_id.value, "code": code.value})
        try:
            await self._client.set(_two_fa_key(email), value, ex=self.ttl)
        except RedisError as exc:
            logger.exception("add_code failed")
            raise UnexpectedError() from exc

    async def get_code(self, email: Email) -> tuple[LoginAttemptId, TwoFACode]:
        try:
            raw = await self._client.get(_two_fa_key(email))
        except RedisError as exc:
            logger.exception("get_code failed")
            raise UnexpectedError() from exc
        if raw is None:
            raise LoginAttemptIdNotFound()
        try:
            data = json.loads(raw)
            return LoginAttemptId.parse(data["login_attempt_id"]), TwoFACode.parse(data["code"])
        except (ValueError, KeyError, TypeError, InvalidCredentials) as exc:
            logger.error("Corrupt 2FA challenge record for %s", email)
            raise UnexpectedError() from exc

    async def remove_code(self, email: Email) -> None:
        try:
            removed = await self._client.delete(_two_fa_key(email))
        except RedisError as exc:
            logger.exception("remove_code failed")
            raise UnexpectedError() from exc
        if not removed:
            raise LoginAttemptIdNotFound()

    async def close(self) -> None:
        await self._client.aclose()
