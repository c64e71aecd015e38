"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - issue() -> validate() round trip with sub/exp/iat/jti claims
  - two tokens for the same email are distinct strings
  - banned token rejected even though signature and expiry are fine
  - expired, wrongly signed, tampered, and empty tokens rejected
  - ban-store outage surfaces as UnexpectedError, not as a valid token
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.banned_tokens import InMemoryBannedTokenStore
from auth.credentials import Email
from auth.errors import InvalidToken, UnexpectedError
from auth.tokens import TokenService
from cache.store import RedisBannedTokenStore
from core.config import Settings

EMAIL = Email.parse("a@b.com")


@pytest.fixture
def tokens(settings: Settings) -> TokenService:
    return TokenService(settings)


@pytest.mark.asyncio
async def test_issue_then_validate(tokens: TokenService) -> None:
    token = tokens.issue(EMAIL)
    claims = await tokens.validate(token, InMemoryBannedTokenStore())
    assert claims.sub == "a@b.com"
    assert claims.exp - claims.iat == 600
    assert claims.jti


def test_tokens_are_unique_per_issue(tokens: TokenService) -> None:
    assert tokens.issue(EMAIL) != tokens.issue(EMAIL)


@pytest.mark.asyncio
async def test_banned_token_rejected(tokens: TokenService) -> None:
    banned = InMemoryBannedTokenStore()
    token = tokens.issue(EMAIL)
    other = tokens.issue(EMAIL)
    await banned.add_token(token)
    with pytest.raises(InvalidToken):
        await tokens.validate(token, banned)
    # Revoking one session leaves the other intact.
    assert (await tokens.validate(other, banned)).sub == "a@b.com"


@pytest.mark.asyncio
async def test_expired_token_rejected(tokens: TokenService, settings: Settings) -> None:
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    token = jwt.encode(
        {"sub": "a@b.com", "iat": past, "exp": past + timedelta(minutes=1), "jti": "x"},
        settings.secret_key,
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken):
        await tokens.validate(token, InMemoryBannedTokenStore())


@pytest.mark.asyncio
async def test_wrong_key_rejected(tokens: TokenService) -> None:
    other = TokenService(Settings(secret_key="another-secret-key-that-is-long-enough!!"))
    with pytest.raises(InvalidToken):
        await tokens.validate(other.issue(EMAIL), InMemoryBannedTokenStore())


@pytest.mark.asyncio
async def test_tampered_token_rejected(tokens: TokenService) -> None:
    token = tokens.issue(EMAIL)
    header, payload, signature = token.split(".")
    tampered = f"{header}.{payload}.{signature[:-2]}xx"
    with pytest.raises(InvalidToken):
        await tokens.validate(tampered, InMemoryBannedTokenStore())


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["", "garbage", "a.b.c"])
async def test_malformed_token_rejected(tokens: TokenService, raw: str) -> None:
    with pytest.raises(InvalidToken):
        await tokens.validate(raw, InMemoryBannedTokenStore())


@pytest.mark.asyncio
async def test_missing_claims_rejected(tokens: TokenService, settings: Settings) -> None:
    future = datetime.now(timezone.utc) + timedelta(minutes=5)
    token = jwt.encode({"sub": "a@b.com", "exp": future}, settings.secret_key, algorithm="HS256")
    with pytest.raises(InvalidToken):
        await tokens.validate(token, InMemoryBannedTokenStore())


@pytest.mark.asyncio
async def test_ban_store_outage_is_unexpected_error(tokens: TokenService, fake_redis) -> None:
    fake_redis.fail = True
    with pytest.raises(UnexpectedError):
        await tokens.validate(tokens.issue(EMAIL), RedisBannedTokenStore(fake_redis, ttl=600))
