"""
auth/banned_tokens.py -- Banned-Token Store contract and in-process backend.

A banned token is a session token revoked before its natural expiry (logout).
The raw token string is the set key. There is no un-ban operation.

Contract:
  add_token(token)              UnexpectedError     (idempotent)
  contains_token(token) -> bool UnexpectedError

The Redis backend with a retention TTL lives in cache/store.py.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from auth.locks import RWLock


class BannedTokenStore(ABC):
    @abstractmethod
    async def add_token(self, token: str) -> None: ...

    @abstractmethod
    async def contains_token(self, token: str) -> bool: ...

    async def close(self) -> None:
        """Release backend resources. No-op for backends that hold none."""


class InMemoryBannedTokenStore(BannedTokenStore):
    """Set-backed ban list. Revocations last for the process lifetime only."""

    def __init__(self) -> None:
        self._tokens: set[str] = set()
        self._lock = RWLock()

    async def add_token(self, token: str) -> None:
        async with self._lock.writer():
            self._tokens.add(token)

    async def contains_token(self, token: str) -> bool:
        async with self._lock.reader():
            return token in self._tokens
