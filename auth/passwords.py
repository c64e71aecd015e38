"""
auth/passwords.py -- Argon2id password hashing on a bounded worker pool.

Security design decisions:
  Algorithm: Argon2id via argon2-cffi. Memory-hard, so GPU/ASIC brute force
       is expensive; argon2-cffi generates a fresh random salt per hash and
       emits a PHC string ($argon2id$v=19$m=...) that carries its own
       parameters, so verification keeps working if the parameters change.

  Verification: PasswordHasher.verify() recomputes the hash and compares
       in constant time. A mismatch raises VerifyMismatchError, which we turn
       into False. A malformed stored hash is also False -- it can never
       authenticate anyone.

  Off the event loop: hashing is CPU-bound (~tens of ms). Running it inline
       in an async handler would stall every other request on the loop, so
       PasswordHashingPool runs it on a dedicated ThreadPoolExecutor and the
       handler awaits the future. argon2-cffi releases the GIL while hashing,
       so threads give real parallelism up to max_workers.

  Timing equalization: DUMMY_HASH lets a store run a full verify even when
       the user does not exist, so response time does not reveal whether an
       email is registered.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

logger = logging.getLogger("authservice.auth")

# 15000 KiB memory, 2 passes, 1 lane.
_hasher = PasswordHasher(
    time_cost=2,
    memory_cost=15000,
    parallelism=1,
    type=Type.ID,
)


def hash_password(plain: str) -> str:
    """Return an Argon2id PHC string for the given plaintext password (blocking)."""
    return _hasher.hash(plain)


def verify_password(password_hash: str, plain: str) -> bool:
    """Return True if the plaintext matches the stored hash (blocking)."""
    try:
        return _hasher.verify(password_hash, plain)
    except VerifyMismatchError:
        return False
    except (VerificationError, InvalidHashError):
        logger.warning("Stored password hash could not be verified (malformed or unsupported)")
        return False


# Computed once at import so the first unknown-user login is not measurably
# faster than later ones.
DUMMY_HASH: str = hash_password("authservice_timing_dummy")


class PasswordHashingPool:
    """Runs password hashing and verification on a bounded thread pool.

    Usage:
        pool = PasswordHashingPool(max_workers=4)
        stored = await pool.hash("Password123")
        ok = await pool.verify(stored, "Password123")
        pool.shutdown()
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pwhash")

    async def hash(self, plain: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, hash_password, plain)

    async def verify(self, password_hash: str, plain: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, verify_password, password_hash, plain)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
