"""
auth/two_fa.py -- Two-Factor Challenge Store contract and in-process backend.

One live challenge per email. add_code() overwrites whatever was there, so an
older (attempt id, code) pair stops verifying as soon as a newer login asks
for a fresh challenge.

Contract:
  add_code(email, attempt_id, code)     UnexpectedError
  get_code(email) -> (attempt_id, code) LoginAttemptIdNotFound | UnexpectedError
  remove_code(email)                    LoginAttemptIdNotFound | UnexpectedError

remove_code() on a missing challenge is an error, not a no-op: consuming the
same challenge twice must be detectable.

The Redis backend (with a per-challenge TTL) lives in cache/store.py.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from auth.credentials import Email, LoginAttemptId, TwoFACode
from auth.errors import LoginAttemptIdNotFound
from auth.locks import RWLock


class TwoFACodeStore(ABC):
    @abstractmethod
    async def add_code(self, email: Email, login_attempt_id: LoginAttemptId, code: TwoFACode) -> None: ...

    @abstractmethod
    async def get_code(self, email: Email) -> tuple[LoginAttemptId, TwoFACode]: ...

    @abstractmethod
    async def remove_code(self, email: Email) -> None: ...

    async def close(self) -> None:
        """Release backend resources. No-op for backends that hold none."""


class InMemoryTwoFACodeStore(TwoFACodeStore):
    def __init__(self) -> None:
        self._codes: dict[Email, tuple[LoginAttemptId, TwoFACode]] = {}
        self._lock = RWLock()

    async def add_code(self, email: Email, login_attempt_id: LoginAttemptId, code: TwoFACode) -> None:
        async with self._lock.writer():
            self._codes[email] = (login_attempt_id, code)

    async def get_code(self, email: Email) -> tuple[LoginAttemptId, TwoFACode]:
        async with self._lock.reader():
            record = self._codes.get(email)
        if record is None:
            raise LoginAttemptIdNotFound()
        return record

    async def remove_code(self, email: Email) -> None:
        async with self._lock.writer():
            if self._codes.pop(email, None) is None:
                raise LoginAttemptIdNotFound()
