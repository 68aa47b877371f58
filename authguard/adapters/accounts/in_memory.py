"""In-memory account store with bcrypt password hashes.

Per-process and not durable; suitable for development and tests.
"""

from __future__ import annotations

import threading

import bcrypt

from authguard.adapters.accounts.base import AbstractAccountStore
from authguard.core.errors import ConflictAppError

BCRYPT_ROUNDS = 12
# bcrypt only reads the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def _secret(password: str) -> bytes:
    return password.encode()[:BCRYPT_MAX_BYTES]


class InMemoryAccountStore(AbstractAccountStore):
    """Usernames are matched case-insensitively, like the lockout keys."""

    def __init__(self, *, rounds: int = BCRYPT_ROUNDS) -> None:
        self._rounds = rounds
        self._lock = threading.RLock()
        self._accounts: dict[str, bytes] = {}
        # Checked against when the username is unknown so timing does not leak existence
        self._dummy_hash = bcrypt.hashpw(b"unknown-account", bcrypt.gensalt(rounds))

    def create(self, username: str, password: str) -> None:
        normalized = username.strip().lower()
        hashed = bcrypt.hashpw(_secret(password), bcrypt.gensalt(self._rounds))
        with self._lock:
            if normalized in self._accounts:
                raise ConflictAppError(
                    code="username_taken",
                    message="Username is already registered",
                )
            self._accounts[normalized] = hashed

    def verify(self, username: str, password: str) -> bool:
        with self._lock:
            hashed = self._accounts.get(username.strip().lower())
        matches = bcrypt.checkpw(_secret(password), hashed or self._dummy_hash)
        return hashed is not None and matches
