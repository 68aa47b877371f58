"""Account store interface.

Credential storage belongs to the surrounding application; the handlers only
need to create an account and verify a password.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractAccountStore(ABC):
    """Interface for credential verification backends."""

    @abstractmethod
    def create(self, username: str, password: str) -> None:
        """Create an account.

        Raises:
            ConflictAppError: If the username is already taken.
        """
        raise NotImplementedError

    @abstractmethod
    def verify(self, username: str, password: str) -> bool:
        """Return True only if the username exists and the password matches."""
        raise NotImplementedError
