"""Counter store interface.

Stores persist ``RateLimitRecord`` values keyed by the serialized
``CounterKey``. Contract shared by every backend:

- ``get`` returns None for an absent key, never raises for it.
- Backend failures raise ``CounterStoreUnavailableError`` so callers can tell
  "no prior activity" apart from "could not ask".
- ``compare_and_set`` provides the version check used by read-modify-write
  updates; the record passed in is stored with ``version`` bumped.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from authguard.schemas.rate_limit import RateLimitRecord


class AbstractCounterStore(ABC):
    """Interface for rate limit record persistence."""

    @abstractmethod
    def get(self, key: str) -> RateLimitRecord | None:
        """Return the record stored under ``key`` or None if absent."""
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, record: RateLimitRecord) -> None:
        """Unconditionally insert or replace the record under ``key``."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; deleting an absent key is a no-op."""
        raise NotImplementedError

    @abstractmethod
    def compare_and_set(
        self,
        key: str,
        record: RateLimitRecord,
        expected_version: int | None,
    ) -> bool:
        """Write ``record`` only if the stored version still matches.

        Args:
            key: Serialized counter key.
            record: New record value. Its own ``version`` is ignored.
            expected_version: Version read before computing ``record``, or None
                when the key was absent (insert-only). A row that does not
                parse as a record counts as absent and is overwritten.

        Returns:
            True if the write happened, False on a version conflict.
        """
        raise NotImplementedError

    @abstractmethod
    def delete_expired(self, stale_before: int, now: int) -> int:
        """Delete idle records that are not enforcing a lockout.

        Args:
            stale_before: Records with ``last_attempt_at`` older than this are idle.
            now: Current time; records with ``lockout_until > now`` are kept.

        Returns:
            Number of deleted records.
        """
        raise NotImplementedError
