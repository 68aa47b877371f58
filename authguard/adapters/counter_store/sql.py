"""SQL counter store built on SQLAlchemy Core.

One row per counter key in the ``rate_limits`` table. The ``version`` column
backs ``compare_and_set``: an update only applies when the row still carries
the version the caller read, so two concurrent increments cannot both win.

Every SQLAlchemy failure is re-raised as ``CounterStoreUnavailableError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import (
    BigInteger,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    and_,
    create_engine,
    delete,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from authguard.adapters.counter_store.base import AbstractCounterStore
from authguard.core.errors import CounterStoreUnavailableError
from authguard.schemas.rate_limit import RateLimitRecord

metadata = MetaData()

rate_limits = Table(
    "rate_limits",
    metadata,
    Column("key", String(255), primary_key=True),
    Column("attempts", Integer, nullable=False),
    Column("first_attempt_at", BigInteger, nullable=False),
    Column("last_attempt_at", BigInteger, nullable=False, index=True),
    Column("lockout_until", BigInteger, nullable=True),
    Column("lockout_count", Integer, nullable=True),
    Column("version", Integer, nullable=False, default=1),
)


def _unavailable(operation: str, exc: Exception) -> CounterStoreUnavailableError:
    return CounterStoreUnavailableError(
        code="counter_store_unavailable",
        message=f"Counter store {operation} failed",
        details={"backend": "sql", "context": {"error_type": type(exc).__name__}},
    )


def _values(record: RateLimitRecord) -> dict[str, Any]:
    row = record.to_row()
    row.pop("version")
    return row


def _insert_or_replace_malformed(conn: Connection, key: str, values: dict[str, Any]) -> bool:
    """Insert-only write that also claims a key held by an unparseable row."""

    existing = conn.execute(
        select(rate_limits).where(rate_limits.c.key == key)
    ).mappings().first()
    if existing is None:
        conn.execute(insert(rate_limits).values(key=key, version=1, **values))
        return True
    if RateLimitRecord.from_row(existing, key=key) is not None:
        return False

    stored_version = existing["version"]
    version_matches = (
        rate_limits.c.version.is_(None)
        if stored_version is None
        else rate_limits.c.version == stored_version
    )
    result = conn.execute(
        update(rate_limits)
        .where(and_(rate_limits.c.key == key, version_matches))
        .values(**values, version=(stored_version or 0) + 1)
    )
    return result.rowcount == 1


class SqlCounterStore(AbstractCounterStore):
    """Durable counter store for any SQLAlchemy-supported database."""

    def __init__(self, engine: Engine, *, create_schema: bool = True) -> None:
        self._engine = engine
        if create_schema:
            try:
                metadata.create_all(engine)
            except SQLAlchemyError as exc:
                raise _unavailable("schema creation", exc) from exc

    @classmethod
    def from_url(cls, database_url: str) -> "SqlCounterStore":
        """Build a store from a database URL, creating the table if needed."""

        if database_url.startswith("sqlite:///"):
            db_path = database_url.removeprefix("sqlite:///")
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(database_url, pool_pre_ping=True)
        return cls(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def get(self, key: str) -> RateLimitRecord | None:
        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    select(rate_limits).where(rate_limits.c.key == key)
                ).mappings().first()
        except SQLAlchemyError as exc:
            raise _unavailable("read", exc) from exc

        if row is None:
            return None
        return RateLimitRecord.from_row(row, key=key)

    def set(self, key: str, record: RateLimitRecord) -> None:
        values = _values(record)
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    update(rate_limits)
                    .where(rate_limits.c.key == key)
                    .values(**values, version=rate_limits.c.version + 1)
                )
                if result.rowcount == 0:
                    conn.execute(insert(rate_limits).values(key=key, version=1, **values))
        except SQLAlchemyError as exc:
            raise _unavailable("write", exc) from exc

    def delete(self, key: str) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(delete(rate_limits).where(rate_limits.c.key == key))
        except SQLAlchemyError as exc:
            raise _unavailable("delete", exc) from exc

    def compare_and_set(
        self,
        key: str,
        record: RateLimitRecord,
        expected_version: int | None,
    ) -> bool:
        values = _values(record)
        try:
            with self._engine.begin() as conn:
                if expected_version is None:
                    return _insert_or_replace_malformed(conn, key, values)

                result = conn.execute(
                    update(rate_limits)
                    .where(
                        and_(
                            rate_limits.c.key == key,
                            rate_limits.c.version == expected_version,
                        )
                    )
                    .values(**values, version=expected_version + 1)
                )
                return result.rowcount == 1
        except IntegrityError:
            # Another writer inserted the key first
            return False
        except SQLAlchemyError as exc:
            raise _unavailable("write", exc) from exc

    def delete_expired(self, stale_before: int, now: int) -> int:
        statement = delete(rate_limits).where(
            and_(
                rate_limits.c.last_attempt_at < stale_before,
                or_(
                    rate_limits.c.lockout_until.is_(None),
                    rate_limits.c.lockout_until <= now,
                ),
            )
        )
        try:
            with self._engine.begin() as conn:
                result = conn.execute(statement)
        except SQLAlchemyError as exc:
            raise _unavailable("cleanup", exc) from exc
        return result.rowcount or 0
