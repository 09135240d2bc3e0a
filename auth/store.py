"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
SQLAccountRepository and SQLRevocationStore are the repositories (they
implement the protocols in auth/protocols.py); _row_to_account and
_row_to_record are the mappers. Nothing outside this module touches SQL.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Revoked tokens are stored by SHA-256 fingerprint, never verbatim.

Uniqueness:
  accounts.email carries a UNIQUE constraint. That constraint -- not any
  pre-check in AccountManager -- is what guarantees one account per email
  under concurrent registration. An IntegrityError on insert is translated
  into AlreadyExists [M1].

Errors:
  Every SQLAlchemy exception is translated into the auth.errors taxonomy by
  _storage_errors(). Backend detail is logged here and chained as __cause__;
  callers only ever see a generic StorageError / StorageTimeout message.

Timestamps:
  Account timestamps are stored as ISO 8601 UTC strings. Revocation expiry is
  stored as integer epoch seconds (the JWT exp value) so purge is a plain
  numeric comparison.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from auth.errors import AlreadyExists, AuthError, NotFound, StorageError, StorageTimeout
from auth.models import Account, RevocationRecord

logger = logging.getLogger("tokengate.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    # AUTOINCREMENT on SQLite guarantees ids are never reused after a delete.
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(254), nullable=False, unique=True),
    Column("credential_hash", String(255), nullable=False),
    Column("given_name", String(100)),
    Column("family_name", String(100)),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("is_verified", Boolean, nullable=False, default=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("last_login_at", String(32)),
    sqlite_autoincrement=True,
)

_revoked_tokens = Table(
    "revoked_tokens",
    _metadata,
    Column("token_key", String(64), primary_key=True),  # SHA-256 hex of the raw token
    Column("account_id", Integer, nullable=False),
    Column("expires_at", Integer, nullable=False, index=True),  # original exp, epoch seconds
    Column("revoked_at", Text, nullable=False),
)

# ---------------------------------------------------------------------------
# Engine setup
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL lets readers proceed while a writer holds the lock. Set per-connection
    because SQLite PRAGMAs are not inherited by new pooled connections.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class Database:
    """Owns the SQLAlchemy engine shared by both repositories.

    timeout bounds every wait on the backend: it becomes the SQLite busy
    timeout (how long a writer waits for the lock) or, for server databases,
    the connection pool checkout timeout. Exceeding it raises StorageTimeout
    instead of hanging the request.

    Usage:
        db = Database("sqlite:///./tokengate.db", timeout=5.0)
        accounts = SQLAccountRepository(db)
        revocations = SQLRevocationStore(db)
        db.close()
    """

    def __init__(self, db_url: str, timeout: float = 5.0) -> None:
        self.url = db_url
        is_sqlite = db_url.startswith("sqlite")
        engine_args: dict = {}
        if is_sqlite:
            engine_args["connect_args"] = {"check_same_thread": False, "timeout": timeout}
        else:
            engine_args["pool_timeout"] = timeout
            engine_args["pool_pre_ping"] = True
        self.engine: Engine = create_engine(db_url, **engine_args)
        if is_sqlite:
            event.listen(self.engine, "connect", _set_wal_mode)
        with _storage_errors("create schema"):
            _metadata.create_all(self.engine)

    @classmethod
    def from_settings(cls, settings) -> Database:
        return cls(settings.database_url, timeout=settings.store_timeout_seconds)

    def ping(self) -> bool:
        """Return True if the backend answers a trivial query. Used by the health endpoint."""
        try:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Translate SQLAlchemy exceptions into StorageError / StorageTimeout.

    AuthError subclasses raised inside the block (NotFound, AlreadyExists)
    pass through untouched.
    """
    try:
        yield
    except AuthError:
        raise
    except PoolTimeoutError as exc:
        logger.error("Storage timeout during %s: %s", operation, exc)
        raise StorageTimeout() from exc
    except OperationalError as exc:
        detail = str(exc.orig).lower()
        logger.error("Storage failure during %s: %s", operation, exc.orig)
        if "locked" in detail or "timeout" in detail or "timed out" in detail:
            raise StorageTimeout() from exc
        raise StorageError() from exc
    except SQLAlchemyError as exc:
        logger.error("Storage failure during %s: %s", operation, exc)
        raise StorageError() from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class SQLAccountRepository:
    """AccountRepository backed by the `accounts` table."""

    def __init__(self, db: Database) -> None:
        self.engine = db.engine

    def insert(self, account: Account) -> Account:
        """Insert a new account and return it with id and timestamps assigned.

        Raises AlreadyExists when the UNIQUE(email) constraint fires. This is
        the authoritative duplicate check: a concurrent registration that
        slipped past AccountManager's pre-check lands here [M1].
        """
        now = _now()
        created_at = account.created_at or now
        with _storage_errors("insert account"):
            try:
                with self.engine.connect() as conn:
                    result = conn.execute(
                        _accounts.insert().values(
                            email=account.email,
                            credential_hash=account.credential_hash,
                            given_name=account.given_name,
                            family_name=account.family_name,
                            is_active=account.is_active,
                            is_verified=account.is_verified,
                            created_at=_to_iso(created_at),
                            updated_at=_to_iso(now),
                            last_login_at=_to_iso(account.last_login_at),
                        )
                    )
                    conn.commit()
            except IntegrityError as exc:
                logger.info("Insert rejected by unique constraint for %s", account.email)
                raise AlreadyExists() from exc
        account.id = result.inserted_primary_key[0]
        account.created_at = created_at
        account.updated_at = now
        return account

    def get_by_id(self, account_id: int) -> Account:
        with _storage_errors("get account by id"):
            with self.engine.connect() as conn:
                row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        if row is None:
            raise NotFound(f"Account {account_id} not found.")
        return _row_to_account(row)

    def get_by_email(self, email: str) -> Account:
        """Exact, case-sensitive lookup."""
        with _storage_errors("get account by email"):
            with self.engine.connect() as conn:
                row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        if row is None:
            raise NotFound("Account not found.")
        return _row_to_account(row)

    def update(self, account: Account) -> Account:
        """Write all mutable columns of account. id and email are never updated here."""
        values = {
            "credential_hash": account.credential_hash,
            "given_name": account.given_name,
            "family_name": account.family_name,
            "is_active": account.is_active,
            "is_verified": account.is_verified,
            "updated_at": _to_iso(account.updated_at or _now()),
            "last_login_at": _to_iso(account.last_login_at),
        }
        with _storage_errors("update account"):
            with self.engine.connect() as conn:
                result = conn.execute(_accounts.update().where(_accounts.c.id == account.id).values(**values))
                conn.commit()
        if result.rowcount == 0:
            raise NotFound(f"Account {account.id} not found.")
        return account

    def count_by_email(self, email: str) -> int:
        """Number of rows holding email -- 0 or 1 while the unique constraint holds."""
        with _storage_errors("count accounts"):
            with self.engine.connect() as conn:
                result = conn.execute(
                    select(func.count()).select_from(_accounts).where(_accounts.c.email == email)
                ).scalar()
        return result or 0


class SQLRevocationStore:
    """RevocationStore backed by the `revoked_tokens` table."""

    def __init__(self, db: Database) -> None:
        self.engine = db.engine

    def put(self, token_key: str, record: RevocationRecord) -> None:
        """Insert a revocation record. A duplicate key is a no-op (first record wins)."""
        with _storage_errors("revoke token"):
            try:
                with self.engine.connect() as conn:
                    conn.execute(
                        _revoked_tokens.insert().values(
                            token_key=token_key,
                            account_id=record.account_id,
                            expires_at=int(record.expires_at.timestamp()),
                            revoked_at=_to_iso(record.revoked_at),
                        )
                    )
                    conn.commit()
            except IntegrityError:
                logger.debug("Token already revoked")

    def get(self, token_key: str) -> RevocationRecord | None:
        with _storage_errors("check revocation"):
            with self.engine.connect() as conn:
                row = conn.execute(
                    _revoked_tokens.select().where(_revoked_tokens.c.token_key == token_key)
                ).fetchone()
        return _row_to_record(row) if row is not None else None

    def delete_expired(self, now: datetime) -> int:
        """Delete records whose original token expiry is before now. Returns rows removed."""
        cutoff = int(now.timestamp())
        with _storage_errors("purge revocations"):
            with self.engine.connect() as conn:
                result = conn.execute(_revoked_tokens.delete().where(_revoked_tokens.c.expires_at < cutoff))
                conn.commit()
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        credential_hash=row.credential_hash,
        given_name=row.given_name,
        family_name=row.family_name,
        is_active=bool(row.is_active),
        is_verified=bool(row.is_verified),
        created_at=_from_iso(row.created_at),
        updated_at=_from_iso(row.updated_at),
        last_login_at=_from_iso(row.last_login_at),
    )


def _row_to_record(row) -> RevocationRecord:
    return RevocationRecord(
        token_key=row.token_key,
        account_id=row.account_id,
        expires_at=datetime.fromtimestamp(row.expires_at, tz=timezone.utc),
        revoked_at=datetime.fromisoformat(row.revoked_at),
    )
