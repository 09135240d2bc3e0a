"""
auth/protocols.py -- Storage boundaries consumed by the authentication core.

AccountManager depends on AccountRepository and RevocationLedger depends on
RevocationStore -- never on a concrete engine. auth/store.py provides the
SQLAlchemy implementations; tests or alternative deployments may supply
their own as long as they honour the contracts below.

Contract shared by both protocols: backend failures are raised as
auth.errors.StorageError (StorageTimeout for timeouts), never as
engine-specific exceptions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from auth.models import Account, RevocationRecord


@runtime_checkable
class AccountRepository(Protocol):
    """Persistence boundary for Account records.

    Email uniqueness MUST be enforced by the storage layer itself (a unique
    constraint or equivalent); callers' existence checks are advisory only.
    """

    def insert(self, account: Account) -> Account:
        """Persist a new account and return it with id and timestamps assigned.

        Raises AlreadyExists if the email is already taken.
        """
        ...

    def get_by_id(self, account_id: int) -> Account:
        """Raises NotFound if absent."""
        ...

    def get_by_email(self, email: str) -> Account:
        """Exact, case-sensitive match. Raises NotFound if absent."""
        ...

    def update(self, account: Account) -> Account:
        """Write every mutable field of account. Raises NotFound if the id is unknown."""
        ...


@runtime_checkable
class RevocationStore(Protocol):
    """Backing store for the revocation ledger."""

    def put(self, token_key: str, record: RevocationRecord) -> None:
        """Store record under token_key. A second put for the same key is a no-op."""
        ...

    def get(self, token_key: str) -> RevocationRecord | None:
        ...

    def delete_expired(self, now: datetime) -> int:
        """Remove records whose original expiry is before now. Returns the count removed."""
        ...
