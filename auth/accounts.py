"""
auth/accounts.py -- Account invariants on top of an AccountRepository.

AccountManager owns the rules the repository does not:
  - create() pre-checks email availability so the common duplicate case
    fails before an insert round-trip. The check is advisory; the
    repository's unique constraint is the guarantee and raises its own
    AlreadyExists when two creators race past the pre-check.
  - apply_update() only touches whitelisted fields and always stamps
    updated_at. id and email are immutable through this path -- an email
    change would need its own re-verification flow.
  - Named state transitions (activate, deactivate, mark_verified,
    touch_last_login) are thin wrappers over apply_update().
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from auth.errors import AlreadyExists, NotFound, ValidationError
from auth.models import Account, Profile
from auth.protocols import AccountRepository

logger = logging.getLogger("tokengate.auth")

MUTABLE_FIELDS = frozenset(
    {
        "credential_hash",
        "given_name",
        "family_name",
        "is_active",
        "is_verified",
        "last_login_at",
    }
)
_IMMUTABLE_FIELDS = frozenset({"id", "email", "created_at", "updated_at"})
_NAME_MAX_LENGTH = 100


def _check_name(field: str, value) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string.")
    if len(value) > _NAME_MAX_LENGTH:
        raise ValidationError(f"{field} must not exceed {_NAME_MAX_LENGTH} characters.")


class AccountManager:
    def __init__(self, repository: AccountRepository) -> None:
        self._repository = repository

    def create(self, email: str, credential_digest: str, profile: Profile | None = None) -> Account:
        """Create a new active, unverified account.

        Raises AlreadyExists if email is taken -- either from the pre-check or
        from the repository's unique constraint.
        """
        profile = profile or Profile()
        _check_name("given_name", profile.given_name)
        _check_name("family_name", profile.family_name)

        if self._email_taken(email):
            logger.info("Account creation rejected, email already registered: %s", email)
            raise AlreadyExists()

        account = self._repository.insert(
            Account(
                email=email,
                credential_hash=credential_digest,
                given_name=profile.given_name,
                family_name=profile.family_name,
            )
        )
        logger.info("Account created: id=%s email=%s", account.id, account.email)
        return account

    def find_by_id(self, account_id: int) -> Account:
        """Raises NotFound when absent."""
        return self._repository.get_by_id(account_id)

    def find_by_email(self, email: str) -> Account:
        """Raises NotFound when absent."""
        return self._repository.get_by_email(email)

    def apply_update(self, account_id: int, **fields) -> Account:
        """Apply a partial update and stamp updated_at.

        Raises:
            ValidationError: id/email (or another immutable or unknown field)
                was supplied, or a field has the wrong type.
            NotFound: account_id does not exist.
        """
        immutable = set(fields) & _IMMUTABLE_FIELDS
        if immutable:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(immutable))}.")
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown account fields: {', '.join(sorted(unknown))}.")
        for flag in ("is_active", "is_verified"):
            if flag in fields and not isinstance(fields[flag], bool):
                raise ValidationError(f"{flag} must be a boolean.")
        _check_name("given_name", fields.get("given_name"))
        _check_name("family_name", fields.get("family_name"))
        if "credential_hash" in fields and not fields["credential_hash"]:
            raise ValidationError("credential_hash must be non-empty.")

        account = self._repository.get_by_id(account_id)
        for name, value in fields.items():
            setattr(account, name, value)
        account.updated_at = datetime.now(timezone.utc)
        return self._repository.update(account)

    def activate(self, account_id: int) -> Account:
        return self.apply_update(account_id, is_active=True)

    def deactivate(self, account_id: int) -> Account:
        account = self.apply_update(account_id, is_active=False)
        logger.info("Account deactivated: id=%s", account_id)
        return account

    def mark_verified(self, account_id: int) -> Account:
        return self.apply_update(account_id, is_verified=True)

    def touch_last_login(self, account_id: int) -> Account:
        """Stamp the current UTC time as the last successful authentication."""
        return self.apply_update(account_id, last_login_at=datetime.now(timezone.utc))

    def _email_taken(self, email: str) -> bool:
        try:
            self._repository.get_by_email(email)
        except NotFound:
            return False
        return True
