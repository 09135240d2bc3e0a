"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
domain shape; stores, the account manager and the auth service do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TokenClass(str, Enum):
    """Token class claim. Access tokens grant resource use, refresh tokens grant new access tokens."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass
class Profile:
    """Optional display fields supplied at registration."""

    given_name: str | None = None
    family_name: str | None = None


@dataclass
class Account:
    """An identity record.

    id is None until the repository inserts the record and assigns one; it
    never changes afterwards. email is matched exactly (case-sensitive).

    credential_hash is the bcrypt digest. It is excluded from repr() so an
    Account can appear in a log line or traceback without leaking it, and it
    never leaves the core: callers receive an AccountView instead.
    """

    email: str
    credential_hash: str = field(repr=False)
    id: int | None = None
    given_name: str | None = None
    family_name: str | None = None
    is_active: bool = True
    is_verified: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_login_at: datetime | None = None


@dataclass(frozen=True)
class AccountView:
    """Outward projection of an Account -- everything except the credential hash."""

    id: int
    email: str
    given_name: str | None
    family_name: str | None
    is_active: bool
    is_verified: bool
    created_at: datetime | None
    updated_at: datetime | None
    last_login_at: datetime | None

    @classmethod
    def from_account(cls, account: Account) -> AccountView:
        return cls(
            id=account.id,
            email=account.email,
            given_name=account.given_name,
            family_name=account.family_name,
            is_active=account.is_active,
            is_verified=account.is_verified,
            created_at=account.created_at,
            updated_at=account.updated_at,
            last_login_at=account.last_login_at,
        )


@dataclass
class RevocationRecord:
    """Marks one issued token as unusable.

    token_key is the SHA-256 fingerprint of the raw token string; the token
    itself is never stored. expires_at mirrors the token's original exp so the
    record can be purged once the token would have expired anyway.
    """

    token_key: str
    account_id: int
    expires_at: datetime
    revoked_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    """Claims carried inside a signed token. Transient, never persisted.

    email is a snapshot taken at issuance and may be stale if the account's
    email changes later -- account_id is the authoritative subject.
    """

    account_id: int
    email: str
    token_class: TokenClass
    issued_at: datetime
    expires_at: datetime
    token_id: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds
    token_type: str = "bearer"


@dataclass(frozen=True)
class AuthResult:
    """Successful register() or login(): the account view plus a fresh token pair."""

    account: AccountView
    tokens: TokenPair


@dataclass(frozen=True)
class AccessGrant:
    """Successful refresh(): a new access token only. The refresh token is not rotated."""

    access_token: str
    expires_in: int
    token_type: str = "bearer"
