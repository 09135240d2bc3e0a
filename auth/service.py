"""
auth/service.py -- Register / login / refresh / logout orchestration.

AuthService composes the leaf components:

    AuthService -> AccountManager -> AccountRepository
                -> CredentialHasher
                -> TokenCodec
                -> RevocationLedger -> RevocationStore

Security design decisions:
  [C1] Login never reveals whether an email is registered. Unknown email,
       inactive account and wrong password all raise InvalidCredentials with
       the same message, and the unknown/inactive paths still run one bcrypt
       verification against a dummy digest so response time is equalized.

  Token classes are enforced here, not in the codec: refresh() accepts only
       refresh tokens, authenticate() only access tokens.

  Refresh tokens are not rotated. A refresh token stays usable until logout
       revokes it or it expires. Refresh also re-checks that the account still
       exists and is active, since account state gates every issuance.

  Access-token revocation is a configuration choice (REVOKE_ACCESS_TOKENS).
       By default authenticate() does not consult the ledger and a logged-out
       access token stays valid until its short natural expiry.

  No rollback on partial failure: if token issuance fails after register()
       created the account, the account stays and the caller may log in.

Every public method returns its result or raises one auth.errors kind.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from auth.accounts import AccountManager
from auth.errors import InvalidCredentials, InvalidToken, NotFound, ValidationError
from auth.models import AccessGrant, Account, AccountView, AuthResult, Profile, TokenClass
from auth.passwords import CredentialHasher
from auth.revocation import RevocationLedger
from auth.store import Database, SQLAccountRepository, SQLRevocationStore
from auth.tokens import TokenCodec
from auth.validators import validate_email, validate_password

logger = logging.getLogger("tokengate.auth")

# Never matches a real password: it fails the policy (no symbol).
_DUMMY_SECRET = "tokengateTimingDummy0"


class AuthService:
    """Authentication orchestrator. Holds no mutable state of its own; safe to share across threads."""

    def __init__(
        self,
        accounts: AccountManager,
        hasher: CredentialHasher,
        codec: TokenCodec,
        ledger: RevocationLedger,
        revoke_access_tokens: bool = False,
    ) -> None:
        self.accounts = accounts
        self.hasher = hasher
        self.codec = codec
        self.ledger = ledger
        self.revoke_access_tokens = revoke_access_tokens
        # Computed once so the first failed login is not measurably slower [C1]
        self._dummy_digest = hasher.hash(_DUMMY_SECRET)

    @classmethod
    def from_settings(cls, settings, db: Database) -> AuthService:
        """Wire the default SQLAlchemy-backed service from one Settings instance."""
        return cls(
            accounts=AccountManager(SQLAccountRepository(db)),
            hasher=CredentialHasher.from_settings(settings),
            codec=TokenCodec.from_settings(settings),
            ledger=RevocationLedger(SQLRevocationStore(db)),
            revoke_access_tokens=settings.revoke_access_tokens,
        )

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        password: str,
        given_name: str | None = None,
        family_name: str | None = None,
    ) -> AuthResult:
        """Create an account and return it with a fresh token pair.

        Raises:
            ValidationError: email or password violates policy.
            AlreadyExists:   email is already registered.
            StorageError:    backend failure.
        """
        validate_email(email)
        validate_password(password)

        digest = self.hasher.hash(password)
        account = self.accounts.create(email, digest, Profile(given_name=given_name, family_name=family_name))

        tokens = self.codec.issue_pair(account.id, account.email)
        return AuthResult(account=AccountView.from_account(account), tokens=tokens)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> AuthResult:
        """Verify credentials and return the account with a fresh token pair.

        Raises:
            ValidationError:    email is malformed.
            InvalidCredentials: unknown email, inactive account or wrong password.
            StorageError:       backend failure (including a corrupt stored digest).
        """
        validate_email(email)
        if not isinstance(password, str):
            raise ValidationError("Password must be a string.")

        try:
            account = self.accounts.find_by_email(email)
        except NotFound:
            self.hasher.verify(password, self._dummy_digest)
            logger.warning("Failed login attempt for email: %s", email)
            raise InvalidCredentials() from None

        if not account.is_active:
            self.hasher.verify(password, self._dummy_digest)
            logger.warning("Login attempt for inactive account: id=%s", account.id)
            raise InvalidCredentials()

        if not self.hasher.verify(password, account.credential_hash):
            logger.warning("Failed login attempt for email: %s", email)
            raise InvalidCredentials()

        account = self.accounts.touch_last_login(account.id)
        if self.hasher.needs_upgrade(account.credential_hash):
            account = self.accounts.apply_update(account.id, credential_hash=self.hasher.hash(password))
            logger.info("Credential digest upgraded to cost %d for account id=%s", self.hasher.rounds, account.id)

        tokens = self.codec.issue_pair(account.id, account.email)
        logger.info("Successful login: id=%s", account.id)
        return AuthResult(account=AccountView.from_account(account), tokens=tokens)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str) -> AccessGrant:
        """Exchange a valid, unrevoked refresh token for a new access token.

        Raises InvalidToken if the token fails verification, is not a refresh
        token, has been revoked, or its account is gone or inactive.
        """
        claims = self.codec.verify(refresh_token)
        if claims.token_class is not TokenClass.REFRESH:
            raise InvalidToken("Invalid token type.")
        if self.ledger.is_revoked(refresh_token):
            logger.warning("Revoked refresh token presented for account id=%s", claims.account_id)
            raise InvalidToken("Token has been revoked.")

        account = self._active_account(claims.account_id)
        access_token = self.codec.issue_access(account.id, account.email)
        return AccessGrant(access_token=access_token, expires_in=int(self.codec.access_ttl.total_seconds()))

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def logout(self, access_token: str, refresh_token: str) -> None:
        """Revoke both tokens of a session. Idempotent.

        Tokens are decoded structurally, without signature or expiry checks:
        revoking an expired or forged token is harmless. A token that cannot
        be decoded at all raises InvalidToken and nothing is revoked.

        The recorded expiry is capped at now + the longer of the two TTLs. No
        token this codec issues outlives that, and an unsigned exp far in the
        future would otherwise keep its record out of every purge.
        """
        access_claims = self.codec.peek(access_token)
        refresh_claims = self.codec.peek(refresh_token)
        if access_claims is None or refresh_claims is None:
            raise InvalidToken("Invalid token.")

        ceiling = datetime.now(timezone.utc) + max(self.codec.access_ttl, self.codec.refresh_ttl)
        self.ledger.revoke(access_token, access_claims.account_id, min(access_claims.expires_at, ceiling))
        self.ledger.revoke(refresh_token, refresh_claims.account_id, min(refresh_claims.expires_at, ceiling))

    # ------------------------------------------------------------------
    # Resource access
    # ------------------------------------------------------------------

    def authenticate(self, access_token: str) -> Account:
        """Resolve an access token to its active account.

        Raises InvalidToken if the token fails verification, is not an access
        token, is revoked (only when revoke_access_tokens is enabled), or its
        account is gone or inactive.
        """
        claims = self.codec.verify(access_token)
        if claims.token_class is not TokenClass.ACCESS:
            raise InvalidToken("Invalid token type.")
        if self.revoke_access_tokens and self.ledger.is_revoked(access_token):
            raise InvalidToken("Token has been revoked.")
        return self._active_account(claims.account_id)

    def purge_revocations(self) -> int:
        """Drop revocation records whose tokens have expired. Returns the number removed."""
        return self.ledger.purge_expired()

    def _active_account(self, account_id: int) -> Account:
        try:
            account = self.accounts.find_by_id(account_id)
        except NotFound:
            raise InvalidToken() from None
        if not account.is_active:
            raise InvalidToken()
        return account
