"""
auth/revocation.py -- Ledger of tokens that must no longer be honoured.

Records are keyed by the token's SHA-256 fingerprint and carry the token's
original expiry. Once that expiry passes the token would be rejected by
TokenCodec.verify() anyway, so purge_expired() can drop the record: the
ledger only ever holds outstanding (not yet expired) revoked tokens.

Visibility of a revocation is bounded by the backing store's consistency
model. A refresh racing a logout may be honoured once; that window is
accepted rather than locked against.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from auth.models import RevocationRecord
from auth.protocols import RevocationStore
from auth.tokens import fingerprint

logger = logging.getLogger("tokengate.auth")


class RevocationLedger:
    def __init__(self, store: RevocationStore) -> None:
        self._store = store

    def revoke(self, token: str, account_id: int, expires_at: datetime) -> None:
        """Mark token as revoked. Idempotent: revoking twice is a no-op success."""
        key = fingerprint(token)
        if self._store.get(key) is not None:
            return
        self._store.put(
            key,
            RevocationRecord(
                token_key=key,
                account_id=account_id,
                expires_at=expires_at,
                revoked_at=datetime.now(timezone.utc),
            ),
        )
        logger.info("Token revoked for account %s", account_id)

    def is_revoked(self, token: str) -> bool:
        return self._store.get(fingerprint(token)) is not None

    def purge_expired(self, now: datetime | None = None) -> int:
        """Drop records whose original token expiry has passed. Returns the number removed."""
        removed = self._store.delete_expired(now or datetime.now(timezone.utc))
        if removed:
            logger.info("Purged %d expired revocation records", removed)
        return removed
