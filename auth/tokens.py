"""
auth/tokens.py -- Signed token issuance and verification (JWT via python-jose).

Security design decisions:
  Algorithm pinning: every token is signed with the single configured key and
       algorithm (HS256 by default). verify() passes exactly that algorithm to
       jose and additionally compares the unverified header before decoding,
       so a token re-signed with another algorithm -- including "none" -- is
       rejected as InvalidToken rather than trusted.

  Strict expiry: jose only rejects exp < now, which would honour a token
       issued with ttl=0 for the rest of its issuing second. verify() requires
       exp > now, so a zero-lifetime token is expired on arrival.

  Fixed claims: sub (account id as a string, per RFC 7519), email, type
       ("access" | "refresh"), iat, exp, jti. No caller-supplied extra claims.
       jti is random per token so two tokens for the same account minted in
       the same second are still distinct strings -- revoking one never
       revokes the other.

  The codec is class-agnostic. Whether an access or refresh token is
       acceptable for an operation is decided by AuthService.

  Fingerprints: the revocation ledger keys records by SHA-256 of the raw
       token (fingerprint()), so the ledger never holds a usable credential.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import InvalidToken, ValidationError
from auth.models import TokenClaims, TokenClass, TokenPair

logger = logging.getLogger("tokengate.auth")


def fingerprint(token: str) -> str:
    """Return the SHA-256 hex digest of a raw token string."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _claims_from_payload(payload: dict) -> TokenClaims:
    """Map a decoded JWT payload onto TokenClaims.

    Raises KeyError, TypeError or ValueError if a claim is missing, mistyped
    or (for iat/exp) outside the range datetime can represent.
    """
    account_id = int(payload["sub"])
    if account_id <= 0:
        raise ValueError("sub must be a positive account id")
    email = payload["email"]
    if not isinstance(email, str) or not email:
        raise ValueError("email claim must be a non-empty string")
    iat = payload["iat"]
    exp = payload["exp"]
    if not isinstance(iat, int) or not isinstance(exp, int):
        raise TypeError("iat and exp must be integer timestamps")
    try:
        issued_at = datetime.fromtimestamp(iat, tz=timezone.utc)
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError) as exc:
        raise ValueError("iat or exp is out of range") from exc
    return TokenClaims(
        account_id=account_id,
        email=email,
        token_class=TokenClass(payload["type"]),
        issued_at=issued_at,
        expires_at=expires_at,
        token_id=str(payload.get("jti", "")),
    )


class TokenCodec:
    """Create and parse signed tokens. Stateless: a pure function of key + claims."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings) -> TokenCodec:
        return cls(
            secret_key=settings.secret_key,
            algorithm=settings.jwt_algorithm,
            access_ttl=settings.access_token_ttl,
            refresh_ttl=settings.refresh_token_ttl,
        )

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, account_id: int, email: str, token_class: TokenClass, ttl: timedelta) -> str:
        """Encode a signed token for account_id valid for ttl from now.

        Args:
            account_id:  Repository-assigned account id (positive int).
            email:       Account email, stored as a snapshot claim.
            token_class: TokenClass.ACCESS or TokenClass.REFRESH.
            ttl:         Lifetime. timedelta(0) yields an already-expired token.
        """
        if isinstance(account_id, bool) or not isinstance(account_id, int) or account_id <= 0:
            raise ValidationError("account_id must be a positive integer.")
        if not email:
            raise ValidationError("email must be a non-empty string.")
        if ttl < timedelta(0):
            raise ValidationError("ttl must not be negative.")

        issued_at = int(datetime.now(timezone.utc).timestamp())
        payload = {
            "sub": str(account_id),
            "email": email,
            "type": TokenClass(token_class).value,
            "iat": issued_at,
            "exp": issued_at + int(ttl.total_seconds()),
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def issue_access(self, account_id: int, email: str) -> str:
        return self.issue(account_id, email, TokenClass.ACCESS, self.access_ttl)

    def issue_refresh(self, account_id: int, email: str) -> str:
        return self.issue(account_id, email, TokenClass.REFRESH, self.refresh_ttl)

    def issue_pair(self, account_id: int, email: str) -> TokenPair:
        """Issue a fresh access + refresh token pair."""
        return TokenPair(
            access_token=self.issue_access(account_id, email),
            refresh_token=self.issue_refresh(account_id, email),
            expires_in=int(self.access_ttl.total_seconds()),
        )

    # ------------------------------------------------------------------
    # Verify / peek
    # ------------------------------------------------------------------

    def verify(self, token: str) -> TokenClaims:
        """Verify signature, algorithm and expiry, then return the claims.

        Raises InvalidToken on any failure. The reason is logged at WARNING;
        the message returned to callers stays coarse.
        """
        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") != self.algorithm:
                logger.warning("Rejected token signed with unexpected algorithm %r", header.get("alg"))
                raise InvalidToken()
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={"require_exp": True, "require_iat": True, "require_sub": True},
            )
        except ExpiredSignatureError as exc:
            raise InvalidToken("Token has expired.") from exc
        except JWTError as exc:
            logger.warning("Token validation failed: %s", exc)
            raise InvalidToken() from exc
        except (AttributeError, TypeError, ValueError) as exc:
            # jose surfaces a few malformed inputs (non-str token, bad base64) this way
            logger.warning("Token is structurally malformed: %s", exc)
            raise InvalidToken() from exc

        try:
            claims = _claims_from_payload(payload)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Token claims are malformed: %s", exc)
            raise InvalidToken() from exc

        if claims.expires_at <= datetime.now(timezone.utc):
            raise InvalidToken("Token has expired.")
        return claims

    def peek(self, token: str) -> TokenClaims | None:
        """Parse claims WITHOUT checking signature or expiry.

        For diagnostics and logout only -- never base an access decision on
        the result. Returns None if the token or its claims are malformed.
        """
        try:
            payload = jwt.get_unverified_claims(token)
            return _claims_from_payload(payload)
        except (JWTError, KeyError, TypeError, ValueError, AttributeError):
            return None
