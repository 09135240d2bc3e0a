"""
auth/passwords.py -- Credential hashing with bcrypt.

Security design decisions:
  bcrypt via the `bcrypt` package directly, no passlib wrapper. passlib's
  wrap-bug detection feeds bcrypt a >72-byte test secret that bcrypt 4.x rejects.

  Each digest embeds its own cost factor and salt ($2b$<cost>$<salt+hash>),
  so raising BCRYPT_ROUNDS never invalidates existing digests. needs_upgrade()
  tells the login flow when a stored digest was made with a lower cost than
  the current minimum so it can re-hash with the password it just verified.

  bcrypt only consumes the first 72 bytes of input, and newer releases raise
  on anything longer. A 128-character password can be up to 512 UTF-8 bytes,
  so every secret is first reduced to base64(SHA-256(secret)): 44 bytes that
  depend on the whole secret. Two passwords sharing a 72-byte prefix still
  produce unrelated digests.

  Hashing is CPU-bound by design (~250ms at cost 12). Callers on an event
  loop must run it on a worker thread; bcrypt releases the GIL while hashing.
"""

from __future__ import annotations

import base64
import hashlib
import logging

import bcrypt

from auth.errors import MalformedDigest, ValidationError

logger = logging.getLogger("tokengate.auth")


def _encode(secret: str) -> bytes:
    return base64.b64encode(hashlib.sha256(secret.encode("utf-8", "surrogatepass")).digest())


def _digest_cost(digest: str) -> int:
    """Return the cost factor embedded in a bcrypt digest.

    Raises ValueError if the digest does not have the $2x$NN$... shape.
    """
    parts = digest.split("$")
    if len(parts) != 4 or parts[0] != "" or not parts[1].startswith("2") or len(parts[3]) != 53:
        raise ValueError("not a bcrypt digest")
    return int(parts[2])


class CredentialHasher:
    """Turn plaintext secrets into bcrypt digests and back-check candidates.

    rounds is both the cost used for new digests and the minimum cost below
    which an existing digest is reported by needs_upgrade().
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    @classmethod
    def from_settings(cls, settings) -> CredentialHasher:
        return cls(rounds=settings.bcrypt_rounds)

    def hash(self, secret: str) -> str:
        """Return a salted bcrypt digest of secret. A fresh salt is drawn on every call."""
        if not secret:
            raise ValidationError("Password must be a non-empty string.")
        return bcrypt.hashpw(_encode(secret), bcrypt.gensalt(rounds=self.rounds)).decode("ascii")

    def verify(self, secret: str, digest: str) -> bool:
        """Return True if secret matches digest. Comparison is constant-time.

        A wrong secret returns False and never raises. A digest that is not a
        well-formed bcrypt string raises MalformedDigest -- that is a storage
        problem, not a wrong password.
        """
        try:
            _digest_cost(digest)
            return bcrypt.checkpw(_encode(secret), digest.encode("ascii"))
        except (ValueError, UnicodeEncodeError) as exc:
            logger.error("Stored credential digest is malformed")
            raise MalformedDigest() from exc

    def needs_upgrade(self, digest: str) -> bool:
        """Return True if digest was made with a lower cost than currently configured.

        An unparseable digest also reports True so the next successful login
        replaces it.
        """
        try:
            return _digest_cost(digest) < self.rounds
        except ValueError:
            return True
